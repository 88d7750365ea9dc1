"""Pytest configuration and fixtures for netshaper tests."""

import pytest

from netshaper import CommandResult, Protocol, ShaperSettings, TrafficConfig


class FakeRunner:
    """Records commands instead of running them; fails on request."""

    def __init__(self):
        self.calls = []
        self.failures = {}

    def fail_on(self, predicate, stderr="pfctl: Permission denied", returncode=1):
        """Fail every command whose argv satisfies predicate."""
        self.failures[predicate] = (returncode, stderr)

    def run(self, argv, input=None):
        argv = tuple(argv)
        self.calls.append((argv, input))
        for predicate, (returncode, stderr) in self.failures.items():
            if predicate(argv):
                return CommandResult(returncode=returncode, stderr=stderr)
        return CommandResult(returncode=0)

    @property
    def commands(self):
        return [" ".join(argv) for argv, _ in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def pf_conf(tmp_path):
    """Create a temporary base pf ruleset."""
    path = tmp_path / "pf.conf"
    path.write_text('scrub-anchor "com.apple/*"\nanchor "com.apple/*"\n')
    return path


@pytest.fixture
def settings(pf_conf):
    return ShaperSettings(pf_conf=str(pf_conf))


@pytest.fixture
def sample_config():
    """Config from the reference scenario: BOTH protocols, ports 80-8080."""
    return TrafficConfig(
        packet_loss_percent=5.0,
        latency_ms=100,
        max_bandwidth_bps=1_000_000,
        protocol=Protocol.BOTH,
        target_address=None,
        target_ports=(80, 8080),
    )


@pytest.fixture
def sample_manifest_yaml(tmp_path):
    """Create a temporary simulation manifest."""
    content = """
config:
  packet_loss_percent: 1.0
  latency_ms: 50
  max_bandwidth_bps: 1000000
  protocol: tcp
  target_address: 10.0.0.5
  target_ports: [443, 443]

events:
  - time_ms: 2000
    packet_loss_percent: 10.0
    latency_ms: 300
    max_bandwidth_bps: 100000
  - time_ms: 500
    packet_loss_percent: 2.0
    latency_ms: 80
    max_bandwidth_bps: 500000
"""
    manifest_file = tmp_path / "manifest.yaml"
    manifest_file.write_text(content)
    return str(manifest_file)
