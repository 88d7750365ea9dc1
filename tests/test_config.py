"""Tests for TrafficConfig validation."""

import ipaddress
import math

import pytest

from netshaper import (
    ImpairmentSettings,
    InvalidConfigurationError,
    Protocol,
    TrafficConfig,
    validate_traffic_config,
)


def make_config(**overrides):
    values = {
        "packet_loss_percent": 1.0,
        "latency_ms": 10,
        "max_bandwidth_bps": 1000,
        "protocol": Protocol.TCP,
        "target_address": None,
        "target_ports": None,
    }
    values.update(overrides)
    return TrafficConfig(**values)


class TestPacketLoss:
    """Tests for packet loss validation."""

    @pytest.mark.parametrize("loss", [0.0, 0.5, 50.0, 100.0])
    def test_loss_in_range(self, loss):
        assert make_config(packet_loss_percent=loss).packet_loss_percent == loss

    @pytest.mark.parametrize("loss", [-0.01, 100.01, 1000.0, math.nan])
    def test_loss_out_of_range(self, loss):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            make_config(packet_loss_percent=loss)

        assert exc_info.value.reason == "packet loss out of range"


class TestLatencyAndBandwidth:
    """Tests for latency and bandwidth validation."""

    def test_zero_latency_is_valid(self):
        assert make_config(latency_ms=0).latency_ms == 0

    def test_negative_latency(self):
        with pytest.raises(InvalidConfigurationError, match="latency must be non-negative"):
            make_config(latency_ms=-1)

    @pytest.mark.parametrize("bandwidth", [0, -1])
    def test_non_positive_bandwidth(self, bandwidth):
        with pytest.raises(InvalidConfigurationError, match="bandwidth must be positive"):
            make_config(max_bandwidth_bps=bandwidth)

    @pytest.mark.parametrize("latency", [math.nan, math.inf, 12.5, "10", True])
    def test_non_integer_latency(self, latency):
        with pytest.raises(InvalidConfigurationError, match="latency must be non-negative"):
            make_config(latency_ms=latency)

    @pytest.mark.parametrize("bandwidth", [math.nan, math.inf, 12.5, "1000", None])
    def test_non_integer_bandwidth(self, bandwidth):
        with pytest.raises(InvalidConfigurationError, match="bandwidth must be positive"):
            make_config(max_bandwidth_bps=bandwidth)

    def test_non_numeric_loss(self):
        with pytest.raises(InvalidConfigurationError, match="packet loss out of range"):
            make_config(packet_loss_percent="high")

    def test_integer_loss_is_valid(self):
        assert make_config(packet_loss_percent=5).packet_loss_percent == 5

    def test_impairment_settings_reject_fractional_latency(self):
        with pytest.raises(InvalidConfigurationError, match="latency must be non-negative"):
            ImpairmentSettings(packet_loss_percent=1.0, latency_ms=12.5, max_bandwidth_bps=1)


class TestPortRange:
    """Tests for port range validation."""

    def test_single_port_range(self):
        assert make_config(target_ports=(443, 443)).target_ports == (443, 443)

    def test_list_is_normalized_to_tuple(self):
        assert make_config(target_ports=[80, 8080]).target_ports == (80, 8080)

    @pytest.mark.parametrize(
        "ports", [(8080, 80), (0, 65536), (-1, 10), (1,), ("80", "90"), (80.5, 90)]
    )
    def test_invalid_port_range(self, ports):
        with pytest.raises(InvalidConfigurationError, match="invalid port range"):
            make_config(target_ports=ports)

    def test_full_range_is_valid(self):
        assert make_config(target_ports=(0, 65535)).target_ports == (0, 65535)


class TestCheckOrder:
    """The first failing check in loss, latency, bandwidth, ports order wins."""

    def test_loss_reported_before_everything(self):
        with pytest.raises(InvalidConfigurationError, match="packet loss"):
            make_config(
                packet_loss_percent=101,
                latency_ms=-1,
                max_bandwidth_bps=0,
                target_ports=(2, 1),
            )

    def test_latency_before_bandwidth(self):
        with pytest.raises(InvalidConfigurationError, match="latency"):
            validate_traffic_config(1.0, -5, 0, (2, 1))

    def test_bandwidth_before_ports(self):
        with pytest.raises(InvalidConfigurationError, match="bandwidth"):
            validate_traffic_config(1.0, 5, 0, (2, 1))


class TestProtocolAndAddress:
    """Tests for protocol and address normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [("tcp", Protocol.TCP), ("UDP", Protocol.UDP), ("Both", Protocol.BOTH)],
    )
    def test_protocol_from_string(self, value, expected):
        assert make_config(protocol=value).protocol is expected

    def test_unknown_protocol(self):
        with pytest.raises(InvalidConfigurationError, match="unknown protocol"):
            make_config(protocol="icmp")

    def test_protocol_selectors(self):
        assert Protocol.BOTH.selectors == (Protocol.TCP, Protocol.UDP)
        assert Protocol.UDP.selectors == (Protocol.UDP,)

    def test_address_from_string(self):
        config = make_config(target_address="192.168.1.10")

        assert config.target_address == ipaddress.ip_address("192.168.1.10")

    def test_ipv6_address(self):
        config = make_config(target_address="::1")

        assert config.target_address.version == 6

    def test_invalid_address(self):
        with pytest.raises(InvalidConfigurationError, match="invalid target address"):
            make_config(target_address="not-an-ip")


class TestTrafficConfig:
    """Tests for TrafficConfig behaviour."""

    def test_is_immutable(self):
        config = make_config()

        with pytest.raises(AttributeError):
            config.latency_ms = 5

    def test_invalid_configuration_is_value_error(self):
        with pytest.raises(ValueError):
            make_config(max_bandwidth_bps=0)

    def test_impairment(self):
        config = make_config(packet_loss_percent=5.0, latency_ms=100, max_bandwidth_bps=10)

        assert config.impairment == ImpairmentSettings(5.0, 100, 10)
        assert config.impairment.loss_ratio == pytest.approx(0.05)

    def test_from_dict(self):
        config = TrafficConfig.from_dict(
            {
                "packet_loss_percent": 2.5,
                "latency_ms": 40,
                "max_bandwidth_bps": 2000,
                "protocol": "udp",
                "target_address": "10.0.0.1",
                "target_ports": [53, 53],
            }
        )

        assert config.protocol is Protocol.UDP
        assert config.target_ports == (53, 53)
        assert str(config.target_address) == "10.0.0.1"

    def test_from_dict_defaults_to_both_protocols(self):
        config = TrafficConfig.from_dict({"max_bandwidth_bps": 1})

        assert config.protocol is Protocol.BOTH
        assert config.target_address is None
        assert config.target_ports is None


def test_impairment_settings_validated():
    with pytest.raises(InvalidConfigurationError, match="packet loss out of range"):
        ImpairmentSettings(packet_loss_percent=150.0, latency_ms=0, max_bandwidth_bps=1)
