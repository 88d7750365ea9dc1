"""
netshaper - pf/dummynet traffic shaping wrapper for Python.

This package translates a small traffic configuration (packet loss, latency,
bandwidth cap, protocol/address/port matching) into pfctl and dnctl
commands, applies them, and removes them again on cleanup.

Example:
    >>> from netshaper import Protocol, RuleManager, TrafficConfig
    >>> config = TrafficConfig(
    ...     packet_loss_percent=5.0,
    ...     latency_ms=100,
    ...     max_bandwidth_bps=1_000_000,
    ...     protocol=Protocol.BOTH,
    ...     target_ports=(80, 8080),
    ... )
    >>> with RuleManager(config):
    ...     pass  # workload runs under the shaped conditions

Timed schedules:
    >>> from netshaper import Simulation, load_manifest
    >>> Simulation(load_manifest("manifest.yaml")).run()
"""

from .commands import ClassificationRule, CommandBuilder, ShapingCommand
from .config import ImpairmentSettings, Protocol, TrafficConfig, validate_traffic_config
from .exceptions import (
    AlreadyAppliedError,
    CommandExecutionFailedError,
    InvalidConfigurationError,
    ManifestLoadError,
    NetShaperError,
    NotAppliedError,
    RollbackFailedError,
)
from .manager import RuleManager, ShaperState
from .report import EventReporter
from .runner import CommandResult, CommandRunner, SubprocessRunner
from .settings import ShaperSettings
from .simulation import ImpairmentEvent, Manifest, Simulation, load_manifest

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "TrafficConfig",
    "ImpairmentSettings",
    "Protocol",
    "RuleManager",
    "ShaperState",
    "ShaperSettings",
    # Commands
    "CommandBuilder",
    "ShapingCommand",
    "ClassificationRule",
    "CommandRunner",
    "CommandResult",
    "SubprocessRunner",
    # Reporting and schedules
    "EventReporter",
    "ImpairmentEvent",
    "Manifest",
    "Simulation",
    "load_manifest",
    # Validation
    "validate_traffic_config",
    # Exceptions
    "NetShaperError",
    "InvalidConfigurationError",
    "AlreadyAppliedError",
    "NotAppliedError",
    "CommandExecutionFailedError",
    "RollbackFailedError",
    "ManifestLoadError",
    # Version
    "__version__",
]
