"""
Traffic configuration value objects for netshaper.

Defines the validated, immutable TrafficConfig that describes which traffic
is shaped and how, plus the ImpairmentSettings triple used for live updates
of an already applied pipe.

Validation runs in __post_init__, so an instance that exists is valid.
Checks run in a fixed order and the first failing rule is reported:
packet loss, latency, bandwidth, port range, then protocol and address.
"""

import ipaddress
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .exceptions import InvalidConfigurationError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

MIN_PORT = 0
MAX_PORT = 65535


def _is_integer(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class Protocol(str, Enum):
    """Transport protocol selector for classification rules."""

    TCP = "tcp"
    UDP = "udp"
    BOTH = "both"

    @property
    def selectors(self) -> tuple["Protocol", ...]:
        """Concrete protocols this selector expands to, in rule order."""
        if self is Protocol.BOTH:
            return (Protocol.TCP, Protocol.UDP)
        return (self,)

    @classmethod
    def parse(cls, value: Union[str, "Protocol"]) -> "Protocol":
        if isinstance(value, Protocol):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidConfigurationError("unknown protocol") from None


def validate_impairment(
    packet_loss_percent: float, latency_ms: int, max_bandwidth_bps: int
) -> None:
    """
    Check the loss/latency/bandwidth triple.

    Raises:
        InvalidConfigurationError: On the first failing rule.
    """
    # Written as a negated range so NaN is rejected too
    if not _is_number(packet_loss_percent) or not 0.0 <= packet_loss_percent <= 100.0:
        raise InvalidConfigurationError("packet loss out of range")
    if not _is_integer(latency_ms) or latency_ms < 0:
        raise InvalidConfigurationError("latency must be non-negative")
    if not _is_integer(max_bandwidth_bps) or max_bandwidth_bps <= 0:
        raise InvalidConfigurationError("bandwidth must be positive")


def normalize_port_range(ports) -> Optional[tuple[int, int]]:
    """Return ports as an inclusive (low, high) tuple, or None for any port."""
    if ports is None:
        return None
    try:
        low, high = ports
    except (TypeError, ValueError):
        raise InvalidConfigurationError("invalid port range") from None
    if not (_is_integer(low) and _is_integer(high)):
        raise InvalidConfigurationError("invalid port range")
    if not (MIN_PORT <= low <= high <= MAX_PORT):
        raise InvalidConfigurationError("invalid port range")
    return (int(low), int(high))


def normalize_address(address) -> Optional[IPAddress]:
    if address is None:
        return None
    try:
        return ipaddress.ip_address(address)
    except ValueError:
        raise InvalidConfigurationError("invalid target address") from None


@dataclass(frozen=True)
class ImpairmentSettings:
    """
    Loss, latency and bandwidth applied to the shaping pipe.

    Attributes:
        packet_loss_percent: Independent per-packet drop probability (0-100).
        latency_ms: Delay added on each pass through the pipe, in milliseconds.
        max_bandwidth_bps: Bandwidth cap in bits per second.
    """

    packet_loss_percent: float
    latency_ms: int
    max_bandwidth_bps: int

    def __post_init__(self):
        validate_impairment(
            self.packet_loss_percent, self.latency_ms, self.max_bandwidth_bps
        )

    @property
    def loss_ratio(self) -> float:
        """Loss as the 0-1 ratio dummynet expects."""
        return self.packet_loss_percent / 100.0

    @classmethod
    def from_dict(cls, data: dict) -> "ImpairmentSettings":
        return cls(
            packet_loss_percent=data.get("packet_loss_percent", 0.0),
            latency_ms=data.get("latency_ms", 0),
            max_bandwidth_bps=data.get("max_bandwidth_bps", 0),
        )


@dataclass(frozen=True)
class TrafficConfig:
    """
    Validated traffic shaping configuration.

    Attributes:
        packet_loss_percent: Packet loss percentage (0.0 to 100.0).
        latency_ms: Added latency in milliseconds, non-negative.
        max_bandwidth_bps: Maximum bandwidth in bits per second, positive.
        protocol: Transport protocol(s) the rules match. Strings
            "tcp", "udp" and "both" are accepted.
        target_address: Single peer address to match. None matches any address.
        target_ports: Inclusive (low, high) port range. None matches any port.
    """

    packet_loss_percent: float
    latency_ms: int
    max_bandwidth_bps: int
    protocol: Protocol = Protocol.BOTH
    target_address: Optional[IPAddress] = None
    target_ports: Optional[tuple[int, int]] = None

    def __post_init__(self):
        validate_traffic_config(
            self.packet_loss_percent,
            self.latency_ms,
            self.max_bandwidth_bps,
            self.target_ports,
        )
        # Frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(self, "target_ports", normalize_port_range(self.target_ports))
        object.__setattr__(self, "protocol", Protocol.parse(self.protocol))
        object.__setattr__(
            self, "target_address", normalize_address(self.target_address)
        )

    @property
    def impairment(self) -> ImpairmentSettings:
        return ImpairmentSettings(
            packet_loss_percent=self.packet_loss_percent,
            latency_ms=self.latency_ms,
            max_bandwidth_bps=self.max_bandwidth_bps,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "TrafficConfig":
        """
        Create a TrafficConfig from a dictionary.

        Example:
            >>> config = TrafficConfig.from_dict(
            ...     {"packet_loss_percent": 1.0, "latency_ms": 50,
            ...      "max_bandwidth_bps": 1000000, "protocol": "tcp"}
            ... )
            >>> config.protocol
            <Protocol.TCP: 'tcp'>
        """
        ports = data.get("target_ports")
        return cls(
            packet_loss_percent=data.get("packet_loss_percent", 0.0),
            latency_ms=data.get("latency_ms", 0),
            max_bandwidth_bps=data.get("max_bandwidth_bps", 0),
            protocol=data.get("protocol", Protocol.BOTH),
            target_address=data.get("target_address"),
            target_ports=tuple(ports) if isinstance(ports, list) else ports,
        )


def validate_traffic_config(
    packet_loss_percent: float,
    latency_ms: int,
    max_bandwidth_bps: int,
    target_ports: Optional[tuple[int, int]] = None,
) -> None:
    """
    Validate raw TrafficConfig values.

    Raises:
        InvalidConfigurationError: With the reason of the first failing check.
    """
    validate_impairment(packet_loss_percent, latency_ms, max_bandwidth_bps)
    normalize_port_range(target_ports)
