"""
Timed impairment schedules.

A manifest describes the initial TrafficConfig and a list of events that
change loss, latency and bandwidth at fixed offsets from the start:

    config:
      packet_loss_percent: 1.0
      latency_ms: 50
      max_bandwidth_bps: 1000000
      protocol: both
      target_ports: [80, 8080]

    events:
      - time_ms: 5000
        packet_loss_percent: 5.0
        latency_ms: 200
        max_bandwidth_bps: 250000
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import yaml

from .config import ImpairmentSettings, TrafficConfig
from .exceptions import InvalidConfigurationError, ManifestLoadError, NetShaperError
from .manager import RuleManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImpairmentEvent:
    """Impairment change applied time_ms after the simulation starts."""

    time_ms: int
    impairment: ImpairmentSettings

    @classmethod
    def from_dict(cls, data: dict) -> "ImpairmentEvent":
        time_ms = data.get("time_ms", 0)
        if not isinstance(time_ms, int) or isinstance(time_ms, bool) or time_ms < 0:
            raise InvalidConfigurationError("event time must be non-negative")
        return cls(time_ms=time_ms, impairment=ImpairmentSettings.from_dict(data))


@dataclass
class Manifest:
    config: TrafficConfig
    events: list[ImpairmentEvent] = field(default_factory=list)


def load_manifest(path: str) -> Manifest:
    """
    Load a simulation manifest from a YAML file.

    Events are returned sorted by time.

    Raises:
        ManifestLoadError: If the file cannot be read, parsed or validated.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ManifestLoadError(path, "file not found")
    except yaml.YAMLError as e:
        raise ManifestLoadError(path, f"invalid YAML: {e}")

    if not data:
        raise ManifestLoadError(path, "empty file")

    if not isinstance(data, dict):
        raise ManifestLoadError(path, "top level must be a mapping")

    if not isinstance(data.get("config"), dict):
        raise ManifestLoadError(path, "missing config section")

    events_data = data.get("events") or []
    if not isinstance(events_data, list):
        raise ManifestLoadError(path, "events must be a list")
    if not all(isinstance(e, dict) for e in events_data):
        raise ManifestLoadError(path, "each event must be a mapping")

    try:
        config = TrafficConfig.from_dict(data["config"])
        events = [ImpairmentEvent.from_dict(e) for e in events_data]
    except InvalidConfigurationError as e:
        raise ManifestLoadError(path, e.reason)

    events.sort(key=lambda e: e.time_ms)
    logger.info(f"Loaded manifest with {len(events)} events from {path}")
    return Manifest(config=config, events=events)


class Simulation:
    """
    Runs a manifest: apply the config, replay events on schedule, clean up.

    Example:
        >>> simulation = Simulation(load_manifest("manifest.yaml"))
        >>> simulation.run()
    """

    def __init__(
        self,
        manifest: Manifest,
        manager: Optional[RuleManager] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.manifest = manifest
        self.manager = manager or RuleManager(manifest.config)
        self._sleep = sleep
        self._clock = clock

    def run(self) -> None:
        """
        Run the schedule to completion.

        Cleanup always runs. A cleanup failure is logged rather than raised
        when the run itself already failed.
        """
        try:
            self._run()
        except BaseException:
            try:
                self.manager.cleanup()
            except NetShaperError as e:
                logger.error(f"Error during simulation cleanup: {e}")
            raise
        self.manager.cleanup()

    def _run(self) -> None:
        self.manager.apply()
        epoch = self._clock()

        for event in self.manifest.events:
            remaining = epoch + event.time_ms / 1000.0 - self._clock()
            if remaining > 0:
                self._sleep(remaining)
            logger.info(f"Handling event at {event.time_ms}ms")
            self.manager.update(event.impairment)
