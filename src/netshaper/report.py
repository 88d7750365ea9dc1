"""
Event reporting for applied impairments.

Every time the pipe is (re)configured, one JSON object is written per line:

    {"now": "2024-05-01T12:00:00.000000+02:00", "bandwidth": 1000000,
     "latency": 100, "packet_loss": 5.0}
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import IO, Optional

from .config import ImpairmentSettings

logger = logging.getLogger(__name__)

OUTPUT_NONE = "none"
OUTPUT_STDOUT = "stdout"


class EventReporter:
    """
    Writes impairment change events as JSON lines.

    Example:
        >>> reporter = EventReporter("stdout")
        >>> reporter.record(ImpairmentSettings(5.0, 100, 1_000_000))  # doctest: +SKIP
    """

    def __init__(self, output: Optional[str] = None):
        """
        Args:
            output: "none" or None to disable reporting, "stdout", or a file
                path. Files are truncated when first written and
                closed by close(); later events are appended.
        """
        self.output = output or OUTPUT_NONE
        self._file: Optional[IO[str]] = None
        self._started = False

    @property
    def enabled(self) -> bool:
        return self.output != OUTPUT_NONE

    def _stream(self) -> IO[str]:
        if self.output == OUTPUT_STDOUT:
            return sys.stdout
        if self._file is None:
            # Truncate on first use only; reopening after close() appends
            self._file = Path(self.output).open("a" if self._started else "w")
            self._started = True
        return self._file

    def record(self, impairment: ImpairmentSettings) -> None:
        if not self.enabled:
            return

        event = {
            "now": datetime.now().astimezone().isoformat(),
            "bandwidth": impairment.max_bandwidth_bps,
            "latency": impairment.latency_ms,
            "packet_loss": impairment.packet_loss_percent,
        }
        try:
            stream = self._stream()
            stream.write(json.dumps(event) + "\n")
            stream.flush()
        except OSError as e:
            # Reporting never interrupts shaping
            logger.error(f"Failed to write event report to {self.output}: {e}")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
