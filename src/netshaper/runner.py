"""
Command execution for netshaper.

RuleManager talks to pfctl and dnctl only through the CommandRunner
protocol, so rule generation can be exercised without touching the host.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of one command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Executes one external command and reports how it went."""

    def run(self, argv: Sequence[str], input: Optional[str] = None) -> CommandResult:
        """
        Run argv, feeding input on stdin when given.

        Raises:
            OSError: If the command cannot be launched.
            subprocess.TimeoutExpired: If the runner enforces a timeout.
        """
        ...


class SubprocessRunner:
    """CommandRunner backed by subprocess.run."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds to wait per command. None blocks until exit.
        """
        self.timeout = timeout

    def run(self, argv: Sequence[str], input: Optional[str] = None) -> CommandResult:
        result = subprocess.run(
            list(argv),
            input=input,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if result.returncode != 0:
            logger.debug(f"{argv[0]} exited with {result.returncode}: {result.stderr}")
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
