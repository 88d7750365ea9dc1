"""
Rule lifecycle management using pf/dummynet.

Provides the RuleManager class, which applies a TrafficConfig to the host
by issuing pfctl/dnctl commands and reliably removes those rules again.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .commands import CommandBuilder, ShapingCommand
from .config import ImpairmentSettings, TrafficConfig
from .exceptions import (
    AlreadyAppliedError,
    CommandExecutionFailedError,
    NetShaperError,
    NotAppliedError,
    RollbackFailedError,
)
from .report import EventReporter
from .runner import CommandRunner, SubprocessRunner
from .settings import ShaperSettings

logger = logging.getLogger(__name__)


@dataclass
class ShaperState:
    """
    Applied state of one manager's pipe.

    Attributes:
        pipe_id: Dummynet pipe owned by the manager.
        applied: True only after every apply command succeeded.
        dirty: External state may be partially configured, because a
            rollback or cleanup failed. cleanup() tears down again.
    """

    pipe_id: int
    applied: bool = False
    dirty: bool = False


class RuleManager:
    """
    Applies and removes traffic shaping rules for one TrafficConfig.

    Requires privileges to run pfctl and dnctl. apply(), update() and
    cleanup() are serialized by an internal lock; managers sharing a pipe id
    must not be used concurrently.

    Example:
        >>> config = TrafficConfig(5.0, 100, 1_000_000, Protocol.BOTH)
        >>> manager = RuleManager(config)
        >>> manager.apply()
        >>> # ... run workload ...
        >>> manager.cleanup()

    Context manager usage:
        >>> with RuleManager(config) as manager:
        ...     pass  # Rules are removed on exit
    """

    def __init__(
        self,
        config: TrafficConfig,
        settings: Optional[ShaperSettings] = None,
        runner: Optional[CommandRunner] = None,
        reporter: Optional[EventReporter] = None,
    ):
        """
        Initialize the rule manager.

        Args:
            config: Validated traffic configuration.
            settings: Engine settings. Defaults to pipe 1 and anchor "netshaper".
            runner: Command runner. Defaults to a SubprocessRunner.
            reporter: Receives an event each time the pipe is configured.
        """
        self.config = config
        self.settings = settings or ShaperSettings()
        self.runner = runner or SubprocessRunner(timeout=self.settings.command_timeout)
        self.reporter = reporter or EventReporter()
        self.commands = CommandBuilder(self.settings)
        self.state = ShaperState(pipe_id=self.settings.pipe_id)
        self.current_impairment: Optional[ImpairmentSettings] = None
        self._lock = threading.Lock()

    def __enter__(self) -> "RuleManager":
        """Enter context manager, applying the rules."""
        self.apply()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager, removing the rules."""
        if exc_type is None:
            self.cleanup()
            return
        try:
            self.cleanup()
        except NetShaperError as e:
            logger.error(f"Cleanup failed while handling {exc_type.__name__}: {e}")

    def __del__(self):
        state = getattr(self, "state", None)
        if state is not None and state.applied:
            logger.warning(
                f"RuleManager for pipe {state.pipe_id} dropped with rules still "
                "applied; call cleanup() to remove them"
            )

    @property
    def applied(self) -> bool:
        return self.state.applied

    def _read_base_rules(self) -> str:
        path = self.settings.pf_conf
        try:
            return Path(path).read_text()
        except OSError as e:
            raise CommandExecutionFailedError(f"read {path}", str(e)) from e

    def plan(self) -> list[ShapingCommand]:
        """
        Return the commands apply() would run, without running them.

        Raises:
            CommandExecutionFailedError: If the base ruleset cannot be read.
        """
        return self.commands.apply_sequence(self.config, self._read_base_rules())

    def _execute(self, command: ShapingCommand) -> None:
        logger.debug(f"Running: {command}")

        try:
            result = self.runner.run(command.argv, input=command.input)
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionFailedError(str(command), f"timed out after {e.timeout}s") from e
        except OSError as e:
            raise CommandExecutionFailedError(str(command), str(e)) from e

        if not result.ok:
            raise CommandExecutionFailedError(
                str(command), result.stderr.strip(), result.returncode
            )

    def apply(self) -> None:
        """
        Configure the pipe, load the classification rules and activate them.

        If any command fails, the commands already issued by this call are
        undone in reverse order before the error is raised.

        Raises:
            AlreadyAppliedError: If rules are already applied.
            CommandExecutionFailedError: If a command failed and was rolled back.
            RollbackFailedError: If a command failed and so did the rollback.
        """
        with self._lock:
            if self.state.applied:
                raise AlreadyAppliedError()

            issued: list[ShapingCommand] = []
            try:
                for command in self.plan():
                    self._execute(command)
                    issued.append(command)
            except CommandExecutionFailedError as error:
                logger.error(f"Failed to apply traffic shaping: {error}")
                self._rollback(issued, error)
                raise

            self.state.applied = True
            self.state.dirty = False
            self.current_impairment = self.config.impairment
            logger.info(
                f"Applied traffic shaping on pipe {self.state.pipe_id}: "
                f"loss={self.config.packet_loss_percent}% "
                f"latency={self.config.latency_ms}ms "
                f"bandwidth={self.config.max_bandwidth_bps}bit/s "
                f"protocol={self.config.protocol.value}"
            )
            self.reporter.record(self.current_impairment)

    def _rollback(
        self, issued: list[ShapingCommand], error: CommandExecutionFailedError
    ) -> None:
        failures: list[CommandExecutionFailedError] = []
        for command in reversed(issued):
            if command.undo is None:
                continue
            try:
                self._execute(command.undo)
            except CommandExecutionFailedError as e:
                logger.error(f"Rollback command failed: {e}")
                failures.append(e)

        if failures:
            self.state.dirty = True
            raise RollbackFailedError(error, failures) from error

        if issued:
            logger.warning(f"Rolled back {len(issued)} command(s) after failed apply")

    def update(self, impairment: ImpairmentSettings) -> None:
        """
        Reconfigure the applied pipe with new loss/latency/bandwidth.

        Classification rules are left as they are.

        Raises:
            NotAppliedError: If apply() has not succeeded.
            CommandExecutionFailedError: If dnctl fails. The previous
                settings stay in effect.
        """
        with self._lock:
            if not self.state.applied:
                raise NotAppliedError()

            self._execute(self.commands.configure_pipe(impairment))
            self.current_impairment = impairment
            logger.info(
                f"Updated pipe {self.state.pipe_id}: "
                f"loss={impairment.packet_loss_percent}% "
                f"latency={impairment.latency_ms}ms "
                f"bandwidth={impairment.max_bandwidth_bps}bit/s"
            )
            self.reporter.record(impairment)

    def cleanup(self, force: bool = False) -> None:
        """
        Remove this manager's rules and pipe.

        Safe to call at any time and repeatedly. Every teardown command is
        attempted even if an earlier one fails; the manager is considered
        reset afterwards either way.

        pf itself is left enabled: the enable reference taken by apply() is
        not released, since other rulesets on the host may rely on pf.

        Args:
            force: Tear down even if this manager never applied anything,
                e.g. to remove rules left behind by another process.

        Raises:
            CommandExecutionFailedError: The first teardown command that failed.
        """
        with self._lock:
            if not (self.state.applied or self.state.dirty or force):
                logger.debug("No traffic shaping rules to clean up")
                return

            failures: list[CommandExecutionFailedError] = []
            for command in self.commands.cleanup_sequence():
                try:
                    self._execute(command)
                except CommandExecutionFailedError as e:
                    logger.error(f"Cleanup command failed: {e}")
                    failures.append(e)

            self.state.applied = False
            self.state.dirty = bool(failures)
            self.current_impairment = None
            self.reporter.close()

            if failures:
                raise failures[0]
            logger.info(f"Removed traffic shaping rules for pipe {self.state.pipe_id}")
