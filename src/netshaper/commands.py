"""
pfctl/dnctl command construction.

Translates a TrafficConfig into the ordered commands that implement it:

- dnctl pipe <id> config bw <bps>bit/s delay <ms>ms plr <ratio>
- pfctl -a <anchor>/<proto> -f -     (one per protocol, rules on stdin)
- pfctl -E -f -                      (base ruleset plus anchor hooks on stdin)

Each apply command carries the command that undoes it, which is what
RuleManager runs when an apply has to be rolled back.

Reference: https://www.freebsd.org/cgi/man.cgi?query=dnctl
"""

import shlex
from dataclasses import dataclass
from typing import Optional

from .config import ImpairmentSettings, IPAddress, Protocol, TrafficConfig
from .settings import ShaperSettings


@dataclass(frozen=True)
class ShapingCommand:
    """
    One external engine invocation.

    Attributes:
        argv: Program and arguments.
        input: Text fed on stdin, if any.
        undo: Command reversing this one's effect, if it has one.
    """

    argv: tuple[str, ...]
    input: Optional[str] = None
    undo: Optional["ShapingCommand"] = None

    def __str__(self) -> str:
        return shlex.join(self.argv)


@dataclass(frozen=True)
class ClassificationRule:
    """pf dummynet rule pair routing one protocol's matching traffic to a pipe."""

    protocol: Protocol
    pipe_id: int
    address: Optional[IPAddress] = None
    ports: Optional[tuple[int, int]] = None

    def _endpoint(self) -> str:
        host = str(self.address) if self.address is not None else "any"
        if self.ports is None:
            return host
        low, high = self.ports
        if low == high:
            return f"{host} port {low}"
        return f"{host} port {low}:{high}"

    def to_pf(self) -> str:
        """
        Render the rule as pf.conf text.

        Outbound packets match on their destination, inbound packets on
        their source, so both directions of a flow with the target peer
        pass through the pipe.
        """
        proto = self.protocol.value
        endpoint = self._endpoint()
        return (
            f"dummynet out quick proto {proto} from any to {endpoint} "
            f"pipe {self.pipe_id}\n"
            f"dummynet in quick proto {proto} from {endpoint} to any "
            f"pipe {self.pipe_id}\n"
        )


def build_classification_rules(
    config: TrafficConfig, pipe_id: int
) -> list[ClassificationRule]:
    """One rule per concrete protocol, all sharing the address/port predicate."""
    return [
        ClassificationRule(
            protocol=protocol,
            pipe_id=pipe_id,
            address=config.target_address,
            ports=config.target_ports,
        )
        for protocol in config.protocol.selectors
    ]


def format_ratio(value: float) -> str:
    """Format a 0-1 ratio in plain decimal notation (dnctl rejects exponents)."""
    text = f"{value:.10f}".rstrip("0").rstrip(".")
    return text or "0"


class CommandBuilder:
    """Builds pfctl/dnctl commands for one anchor and pipe."""

    def __init__(self, settings: Optional[ShaperSettings] = None):
        self.settings = settings or ShaperSettings()

    def sub_anchor(self, protocol: Protocol) -> str:
        return f"{self.settings.anchor}/{protocol.value}"

    # dnctl - dummynet control

    def configure_pipe(self, impairment: ImpairmentSettings) -> ShapingCommand:
        """Create or update the pipe with all three knobs in one call."""
        return ShapingCommand(
            argv=(
                self.settings.dnctl,
                "pipe",
                str(self.settings.pipe_id),
                "config",
                "bw",
                f"{impairment.max_bandwidth_bps}bit/s",
                "delay",
                f"{impairment.latency_ms}ms",
                "plr",
                format_ratio(impairment.loss_ratio),
            ),
            undo=self.delete_pipe(),
        )

    def delete_pipe(self) -> ShapingCommand:
        return ShapingCommand(
            argv=(self.settings.dnctl, "pipe", "delete", str(self.settings.pipe_id))
        )

    # pfctl - packet filter control

    def load_rule(self, rule: ClassificationRule) -> ShapingCommand:
        return ShapingCommand(
            argv=(self.settings.pfctl, "-a", self.sub_anchor(rule.protocol), "-f", "-"),
            input=rule.to_pf(),
            undo=self.flush_anchor(rule.protocol),
        )

    def flush_anchor(self, protocol: Protocol) -> ShapingCommand:
        return ShapingCommand(
            argv=(self.settings.pfctl, "-a", self.sub_anchor(protocol), "-F", "all")
        )

    def anchor_hooks(self) -> str:
        anchor = self.settings.anchor
        return (
            "\n# Traffic shaping rules added by netshaper\n"
            f'dummynet-anchor "{anchor}/*"\n'
            f'anchor "{anchor}/*"\n'
        )

    def activate(self, base_rules: str) -> ShapingCommand:
        """
        Load the base ruleset with the anchor hooks and enable pf.

        -E takes a pf enable reference instead of toggling pf, so hosts
        that already run pf are not disturbed.
        """
        rules = base_rules
        if rules and not rules.endswith("\n"):
            rules += "\n"
        return ShapingCommand(
            argv=(self.settings.pfctl, "-E", "-f", "-"),
            input=rules + self.anchor_hooks(),
            undo=self.restore_base_rules(),
        )

    def restore_base_rules(self) -> ShapingCommand:
        return ShapingCommand(argv=(self.settings.pfctl, "-f", self.settings.pf_conf))

    # Sequences

    def apply_sequence(
        self, config: TrafficConfig, base_rules: str
    ) -> list[ShapingCommand]:
        """Pipe first, then rules that reference it, then activation."""
        commands = [self.configure_pipe(config.impairment)]
        for rule in build_classification_rules(config, self.settings.pipe_id):
            commands.append(self.load_rule(rule))
        commands.append(self.activate(base_rules))
        return commands

    def cleanup_sequence(self) -> list[ShapingCommand]:
        """Unhook and flush every rule consumer before deleting the pipe."""
        commands = [self.restore_base_rules()]
        for protocol in Protocol.BOTH.selectors:
            commands.append(self.flush_anchor(protocol))
        commands.append(self.delete_pipe())
        return commands
