"""
Engine settings for netshaper.

Values default to the stock macOS pf/dummynet layout and can be overridden
from the environment or a .env file.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_PIPE_ID = 1
DEFAULT_ANCHOR = "netshaper"


@dataclass(frozen=True)
class ShaperSettings:
    """
    Settings for the external pf/dummynet engine.

    Attributes:
        pipe_id: Dummynet pipe reserved for this manager. Two managers on the
            same host must not share it.
        anchor: pf anchor owning the classification rules. Rules for each
            protocol live in the "<anchor>/<protocol>" sub-anchor.
        pfctl: pfctl executable.
        dnctl: dnctl executable.
        pf_conf: Base pf ruleset, reloaded on cleanup to unhook the anchor.
        command_timeout: Seconds to wait for each command. None waits forever.
    """

    pipe_id: int = DEFAULT_PIPE_ID
    anchor: str = DEFAULT_ANCHOR
    pfctl: str = "pfctl"
    dnctl: str = "dnctl"
    pf_conf: str = "/etc/pf.conf"
    command_timeout: Optional[float] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ShaperSettings":
        """
        Build settings from NETSHAPER_* environment variables.

        A .env file is loaded first; variables already set in the
        environment take precedence over it.
        """
        load_dotenv(dotenv_path)

        timeout = os.environ.get("NETSHAPER_COMMAND_TIMEOUT")
        return cls(
            pipe_id=int(os.environ.get("NETSHAPER_PIPE_ID", DEFAULT_PIPE_ID)),
            anchor=os.environ.get("NETSHAPER_ANCHOR", DEFAULT_ANCHOR),
            pfctl=os.environ.get("NETSHAPER_PFCTL", "pfctl"),
            dnctl=os.environ.get("NETSHAPER_DNCTL", "dnctl"),
            pf_conf=os.environ.get("NETSHAPER_PF_CONF", "/etc/pf.conf"),
            command_timeout=float(timeout) if timeout else None,
        )
