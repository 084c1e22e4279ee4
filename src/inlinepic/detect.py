"""Heuristic detection of the terminal's inline graphics protocol.

No terminal answers a capability query portably without risking a hang on
non-interactive streams, so the environment is classified instead. A probe
result supplied by the caller takes precedence over the heuristics; only an
explicit override outranks it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

# TERM substrings commonly associated with Sixel support. Known to misdetect
# (plain xterm is usually built without Sixel); keep the list as is.
SIXEL_TERMS = ("xterm", "mlterm", "kterm", "rxvt", "konsole", "sakura", "eterm")

PROTOCOL_ENV = "INLINEPIC_PROTOCOL"
DEBUG_ENV = "INLINEPIC_IMAGE_DEBUG"


class ProtocolKind(Enum):
    ITERM2 = "iterm2"
    KITTY = "kitty"
    SIXEL = "sixel"
    NONE = "none"

    @classmethod
    def parse(cls, value: str | None) -> ProtocolKind | None:
        """Map a user-supplied name to a protocol, or None if it isn't one."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class DetectionSignals:
    term: str | None = None
    term_program: str | None = None
    iterm_session_id: str | None = None
    kitty_window_id: str | None = None
    kitty_pid: str | None = None
    wt_session: str | None = None
    wt_profile_id: str | None = None
    force_sixel: str | None = None
    force_protocol: str | None = None
    interactive: bool = False
    debug: bool = False

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None, interactive: bool = False) -> DetectionSignals:
        env = os.environ if environ is None else environ
        return cls(
            term=env.get("TERM"),
            term_program=env.get("TERM_PROGRAM"),
            iterm_session_id=env.get("ITERM_SESSION_ID"),
            kitty_window_id=env.get("KITTY_WINDOW_ID"),
            kitty_pid=env.get("KITTY_PID"),
            wt_session=env.get("WT_SESSION"),
            wt_profile_id=env.get("WT_PROFILE_ID"),
            force_sixel=env.get("FORCE_SIXEL"),
            force_protocol=env.get(PROTOCOL_ENV),
            interactive=interactive,
            debug=DEBUG_ENV in env,
        )


@dataclass(frozen=True)
class ProbeResult:
    """What a live capability probe found out about the terminal.

    `protocol` NONE means the probe could only offer block characters.
    `payload` is an already-encoded sequence the probe may hand back.
    """

    protocol: ProtocolKind
    cell_width: int | None = None
    cell_height: int | None = None
    payload: str | None = None

    @property
    def cell_size(self) -> tuple[int, int] | None:
        if self.cell_width and self.cell_height and self.cell_width > 0 and self.cell_height > 0:
            return (self.cell_width, self.cell_height)
        return None


def _lower(value: str | None) -> str:
    return value.lower() if isinstance(value, str) else ""


def forced_protocol(signals: DetectionSignals) -> ProtocolKind | None:
    forced = ProtocolKind.parse(signals.force_protocol)
    if forced is not None:
        return forced
    if signals.force_sixel is not None:
        return ProtocolKind.SIXEL
    return None


def has_windows_terminal(signals: DetectionSignals) -> bool:
    return signals.wt_session is not None or signals.wt_profile_id is not None


def has_iterm2(signals: DetectionSignals) -> bool:
    return signals.term_program == "iTerm.app" or signals.iterm_session_id is not None


def has_kitty(signals: DetectionSignals) -> bool:
    return signals.kitty_window_id is not None or signals.kitty_pid is not None or "kitty" in _lower(signals.term)


def has_sixel_term(signals: DetectionSignals) -> bool:
    term = _lower(signals.term)
    if "sixel" in term:
        return True
    return any(name in term for name in SIXEL_TERMS)


def detect(signals: DetectionSignals, probe: ProbeResult | None = None) -> ProtocolKind:
    forced = forced_protocol(signals)
    if forced is not None:
        logger.debug("protocol forced to %s", forced.value)
        return forced
    if probe is not None:
        return probe.protocol
    if has_windows_terminal(signals):
        return ProtocolKind.SIXEL
    if has_iterm2(signals):
        return ProtocolKind.ITERM2
    if has_kitty(signals):
        return ProtocolKind.KITTY
    if has_sixel_term(signals):
        return ProtocolKind.SIXEL
    return ProtocolKind.NONE


def supported_protocols(signals: DetectionSignals) -> dict[ProtocolKind, bool]:
    """Per-protocol verdicts, each judged on its own markers."""
    forced = forced_protocol(signals)
    return {
        ProtocolKind.ITERM2: forced is ProtocolKind.ITERM2 or has_iterm2(signals),
        ProtocolKind.KITTY: forced is ProtocolKind.KITTY or has_kitty(signals),
        ProtocolKind.SIXEL: forced is ProtocolKind.SIXEL or has_windows_terminal(signals) or has_sixel_term(signals),
    }
