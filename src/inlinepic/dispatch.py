"""Negotiate a protocol, size the image for it, encode it and write it out.

A terminal without graphics support is the common case, not an error: every
failure below the dispatcher is turned into a `RenderOutcome` that says no
image was shown, and the caller falls back to text.

Writes go to a single shared stream. Callers that produce other output
concurrently must serialize access to it; interleaved partial escape
sequences leave the terminal in a corrupted state.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from inlinepic.detect import DetectionSignals, ProbeResult, ProtocolKind, detect
from inlinepic.encoder import EncodedPayload, Encoder, EncodingError
from inlinepic.image import ImageLoadError, RasterImage, load_image
from inlinepic.iterm2 import ITerm2Encoder
from inlinepic.kitty import KittyEncoder
from inlinepic.prepare import prepare
from inlinepic.sixel import SixelEncoder
from inlinepic.terminal import TerminalGeometry, query_geometry

logger = logging.getLogger(__name__)

# Grid assumed when a probe measured the cell size but the terminal size is unknown
DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 24


class RenderState(Enum):
    START = "start"
    DETECTING = "detecting"
    PREPARING = "preparing"
    ENCODING = "encoding"
    EMITTED = "emitted"
    NO_PROTOCOL = "no_protocol"


class Sink(Protocol):
    def write(self, data: str, /) -> object: ...

    def flush(self) -> None: ...


@dataclass(frozen=True)
class RenderOutcome:
    state: RenderState
    protocol: ProtocolKind = ProtocolKind.NONE
    reason: str | None = None
    chunk_count: int = 0
    asset_error: bool = False

    @property
    def emitted(self) -> bool:
        return self.state is RenderState.EMITTED

    def __bool__(self) -> bool:
        return self.emitted


def default_encoders() -> dict[ProtocolKind, Encoder]:
    return {
        ProtocolKind.ITERM2: ITerm2Encoder(),
        ProtocolKind.KITTY: KittyEncoder(),
        ProtocolKind.SIXEL: SixelEncoder(),
    }


def _probe_geometry(geometry: TerminalGeometry | None, probe: ProbeResult) -> TerminalGeometry | None:
    """Swap in the cell size a probe measured, keeping the known grid."""
    cell = probe.cell_size
    if cell is None:
        return geometry
    columns, rows = (geometry.columns, geometry.rows) if geometry is not None else (DEFAULT_COLUMNS, DEFAULT_ROWS)
    return TerminalGeometry(columns, rows, cell[0], cell[1])


class Dispatcher:
    def __init__(self, sink: Sink | None = None, encoders: dict[ProtocolKind, Encoder] | None = None):
        self.sink = sys.stdout if sink is None else sink
        self.encoders = default_encoders() if encoders is None else encoders
        self.state = RenderState.START

    def _enter(self, state: RenderState) -> None:
        logger.debug("render state %s -> %s", self.state.value, state.value)
        self.state = state

    def _give_up(self, reason: str, protocol: ProtocolKind = ProtocolKind.NONE) -> RenderOutcome:
        self._enter(RenderState.NO_PROTOCOL)
        return RenderOutcome(RenderState.NO_PROTOCOL, protocol=protocol, reason=reason)

    def _emit(self, payload: EncodedPayload) -> RenderOutcome:
        self.sink.write(payload.text)
        self.sink.flush()
        self._enter(RenderState.EMITTED)
        return RenderOutcome(RenderState.EMITTED, protocol=payload.protocol, chunk_count=payload.chunk_count)

    def render(
        self,
        image: RasterImage | None,
        signals: DetectionSignals,
        geometry: TerminalGeometry | None = None,
        probe: ProbeResult | None = None,
    ) -> RenderOutcome:
        """Show `image` inline if the terminal can take it.

        `probe` is only trusted when the output is interactive. A probe that
        could only offer block characters counts as no protocol.
        """
        self.state = RenderState.START
        self._enter(RenderState.DETECTING)
        if image is None or image.is_empty:
            return self._give_up("empty image")

        if probe is not None and not signals.interactive:
            logger.debug("ignoring capability probe; output is not interactive")
            probe = None

        protocol = detect(signals, probe)
        logger.debug("img_px=%dx%d, chosen protocol=%s", image.width, image.height, protocol.value)
        if protocol is ProtocolKind.NONE:
            if probe is not None and probe.protocol is ProtocolKind.NONE:
                return self._give_up("block characters only")
            return self._give_up("no supported protocol")

        from_probe = probe is not None and probe.protocol is protocol
        if from_probe:
            geometry = _probe_geometry(geometry, probe)

        try:
            # A probe's Kitty payload is never used; Kitty is always encoded here
            if from_probe and probe.payload and protocol in (ProtocolKind.ITERM2, ProtocolKind.SIXEL):
                logger.debug("using probe payload for %s; encoded_len=%d", protocol.value, len(probe.payload))
                self._enter(RenderState.ENCODING)
                return self._emit(EncodedPayload(protocol, (probe.payload,)))

            encoder = self.encoders.get(protocol)
            if encoder is None:
                return self._give_up(f"no encoder for {protocol.value}", protocol)

            self._enter(RenderState.PREPARING)
            prepared = prepare(image, geometry)
            self._enter(RenderState.ENCODING)
            payload = encoder.encode(prepared)
            logger.debug(
                "encoded %dx%d as %s; encoded_len=%d, chunks=%d",
                prepared.width,
                prepared.height,
                protocol.value,
                len(payload.text),
                payload.chunk_count,
            )
            return self._emit(payload)
        except (EncodingError, ValueError, OSError) as e:
            logger.warning("could not render image via %s: %s", protocol.value, e)
            return self._give_up(str(e), protocol)


def render(
    image: RasterImage | None,
    signals: DetectionSignals,
    geometry: TerminalGeometry | None = None,
    sink: Sink | None = None,
    probe: ProbeResult | None = None,
) -> RenderOutcome:
    return Dispatcher(sink).render(image, signals, geometry=geometry, probe=probe)


def _is_interactive(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty()) if isatty is not None else False
    except (OSError, ValueError):
        return False


def show_file(
    source: str | Path | bytes,
    signals: DetectionSignals | None = None,
    geometry: TerminalGeometry | None = None,
    sink: Sink | None = None,
    probe: ProbeResult | None = None,
) -> RenderOutcome:
    """Decode an image asset and render it.

    A source that can't be decoded is a packaging problem rather than a
    terminal limitation, so it is logged as an error and flagged with
    `asset_error`, but it still only disables the image.
    """
    try:
        image = load_image(source)
    except ImageLoadError as e:
        logger.error("could not render image: %s", e)
        return RenderOutcome(RenderState.NO_PROTOCOL, reason=str(e), asset_error=True)

    stream = sys.stdout if sink is None else sink
    if signals is None:
        signals = DetectionSignals.from_environ(interactive=_is_interactive(stream))
    if geometry is None and _is_interactive(stream):
        geometry = query_geometry(stream)
    return Dispatcher(stream).render(image, signals, geometry=geometry, probe=probe)
