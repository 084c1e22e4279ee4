from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from inlinepic.detect import ProtocolKind
from inlinepic.image import RasterImage

ESC = "\x1b"
BEL = "\x07"
ST = ESC + "\\"  # string terminator


class EncodingError(RuntimeError):
    """An encoder could not turn an image into escape sequences."""


@dataclass(frozen=True)
class EncodedPayload:
    protocol: ProtocolKind
    sequences: tuple[str, ...]  # in the order the terminal must receive them

    @property
    def text(self) -> str:
        return "".join(self.sequences)

    @property
    def chunk_count(self) -> int:
        return len(self.sequences)


class Encoder(Protocol):
    protocol: ProtocolKind

    def encode(self, image: RasterImage) -> EncodedPayload:
        """Turn a prepared RGBA image into the escape sequences for one protocol."""
        ...
