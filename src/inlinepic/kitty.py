import base64

from inlinepic.detect import ProtocolKind
from inlinepic.encoder import ESC, ST, EncodedPayload, EncodingError
from inlinepic.image import RasterImage

# Raw bytes per chunk before base64; keeps each sequence under tmux's line limits
CHUNK_SIZE = 4096


def iter_chunks(data: bytes, size: int):
    for start in range(0, len(data), size):
        yield data[start : start + size]


class KittyEncoder:
    """Kitty graphics protocol, raw RGBA (f=32) sent directly (t=d) in chunks.

    The first sequence carries the image header; the rest carry only the
    continuation flag. `m=1` on every chunk but the last is what tells the
    terminal more data follows, so the last chunk must carry `m=0`.
    """

    protocol = ProtocolKind.KITTY

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def encode(self, image: RasterImage) -> EncodedPayload:
        if image.is_empty:
            raise EncodingError("cannot send an empty image")
        chunks = list(iter_chunks(image.pixels, self.chunk_size))
        last = len(chunks) - 1
        sequences = []
        for i, chunk in enumerate(chunks):
            payload = base64.b64encode(chunk).decode("ascii")
            more = 1 if i < last else 0
            if i == 0:
                # q=2 silences replies; a=T transmits and displays; U=1 is a virtual placement
                header = f"q=2,i=1,a=T,U=1,f=32,t=d,s={image.width},v={image.height},m={more}"
            else:
                header = f"q=2,m={more}"
            sequences.append(f"{ESC}_G{header};{payload}{ST}")
        return EncodedPayload(self.protocol, tuple(sequences))
