import base64
import io

from inlinepic.detect import ProtocolKind
from inlinepic.encoder import BEL, ESC, EncodedPayload, EncodingError
from inlinepic.image import RasterImage


def encode_png(image: RasterImage) -> bytes:
    buf = io.BytesIO()
    try:
        image.to_pil().save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise EncodingError(f"encoding png for iterm2: {e}") from e
    return buf.getvalue()


class ITerm2Encoder:
    """Inline image (OSC 1337) carrying a base64 PNG. Always a single sequence."""

    protocol = ProtocolKind.ITERM2

    def encode(self, image: RasterImage) -> EncodedPayload:
        png = encode_png(image)
        b64 = base64.b64encode(png).decode("ascii")
        seq = (
            f"{ESC}]1337;File=inline=1;size={len(png)};width={image.width}px;height={image.height}px;"
            f"doNotMoveCursor=1:{b64}{BEL}"
        )
        return EncodedPayload(self.protocol, (seq,))
