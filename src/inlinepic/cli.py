import argparse
import logging
import os
import sys
from pathlib import Path

from inlinepic.detect import PROTOCOL_ENV, DetectionSignals, ProtocolKind
from inlinepic.dispatch import show_file
from inlinepic.fallback import image_to_text
from inlinepic.image import load_image
from inlinepic.report import protocol_report
from inlinepic.terminal import get_terminal_size


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Show an image inline using the terminal's graphics protocol")
    parser.add_argument("image", help="Path to input image")
    parser.add_argument(
        "-s", "--size", type=int, default=None, help="Text fallback width in columns (default: terminal width)"
    )
    parser.add_argument("-c", "--colour", action="store_true", default=False, help="Colour the text fallback")
    parser.add_argument(
        "-f",
        "--force",
        default=None,
        choices=[kind.value for kind in ProtocolKind],
        help=f"Use this protocol regardless of detection (same as {PROTOCOL_ENV})",
    )
    parser.add_argument("-p", "--protocols", action="store_true", help="Print which graphics protocols were detected")
    parser.add_argument("-d", "--debug", action="store_true", help="Log image diagnostics to stderr")
    args = parser.parse_args(argv)

    environ = dict(os.environ)
    if args.force is not None:
        environ[PROTOCOL_ENV] = args.force
    interactive = sys.stdout.isatty()
    signals = DetectionSignals.from_environ(environ, interactive=interactive)
    if args.debug or signals.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"File not found: {image_path}", file=sys.stderr)
        sys.exit(1)

    outcome = show_file(image_path, signals)
    if outcome.asset_error:
        print(f"Warning: could not render image: {outcome.reason}", file=sys.stderr)
    elif outcome:
        print()
    else:
        width = args.size if args.size is not None else get_terminal_size()[0]
        print(image_to_text(load_image(image_path), width=width, colour=args.colour))

    if args.protocols:
        print(protocol_report(signals, image_bytes=image_path.stat().st_size, colour=interactive))
