import io
import logging
import re

import pytest
from PIL import Image

from inlinepic.detect import DetectionSignals, ProbeResult, ProtocolKind
from inlinepic.dispatch import Dispatcher, RenderState, render, show_file
from inlinepic.encoder import EncodingError
from inlinepic.terminal import TerminalGeometry

ITERM2 = DetectionSignals(term_program="iTerm.app")
KITTY = DetectionSignals(kitty_window_id="1")
DUMB = DetectionSignals(term="dumb")
TERM_80x24 = TerminalGeometry(80, 24)

KITTY_FLAGS = re.compile(r"\x1b_G[^;]*m=(\d)[;,]")
KITTY_SIZE = re.compile(r"s=(\d+),v=(\d+)")


class ExplodingEncoder:
    protocol = ProtocolKind.KITTY

    def __init__(self):
        self.calls = 0

    def encode(self, image):
        self.calls += 1
        raise EncodingError("boom")


class BrokenSink:
    def write(self, data):
        raise OSError("stdout closed")

    def flush(self):
        pass


def png_bytes(width, height):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (0, 128, 255)).save(buf, format="PNG")
    return buf.getvalue()


def test_iterm2_end_to_end(make_image, sink):
    outcome = render(make_image(400, 300), ITERM2, geometry=TERM_80x24, sink=sink)
    assert outcome.emitted
    assert outcome.state is RenderState.EMITTED
    assert outcome.protocol is ProtocolKind.ITERM2
    assert outcome.chunk_count == 1
    assert sink.text.count("\x1b]1337;File=") == 1
    assert "width=400px;height=300px" in sink.text
    assert sink.flushes == 1


def test_dumb_terminal_emits_nothing(make_image, sink):
    encoder = ExplodingEncoder()
    encoders = {kind: encoder for kind in (ProtocolKind.ITERM2, ProtocolKind.KITTY, ProtocolKind.SIXEL)}
    outcome = Dispatcher(sink, encoders).render(make_image(10, 10), DUMB, geometry=TERM_80x24)
    assert not outcome
    assert outcome.state is RenderState.NO_PROTOCOL
    assert outcome.reason == "no supported protocol"
    assert encoder.calls == 0
    assert sink.text == ""


def test_kitty_4096x1_four_chunks(make_image, sink):
    outcome = render(make_image(4096, 1), KITTY, sink=sink)
    assert outcome.chunk_count == 4
    assert KITTY_FLAGS.findall(sink.text) == ["1", "1", "1", "0"]


def test_unknown_geometry_keeps_full_size(make_image, sink):
    render(make_image(2000, 1000), KITTY, geometry=None, sink=sink)
    assert KITTY_SIZE.search(sink.text).groups() == ("2000", "1000")


def test_image_downscaled_to_terminal(make_image, sink):
    render(make_image(160, 80), KITTY, geometry=TerminalGeometry(10, 5), sink=sink)
    assert KITTY_SIZE.search(sink.text).groups() == ("80", "40")


def test_sixel_end_to_end(make_image, sink):
    outcome = render(make_image(20, 12), DetectionSignals(term="mlterm"), sink=sink)
    assert outcome.protocol is ProtocolKind.SIXEL
    assert outcome.chunk_count == 1
    assert sink.text.startswith("\x1bP")
    assert sink.text.endswith("\x1b\\")


@pytest.mark.parametrize("image", [None, "empty"])
def test_missing_image(make_image, sink, image):
    if image == "empty":
        image = make_image(0, 0)
    outcome = render(image, KITTY, sink=sink)
    assert not outcome
    assert outcome.reason == "empty image"
    assert sink.text == ""


def test_encoder_failure_is_soft(make_image, sink, caplog):
    dispatcher = Dispatcher(sink, {ProtocolKind.KITTY: ExplodingEncoder()})
    with caplog.at_level(logging.WARNING, logger="inlinepic.dispatch"):
        outcome = dispatcher.render(make_image(4, 4), KITTY)
    assert not outcome
    assert outcome.protocol is ProtocolKind.KITTY
    assert outcome.reason == "boom"
    assert not outcome.asset_error
    assert "boom" in caplog.text
    assert sink.text == ""
    assert dispatcher.state is RenderState.NO_PROTOCOL


def test_write_failure_is_soft(make_image):
    outcome = render(make_image(4, 4), KITTY, sink=BrokenSink())
    assert not outcome
    assert outcome.reason == "stdout closed"


def test_missing_encoder(make_image, sink):
    outcome = Dispatcher(sink, {}).render(make_image(4, 4), KITTY)
    assert not outcome
    assert outcome.reason == "no encoder for kitty"


def test_dispatcher_state_after_success(make_image, sink):
    dispatcher = Dispatcher(sink)
    dispatcher.render(make_image(4, 4), KITTY)
    assert dispatcher.state is RenderState.EMITTED


def test_debug_trace(make_image, sink, caplog):
    with caplog.at_level(logging.DEBUG, logger="inlinepic"):
        render(make_image(4096, 1), KITTY, sink=sink)
    assert "img_px=4096x1" in caplog.text
    assert "chunks=4" in caplog.text


def test_capability_result_ignored_when_not_interactive(make_image, sink):
    probe = ProbeResult(ProtocolKind.KITTY)
    outcome = render(make_image(4, 4), DUMB, sink=sink, probe=probe)
    assert not outcome


def test_capability_kitty_is_encoded_locally(make_image, sink):
    signals = DetectionSignals(term="dumb", interactive=True)
    probe = ProbeResult(ProtocolKind.KITTY, payload="not used")
    outcome = render(make_image(4, 4), signals, sink=sink, probe=probe)
    assert outcome.protocol is ProtocolKind.KITTY
    assert sink.text.startswith("\x1b_G")
    assert "not used" not in sink.text


def test_block_characters_are_not_success(make_image, sink):
    signals = DetectionSignals(kitty_window_id="1", interactive=True)
    outcome = render(make_image(4, 4), signals, sink=sink, probe=ProbeResult(ProtocolKind.NONE))
    assert not outcome
    assert outcome.reason == "block characters only"
    assert sink.text == ""


@pytest.mark.parametrize("kind", [ProtocolKind.ITERM2, ProtocolKind.SIXEL])
def test_ready_made_payload_is_emitted(make_image, sink, kind):
    signals = DetectionSignals(interactive=True)
    probe = ProbeResult(kind, 9, 18, payload="<payload>")
    outcome = render(make_image(4, 4), signals, sink=sink, probe=probe)
    assert outcome.emitted
    assert outcome.protocol is kind
    assert sink.text == "<payload>"
    assert sink.flushes == 1


def test_sixel_without_payload_is_encoded(make_image, sink):
    signals = DetectionSignals(interactive=True)
    outcome = render(make_image(6, 6), signals, sink=sink, probe=ProbeResult(ProtocolKind.SIXEL))
    assert outcome.emitted
    assert sink.text.startswith("\x1bP")


def test_measured_cell_size_sets_pixel_area(make_image, sink):
    signals = DetectionSignals(interactive=True)
    probe = ProbeResult(ProtocolKind.KITTY, cell_width=10, cell_height=20)
    render(make_image(160, 160), signals, geometry=TerminalGeometry(8, 4), sink=sink, probe=probe)
    assert KITTY_SIZE.search(sink.text).groups() == ("80", "80")


def test_measured_cell_size_without_geometry(make_image, sink):
    signals = DetectionSignals(interactive=True)
    probe = ProbeResult(ProtocolKind.KITTY, cell_width=1, cell_height=1)
    render(make_image(100, 100), signals, geometry=None, sink=sink, probe=probe)
    # default 80x24 grid of 1px cells
    assert KITTY_SIZE.search(sink.text).groups() == ("24", "24")


def test_override_beats_ready_made_payload(make_image, sink):
    signals = DetectionSignals(force_protocol="kitty", interactive=True)
    probe = ProbeResult(ProtocolKind.ITERM2, payload="<payload>")
    outcome = render(make_image(4, 4), signals, sink=sink, probe=probe)
    assert outcome.protocol is ProtocolKind.KITTY
    assert "<payload>" not in sink.text


def test_show_file_renders_bytes(sink):
    outcome = show_file(png_bytes(8, 8), KITTY, sink=sink)
    assert outcome.emitted
    assert "s=8,v=8" in sink.text


def test_show_file_renders_path(tmp_path, sink):
    path = tmp_path / "logo.png"
    path.write_bytes(png_bytes(3, 2))
    assert show_file(path, ITERM2, sink=sink).protocol is ProtocolKind.ITERM2


def test_show_file_undecodable_asset(sink, caplog):
    with caplog.at_level(logging.ERROR, logger="inlinepic.dispatch"):
        outcome = show_file(b"\x89PNG but not really", KITTY, sink=sink)
    assert not outcome
    assert outcome.asset_error
    assert outcome.state is RenderState.NO_PROTOCOL
    assert "Cannot decode image" in caplog.text
    assert sink.text == ""


def test_show_file_oversized_asset(sink, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    outcome = show_file(png_bytes(40, 40), KITTY, sink=sink)
    assert not outcome
    assert outcome.asset_error
    assert "Cannot decode image" in outcome.reason
    assert sink.text == ""


def test_show_file_reads_environment_when_no_signals(clean_env, sink):
    clean_env.setenv("KITTY_PID", "77")
    outcome = show_file(png_bytes(2, 2), sink=sink)
    assert outcome.protocol is ProtocolKind.KITTY


def test_show_file_nothing_detected_from_environment(clean_env, sink):
    clean_env.setenv("TERM", "dumb")
    outcome = show_file(png_bytes(2, 2), sink=sink)
    assert not outcome
    assert not outcome.asset_error
