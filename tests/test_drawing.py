import base64
import io

import pytest
from PIL import Image

from drawing import FRAME_SIZE, DrawingCanvas, fit_within


def decode(data_url):
    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    return Image.open(io.BytesIO(base64.b64decode(data_url[len(prefix):])))


def test_fit_within_keeps_aspect_ratio():
    assert fit_within((400, 400)) == (500, 500)
    assert fit_within((1600, 500)) == (800, 250)
    assert fit_within((0, 10)) == FRAME_SIZE


def test_canvas_is_sized_to_background(tmp_path, make_png):
    path = tmp_path / "q.png"
    path.write_bytes(make_png((300, 600)))

    canvas = DrawingCanvas.for_background(path)

    assert (canvas.width, canvas.height) == (250, 500)
    assert canvas.is_empty


def test_missing_background_falls_back_to_frame(tmp_path):
    canvas = DrawingCanvas.for_background(tmp_path / "nope.png")
    assert (canvas.width, canvas.height) == FRAME_SIZE


def test_background_from_bytes(make_png):
    canvas = DrawingCanvas.for_background(make_png((1600, 1000)))
    assert (canvas.width, canvas.height) == (800, 500)


def test_pointer_input_builds_strokes():
    canvas = DrawingCanvas(100, 100)
    canvas.pointer_down(10, 10)
    canvas.pointer_move(20, 20)
    canvas.pointer_move(500, -5)
    canvas.pointer_up()

    assert len(canvas.strokes) == 1
    assert canvas.strokes[0].points == [(10.0, 10.0), (20.0, 20.0), (100.0, 0.0)]


def test_changing_colour_keeps_existing_strokes():
    canvas = DrawingCanvas(100, 100, pen_color="#5b8cff", pen_width=6)
    canvas.add_stroke([(10, 50), (90, 50)])
    canvas.pen_color = "#ff5c5c"
    canvas.add_stroke([(50, 10), (50, 90)])

    assert [s.color for s in canvas.strokes] == ["#5b8cff", "#ff5c5c"]

    img = decode(canvas.export()).convert("RGBA")
    assert img.getpixel((20, 50)) == (0x5b, 0x8c, 0xff, 255)
    assert img.getpixel((50, 80)) == (0xff, 0x5c, 0x5c, 255)


def test_unknown_colour_is_rejected():
    canvas = DrawingCanvas(10, 10)
    with pytest.raises(ValueError):
        canvas.pen_color = "not-a-colour"
    assert canvas.pen_color == "#5b8cff"


def test_clear_and_export_transparent():
    canvas = DrawingCanvas(40, 30)
    canvas.add_stroke([(5, 5)])
    assert not canvas.is_empty

    canvas.clear()

    assert canvas.is_empty
    img = decode(canvas.export())
    assert img.size == (40, 30)
    assert img.mode == "RGBA"
    assert img.getextrema()[3] == (0, 0)
