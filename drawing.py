"""
drawing.py – freehand drawing overlay rendered with Pillow

A canvas is a transparent layer laid over a question image.  It records
strokes as point lists in canvas coordinates and only rasterises them on
export, so the pen colour can change at any time without touching strokes
that are already on the canvas.
"""

import base64
import io
import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from PIL import Image, ImageColor, ImageDraw, UnidentifiedImageError

from models import DEFAULT_PEN_COLOR

logger = logging.getLogger("mistakebook.drawing")

# The overlay frame has a 16:10 aspect ratio; backgrounds are fitted inside it.
FRAME_SIZE        = (800, 500)
DEFAULT_PEN_WIDTH = 2.5

Point = tuple[float, float]


def validate_color(color: str) -> str:
    """Return *color* unchanged; raises ValueError for anything Pillow cannot parse."""
    ImageColor.getrgb(color)
    return color


@dataclass
class Stroke:
    color:  str
    width:  float
    points: list[Point] = field(default_factory=list)


def fit_within(size: tuple[int, int], frame: tuple[int, int] = FRAME_SIZE) -> tuple[int, int]:
    """Scale *size* to the largest size that fits in *frame* with the same ratio."""
    w, h = size
    fw, fh = frame
    if w <= 0 or h <= 0:
        return frame
    scale = min(fw / w, fh / h)
    return max(1, round(w * scale)), max(1, round(h * scale))


class DrawingCanvas:
    def __init__(
        self,
        width: int = FRAME_SIZE[0],
        height: int = FRAME_SIZE[1],
        pen_color: str = DEFAULT_PEN_COLOR,
        pen_width: float = DEFAULT_PEN_WIDTH,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")
        self.width     = int(width)
        self.height    = int(height)
        self.pen_width = pen_width
        self.strokes: list[Stroke] = []
        self._active: Optional[Stroke] = None
        self._pen_color = DEFAULT_PEN_COLOR
        self.pen_color = pen_color

    @classmethod
    def for_background(
        cls,
        background: Union[str, "os.PathLike[str]", bytes, None],
        frame: tuple[int, int] = FRAME_SIZE,
        **kwargs,
    ) -> "DrawingCanvas":
        """Blank canvas sized to fit the background image inside *frame*.

        Falls back to the full frame when the image is missing or unreadable.
        """
        size = frame
        if background is not None:
            try:
                source = io.BytesIO(background) if isinstance(background, bytes) else background
                with Image.open(source) as img:
                    size = fit_within(img.size, frame)
            except (OSError, UnidentifiedImageError) as exc:
                logger.warning(f"Could not read background image, using frame size: {exc}")
        return cls(size[0], size[1], **kwargs)

    # ── Pen ──────────────────────────────────────────────────────────────────

    @property
    def pen_color(self) -> str:
        return self._pen_color

    @pen_color.setter
    def pen_color(self, color: str) -> None:
        self._pen_color = validate_color(color)

    # ── Pointer input ────────────────────────────────────────────────────────

    def _clamp(self, x: float, y: float) -> Point:
        return (
            min(max(float(x), 0.0), float(self.width)),
            min(max(float(y), 0.0), float(self.height)),
        )

    def pointer_down(self, x: float, y: float) -> None:
        self.pointer_up()
        self._active = Stroke(self.pen_color, self.pen_width, [self._clamp(x, y)])

    def pointer_move(self, x: float, y: float) -> None:
        if self._active is not None:
            self._active.points.append(self._clamp(x, y))

    def pointer_up(self) -> None:
        if self._active is not None:
            self.strokes.append(self._active)
            self._active = None

    def add_stroke(self, points: Sequence[Point]) -> None:
        """Record a complete stroke in the current pen colour."""
        if not points:
            return
        first, *rest = points
        self.pointer_down(*first)
        for x, y in rest:
            self.pointer_move(x, y)
        self.pointer_up()

    def clear(self) -> None:
        self.strokes = []
        self._active = None

    @property
    def is_empty(self) -> bool:
        return not self.strokes and self._active is None

    # ── Export ───────────────────────────────────────────────────────────────

    def render(self) -> Image.Image:
        img = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        strokes = self.strokes + ([self._active] if self._active else [])
        for stroke in strokes:
            fill = ImageColor.getcolor(stroke.color, "RGBA")
            width = max(1, round(stroke.width))
            if len(stroke.points) == 1:
                x, y = stroke.points[0]
                r = stroke.width / 2
                draw.ellipse((x - r, y - r, x + r, y + r), fill=fill)
            else:
                draw.line(stroke.points, fill=fill, width=width, joint="curve")
        return img

    def export(self) -> str:
        """Current strokes as a PNG data URL."""
        buf = io.BytesIO()
        self.render().save(buf, "PNG")
        encoded = base64.b64encode(buf.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
