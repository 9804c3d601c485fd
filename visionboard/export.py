"""
Flattens a board's grid into a single PNG for download.
"""

from __future__ import annotations

import io
import logging
from typing import Optional, Sequence

from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from visionboard.boards import GRID_COLS, GRID_ROWS, SLOT_COUNT
from visionboard.errors import ValidationError

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "vision-board.png"
CELL_SIZE = 225
GAP = 8
PADDING = 24
CAPTION_HEIGHT = 48
BACKGROUND = (255, 255, 255)
EMPTY_CELL = (238, 238, 238)
CAPTION_COLOR = (34, 34, 34)


def _cell_image(content: Optional[bytes], position: int) -> Optional[Image.Image]:
    if content is None:
        return None
    try:
        with Image.open(io.BytesIO(content)) as img:
            img = img.convert("RGB")
            return ImageOps.fit(img, (CELL_SIZE, CELL_SIZE), method=Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Slot %d is not a readable image: %s", position, exc)
        return None


def render_board_png(
    name: str,
    contents: Sequence[Optional[bytes]],
    *,
    require_full_grid: bool = True,
) -> bytes:
    """
    Rasterize the 3x4 grid with the board name as a caption.

    With `require_full_grid` every slot must hold content; otherwise empty
    or unreadable slots are drawn as blank cells.
    """
    if len(contents) != SLOT_COUNT:
        raise ValidationError(
            f"A board has exactly {SLOT_COUNT} slots, got {len(contents)}."
        )
    if require_full_grid and any(c is None for c in contents):
        raise ValidationError(f"Please fill all {SLOT_COUNT} squares before exporting.")

    width = PADDING * 2 + GRID_COLS * CELL_SIZE + (GRID_COLS - 1) * GAP
    height = (
        PADDING * 2 + CAPTION_HEIGHT + GRID_ROWS * CELL_SIZE + (GRID_ROWS - 1) * GAP
    )
    canvas = Image.new("RGB", (width, height), BACKGROUND)
    draw = ImageDraw.Draw(canvas)

    caption = (name or "").strip()
    if caption:
        draw.text(
            (PADDING, PADDING + CAPTION_HEIGHT // 3),
            caption,
            fill=CAPTION_COLOR,
            font=ImageFont.load_default(),
        )

    top = PADDING + CAPTION_HEIGHT
    for position, content in enumerate(contents):
        row, col = divmod(position, GRID_COLS)
        x = PADDING + col * (CELL_SIZE + GAP)
        y = top + row * (CELL_SIZE + GAP)
        cell = _cell_image(content, position)
        if cell is None:
            draw.rectangle((x, y, x + CELL_SIZE - 1, y + CELL_SIZE - 1), fill=EMPTY_CELL)
        else:
            canvas.paste(cell, (x, y))

    out = io.BytesIO()
    canvas.save(out, format="PNG")
    return out.getvalue()
