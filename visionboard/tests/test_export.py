import io
import unittest

from PIL import Image

from visionboard.errors import ValidationError
from visionboard.export import CAPTION_HEIGHT, CELL_SIZE, GAP, PADDING, render_board_png


def _png(color) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (300, 120), color).save(out, format="PNG")
    return out.getvalue()


class RenderBoardPngTests(unittest.TestCase):
    def test_full_grid_dimensions(self):
        png = render_board_png("My 2025 Vision", [_png((255, 0, 0))] * 12)
        with Image.open(io.BytesIO(png)) as img:
            self.assertEqual(img.format, "PNG")
            self.assertEqual(img.width, PADDING * 2 + 4 * CELL_SIZE + 3 * GAP)
            self.assertEqual(img.height, PADDING * 2 + CAPTION_HEIGHT + 3 * CELL_SIZE + 2 * GAP)
            # First cell is filled edge to edge after cropping.
            x, y = PADDING + CELL_SIZE // 2, PADDING + CAPTION_HEIGHT + CELL_SIZE // 2
            self.assertEqual(img.convert("RGB").getpixel((x, y)), (255, 0, 0))

    def test_full_grid_required(self):
        contents = [_png((0, 0, 255))] * 11 + [None]
        with self.assertRaises(ValidationError):
            render_board_png("Board", contents)

    def test_wrong_slot_count(self):
        with self.assertRaises(ValidationError):
            render_board_png("Board", [None] * 4, require_full_grid=False)

    def test_partial_grid_draws_blank_cells(self):
        contents = [None] * 12
        contents[0] = _png((0, 128, 0))
        contents[1] = b"definitely not an image"
        png = render_board_png("Demo", contents, require_full_grid=False)
        with Image.open(io.BytesIO(png)) as img:
            rgb = img.convert("RGB")
            top = PADDING + CAPTION_HEIGHT + CELL_SIZE // 2
            self.assertEqual(rgb.getpixel((PADDING + CELL_SIZE // 2, top)), (0, 128, 0))
            second_x = PADDING + CELL_SIZE + GAP + CELL_SIZE // 2
            self.assertEqual(rgb.getpixel((second_x, top)), (238, 238, 238))


if __name__ == "__main__":
    unittest.main()
