"""Local image compositing surface backed by Pillow."""
import base64
import io
import math
from pathlib import Path

import httpx
from PIL import Image, ImageColor


class CompositorError(RuntimeError):
    pass


def decode_data_url(data_url: str) -> bytes:
    header, _, encoded = data_url.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise CompositorError("Unsupported data URL")
    return base64.b64decode(encoded)


def to_data_url(image: Image.Image, fmt: str = "PNG") -> str:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/{fmt.lower()};base64,{encoded}"


class ImageCompositor:
    """Loads image references and lays them out on a single canvas."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 60.0):
        self._client = client
        self.timeout = timeout

    async def load(self, image_ref: str) -> Image.Image:
        if image_ref.startswith("data:"):
            raw = decode_data_url(image_ref)
        elif image_ref.startswith(("http://", "https://")):
            raw = await self._fetch(image_ref)
        else:
            path = Path(image_ref)
            if not path.is_file():
                raise CompositorError(f"Image not found: {image_ref}")
            raw = path.read_bytes()
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except OSError as e:
            raise CompositorError(f"Could not decode image: {e}") from e
        return image.convert("RGBA")

    async def _fetch(self, url: str) -> bytes:
        try:
            if self._client is not None:
                resp = await self._client.get(url)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise CompositorError(f"Could not fetch image: {e}") from e
        return resp.content

    async def grid(
        self,
        image_refs: list[str],
        columns: int | None = None,
        gap: int = 0,
        background: str = "#000000",
    ) -> str:
        """Tile images into a grid of equal cells; returns a PNG data URL.

        Each cell is as large as the largest image; smaller images are
        centred in their cell.
        """
        if not image_refs:
            raise CompositorError("No images to composite")
        images = [await self.load(ref) for ref in image_refs]

        columns = columns or math.ceil(math.sqrt(len(images)))
        columns = max(1, min(columns, len(images)))
        rows = math.ceil(len(images) / columns)
        cell_w = max(img.width for img in images)
        cell_h = max(img.height for img in images)
        gap = max(0, int(gap))

        try:
            fill = ImageColor.getcolor(background, "RGBA")
        except ValueError as e:
            raise CompositorError(f"Invalid background colour: {background}") from e

        canvas = Image.new(
            "RGBA",
            (columns * cell_w + (columns - 1) * gap, rows * cell_h + (rows - 1) * gap),
            fill,
        )
        for index, img in enumerate(images):
            row, col = divmod(index, columns)
            x = col * (cell_w + gap) + (cell_w - img.width) // 2
            y = row * (cell_h + gap) + (cell_h - img.height) // 2
            canvas.paste(img, (x, y), img)
        return to_data_url(canvas)
