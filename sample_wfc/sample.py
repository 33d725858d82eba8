import numpy as np
from PIL import Image, ImageColor
from typing import Iterable, Sequence, Tuple, Union

from .errors import InvalidConfiguration

Color = Tuple[int, int, int, int]
ColorLike = Union[str, Sequence[int]]

WHITE: Color = (255, 255, 255, 255)
BLACK: Color = (0, 0, 0, 255)
RED: Color = (255, 0, 0, 255)
MAGENTA: Color = (255, 0, 255, 255)


def parse_color(value: ColorLike) -> Color:
    """
    Convert a color name, hex string or RGB(A) sequence to an RGBA tuple.

    Args:
        value: e.g. "white", "#ff0000", (0, 0, 0) or (0, 0, 0, 128)

    Returns:
        Color: 4-tuple of ints in 0..255, alpha defaults to 255
    """
    if isinstance(value, str):
        try:
            channels = ImageColor.getrgb(value)
        except ValueError as e:
            raise InvalidConfiguration(f"Unknown color: {value!r}") from e
    else:
        channels = tuple(int(c) for c in value)

    if len(channels) == 3:
        channels = channels + (255,)
    if len(channels) != 4 or any(c < 0 or c > 255 for c in channels):
        raise InvalidConfiguration(f"Invalid color: {value!r}")
    return tuple(channels)


def palettize(rgba: np.ndarray) -> Tuple[Tuple[Color, ...], np.ndarray]:
    """
    Split an RGBA array into its distinct colors and per-pixel palette indices.

    Args:
        rgba: uint8 array of shape (..., 4)

    Returns:
        tuple: (palette, indices) where indices has shape rgba.shape[:-1]
    """
    flat = rgba.reshape(-1, 4)
    colors, inverse = np.unique(flat, axis=0, return_inverse=True)
    palette = tuple(tuple(int(c) for c in row) for row in colors)
    indices = np.asarray(inverse, dtype=np.int32).reshape(rgba.shape[:-1])
    return palette, indices


class Sample:
    """
    Immutable grid of colors the output should locally resemble.

    Pixels are stored row-major as ``pixels[y, x]`` (RGBA) and mirrored as
    palette indices in ``indices[y, x]``.
    """

    def __init__(self, pixels: np.ndarray) -> None:
        pixels = np.asarray(pixels, dtype=np.uint8)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise InvalidConfiguration(
                f"Sample must have shape (height, width, 3|4), got {pixels.shape}"
            )
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidConfiguration("Sample is empty")
        if pixels.shape[2] == 3:
            alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
            pixels = np.concatenate([pixels, alpha], axis=2)

        self.pixels = pixels.copy()
        self.pixels.setflags(write=False)
        self.height, self.width = self.pixels.shape[:2]

        self.palette, self.indices = palettize(self.pixels)
        self.indices.setflags(write=False)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[ColorLike]]) -> "Sample":
        """Build a sample from nested rows of colors (top row first)"""
        grid = [[parse_color(c) for c in row] for row in rows]
        if not grid or len({len(row) for row in grid}) != 1:
            raise InvalidConfiguration("Sample rows must be non-empty and of equal length")
        return cls(np.array(grid, dtype=np.uint8))

    def color_at(self, x: int, y: int) -> Color:
        return self.palette[self.indices[y, x]]

    def colors(self) -> set:
        """Set of distinct colors in the sample"""
        return set(self.palette)

    def __repr__(self) -> str:
        return f"Sample({self.width}x{self.height}, {len(self.palette)} colors)"


def bordered_sample(size: int = 5, border: int = 1,
                    outer: ColorLike = "white", inner: ColorLike = "black",
                    center: ColorLike = "red") -> Sample:
    """
    Square sample with an outer ring, a filled interior and a single center pixel.

    ``bordered_sample(5, 1)`` is a white ring around black with a red center;
    ``bordered_sample(11, 3)`` is the larger variant with a 3 pixel ring.
    """
    if size < 1 or border < 0:
        raise InvalidConfiguration(f"Invalid bordered sample: size={size}, border={border}")

    pixels = np.empty((size, size, 4), dtype=np.uint8)
    pixels[:, :] = parse_color(outer)
    if size - 2 * border > 0:
        pixels[border:size - border, border:size - border] = parse_color(inner)
    pixels[size // 2, size // 2] = parse_color(center)
    return Sample(pixels)


def solid_sample(size: int = 5, color: ColorLike = "black") -> Sample:
    """Square sample containing a single color"""
    if size < 1:
        raise InvalidConfiguration(f"Invalid sample size: {size}")
    pixels = np.empty((size, size, 4), dtype=np.uint8)
    pixels[:, :] = parse_color(color)
    return Sample(pixels)


def load_sample(image_path: str) -> Sample:
    """Load a sample from any image file Pillow can read"""
    with Image.open(image_path) as image:
        rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8)
    return Sample(rgba)

