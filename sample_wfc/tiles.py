import numpy as np
from typing import Iterator, List, Sequence, Tuple, Union

from .errors import InvalidConfiguration
from .sample import Color, ColorLike, Sample, palettize, parse_color

TILE_SIZE = 3
CENTER = TILE_SIZE // 2

# Offsets to the eight neighbors, dx outer and dy inner (propagation order)
NEIGHBOR_OFFSETS = [
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)
]

# y grows downwards, as in the sample and output arrays
DIRECTION_NAMES = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
    "up_left": (-1, -1),
    "up_right": (1, -1),
    "down_left": (-1, 1),
    "down_right": (1, 1),
}

SCAN_ORDERS = ("row", "column")

Direction = Union[str, Tuple[int, int]]


def _check_offset(dx: int, dy: int) -> None:
    if (dx, dy) not in NEIGHBOR_OFFSETS:
        raise ValueError(f"Offset must be a neighbor direction, got ({dx}, {dy})")


def _direction_offset(direction: Direction) -> Tuple[int, int]:
    if isinstance(direction, str):
        try:
            return DIRECTION_NAMES[direction]
        except KeyError:
            raise ValueError(f"Unknown direction: {direction!r}") from None
    dx, dy = direction
    _check_offset(dx, dy)
    return dx, dy


class Tile:
    """
    A 3x3 patch of sample colors, identified by its extraction index.

    Pixels are palette indices stored as ``pixels[y, x]``. The pixel array
    is shared with the owning pool and is read-only.
    """
    __slots__ = ("index", "pixels", "palette")

    def __init__(self, index: int, pixels: np.ndarray, palette: Sequence[Color]) -> None:
        self.index = index
        self.pixels = pixels
        self.palette = palette

    def color_at(self, x: int, y: int) -> Color:
        return self.palette[self.pixels[y, x]]

    def center_color(self) -> Color:
        return self.color_at(CENTER, CENTER)

    def edge_color(self, direction: Direction) -> Color:
        """
        Border color on the given side of the tile.

        Args:
            direction: Name from DIRECTION_NAMES or an (dx, dy) offset

        Returns:
            Color: the border cell at (1 + dx, 1 + dy)
        """
        dx, dy = _direction_offset(direction)
        return self.color_at(CENTER + dx, CENTER + dy)

    def has_valid_overlap(self, color: ColorLike, dx: int, dy: int) -> bool:
        """
        Whether this tile may sit at offset (dx, dy) from a resolved cell of ``color``.

        Only the single border pixel facing the resolved cell, at local
        (1 - dx, 1 - dy), is compared.
        """
        _check_offset(dx, dy)
        return self.color_at(CENTER - dx, CENTER - dy) == parse_color(color)

    def __repr__(self) -> str:
        return f"Tile({self.index})"


class TilePool:
    """
    Immutable arena of tiles shared by every candidate stack.

    ``pixels[t, y, x]`` holds the palette index of tile ``t``; stacks refer
    to tiles by their index into this array.
    """

    def __init__(self, pixels: np.ndarray, palette: Sequence[Color]) -> None:
        pixels = np.asarray(pixels, dtype=np.int32)
        if pixels.size == 0:
            pixels = pixels.reshape(0, TILE_SIZE, TILE_SIZE)
        if pixels.ndim != 3 or pixels.shape[1:] != (TILE_SIZE, TILE_SIZE):
            raise InvalidConfiguration(
                f"Tiles must have shape (n, {TILE_SIZE}, {TILE_SIZE}), got {pixels.shape}"
            )
        if pixels.size and (pixels.min() < 0 or pixels.max() >= len(palette)):
            raise InvalidConfiguration("Tile pixels reference colors outside the palette")

        self.pixels = pixels.copy()
        self.pixels.setflags(write=False)
        self.palette = tuple(palette)
        self.tiles = [Tile(i, self.pixels[i], self.palette) for i in range(len(self.pixels))]

    @classmethod
    def from_grids(cls, grids: Sequence[Sequence[Sequence[ColorLike]]]) -> "TilePool":
        """
        Build a pool from literal 3x3 color grids (rows top to bottom).
        Tile indices follow the order of ``grids``.
        """
        if len(grids) == 0:
            raise InvalidConfiguration("Tile pool is empty")
        try:
            rgba = np.array(
                [[[parse_color(c) for c in row] for row in grid] for grid in grids],
                dtype=np.uint8,
            )
        except ValueError as e:
            raise InvalidConfiguration(f"Malformed tile grids: {e}") from e
        if rgba.ndim != 4 or rgba.shape[1:3] != (TILE_SIZE, TILE_SIZE):
            raise InvalidConfiguration(f"Tiles must be {TILE_SIZE}x{TILE_SIZE} grids")
        palette, indices = palettize(rgba)
        return cls(indices, palette)

    def __len__(self) -> int:
        return len(self.tiles)

    def __getitem__(self, index: int) -> Tile:
        return self.tiles[index]

    def __iter__(self) -> Iterator[Tile]:
        return iter(self.tiles)

    def center_indices(self) -> np.ndarray:
        """Palette index of every tile's center pixel"""
        return self.pixels[:, CENTER, CENTER]

    def compatible(self, color_index: int, dx: int, dy: int) -> np.ndarray:
        """
        Vectorized has_valid_overlap over the whole pool.

        Args:
            color_index: Palette index of the resolved cell's color
            dx, dy: Offset from the resolved cell to the candidate cell

        Returns:
            np.ndarray: boolean mask of shape (len(pool),)
        """
        return self.pixels[:, CENTER - dy, CENTER - dx] == color_index

    def color_index(self, color: ColorLike) -> int:
        """Palette index of a color, or -1 if the pool never uses it"""
        color = parse_color(color)
        return self.palette.index(color) if color in self.palette else -1

    def __repr__(self) -> str:
        return f"TilePool({len(self)} tiles, {len(self.palette)} colors)"


def scan_anchors(x_count: int, y_count: int, order: str = "column") -> List[Tuple[int, int]]:
    """Top-left anchors of every window, column-major (x outer) or row-major (y outer)"""
    if order == "column":
        return [(i, j) for i in range(x_count) for j in range(y_count)]
    if order == "row":
        return [(i, j) for j in range(y_count) for i in range(x_count)]
    raise InvalidConfiguration(f"Unknown scan order {order!r}, expected one of {SCAN_ORDERS}")


def extract_tiles(sample: Sample, order: str = "column") -> TilePool:
    """
    Slide a 3x3 window over the sample and keep every position as a tile.

    Duplicated patches are kept as separate tiles, so repeated patterns are
    picked more often.

    Args:
        sample: Source sample
        order: "column" (x outer, the default) or "row" (y outer); defines tile indices

    Returns:
        TilePool: (width - 2) * (height - 2) tiles
    """
    if sample.width < TILE_SIZE or sample.height < TILE_SIZE:
        raise InvalidConfiguration(
            f"Sample is {sample.width}x{sample.height}, "
            f"tiles need at least {TILE_SIZE}x{TILE_SIZE}"
        )

    x_count = sample.width - TILE_SIZE + 1
    y_count = sample.height - TILE_SIZE + 1
    windows = [
        sample.indices[j:j + TILE_SIZE, i:i + TILE_SIZE]
        for i, j in scan_anchors(x_count, y_count, order)
    ]
    return TilePool(np.stack(windows), sample.palette)
