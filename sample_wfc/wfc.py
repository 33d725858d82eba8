import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from .errors import EmptySelection, InvalidConfiguration, StarvedStack
from .sample import MAGENTA, Color, ColorLike, parse_color
from .tiles import NEIGHBOR_OFFSETS, Tile, TilePool

logger = logging.getLogger(__name__)


class EngineStatus(Enum):
    RUNNING = "running"
    DONE = "done"


class Wave:
    """
    Wave class to track the candidate tiles of every output cell
    """
    def __init__(self, height: int, width: int, num_tiles: int) -> None:
        """
        Initialize the wave with every tile possible in every cell

        Args:
            height: Grid height
            width: Grid width
            num_tiles: Size of the tile pool
        """
        self.height = height
        self.width = width
        self.size = height * width
        self.num_tiles = num_tiles

        # data[y, x, tile] = True if tile is still a candidate at (x, y)
        self.data = np.ones((height, width, num_tiles), dtype=bool)
        self.counts = np.full((height, width), num_tiles, dtype=np.int32)

    def get(self, x: int, y: int, tile: int) -> bool:
        return bool(self.data[y, x, tile])

    def candidates(self, x: int, y: int) -> np.ndarray:
        """Tile indices still possible at (x, y), in pool order"""
        return np.flatnonzero(self.data[y, x])

    def remove(self, x: int, y: int, mask: np.ndarray) -> int:
        """
        Remove the tiles flagged in ``mask`` from cell (x, y).

        Returns:
            int: number of candidates actually removed
        """
        removed = int(np.count_nonzero(self.data[y, x] & mask))
        if removed >= self.counts[y, x]:
            raise ValueError(f"Removing {removed} tiles would empty the stack at ({x}, {y})")
        self.data[y, x] &= ~mask
        self.counts[y, x] -= removed
        return removed

    def collapse(self, x: int, y: int, tile: int) -> None:
        """Keep only ``tile`` at (x, y)"""
        if not self.data[y, x, tile]:
            raise ValueError(f"Tile {tile} is not a candidate at ({x}, {y})")
        self.data[y, x] = False
        self.data[y, x, tile] = True
        self.counts[y, x] = 1


class CandidateStack:
    """
    View of the tiles still considered possible for one output cell.
    Entropy is simply the number of remaining candidates.
    """
    def __init__(self, wave: Wave, x: int, y: int) -> None:
        self.wave = wave
        self.x = x
        self.y = y

    def entropy(self) -> int:
        return int(self.wave.counts[self.y, self.x])

    def candidates(self) -> List[int]:
        return [int(t) for t in self.wave.candidates(self.x, self.y)]

    @property
    def is_resolved(self) -> bool:
        return self.entropy() == 1

    def __len__(self) -> int:
        return self.entropy()

    def __iter__(self):
        return iter(self.candidates())

    def __contains__(self, tile: Union[int, Tile]) -> bool:
        index = tile.index if isinstance(tile, Tile) else tile
        return 0 <= index < self.wave.num_tiles and self.wave.get(self.x, self.y, index)

    def __repr__(self) -> str:
        return f"CandidateStack(({self.x}, {self.y}), entropy={self.entropy()})"


class OutputBuffer:
    """
    Resolved color per output cell, stored as palette indices.

    Unwritten cells hold -1 and read back as the placeholder color.
    """
    def __init__(self, width: int, height: int, palette: Tuple[Color, ...],
                 placeholder: Color = MAGENTA) -> None:
        self.width = width
        self.height = height
        self.palette = palette
        self.placeholder = placeholder
        self.indices = np.full((height, width), -1, dtype=np.int32)

    def _coords(self, key) -> Tuple[int, int]:
        if isinstance(key, tuple):
            x, y = key
        else:
            if key < 0 or key >= len(self):
                raise IndexError(f"Linear index {key} out of range")
            x, y = key % self.width, key // self.width
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Coordinate ({x}, {y}) out of range")
        return x, y

    def __getitem__(self, key) -> Color:
        """Color at a linear index (x + y * width) or an (x, y) coordinate"""
        x, y = self._coords(key)
        index = self.indices[y, x]
        return self.placeholder if index < 0 else self.palette[index]

    def __len__(self) -> int:
        return self.width * self.height

    def write(self, x: int, y: int, color_index: int) -> None:
        if self.indices[y, x] >= 0:
            raise ValueError(f"Output cell ({x}, {y}) was already written")
        self.indices[y, x] = color_index

    def is_written(self, x: int, y: int) -> bool:
        return bool(self.indices[y, x] >= 0)

    def written_count(self) -> int:
        return int(np.count_nonzero(self.indices >= 0))

    def is_complete(self) -> bool:
        return self.written_count() == len(self)

    def colors(self) -> set:
        """Distinct colors written so far"""
        return {self.palette[i] for i in np.unique(self.indices) if i >= 0}

    def to_array(self) -> np.ndarray:
        """
        Returns:
            np.ndarray: uint8 RGBA image of shape (height, width, 4)
        """
        # -1 picks the trailing placeholder entry
        lookup = np.array(self.palette + (self.placeholder,), dtype=np.uint8)
        return lookup[self.indices]


class Propagator:
    """
    Removes candidates that disagree with a freshly resolved cell from its
    eight neighbors.
    """
    def __init__(self, pool: TilePool, wave: Wave) -> None:
        self.pool = pool
        self.wave = wave
        self._compatible: Dict[Tuple[int, int, int], np.ndarray] = {}

    def compatible(self, color_index: int, dx: int, dy: int) -> np.ndarray:
        key = (color_index, dx, dy)
        if key not in self._compatible:
            self._compatible[key] = self.pool.compatible(color_index, dx, dy)
        return self._compatible[key]

    def propagate(self, x: int, y: int, color_index: int) -> List[StarvedStack]:
        """
        Propagate the color resolved at (x, y) to its neighbors

        Args:
            x, y: Resolved cell
            color_index: Palette index written for the resolved cell

        Returns:
            List[StarvedStack]: neighbors left holding an incompatible tile
        """
        starved = []
        for dx, dy in NEIGHBOR_OFFSETS:
            nx, ny = x + dx, y + dy
            if nx < 0 or ny < 0 or nx >= self.wave.width or ny >= self.wave.height:
                continue

            rejected = self.wave.data[ny, nx] & ~self.compatible(color_index, dx, dy)
            num_rejected = int(np.count_nonzero(rejected))
            if num_rejected == 0:
                continue
            if num_rejected < self.wave.counts[ny, nx]:
                self.wave.remove(nx, ny, rejected)
                continue

            # Nothing compatible is left: keep the first remaining tile
            survivor = int(np.flatnonzero(rejected)[0])
            rejected[survivor] = False
            self.wave.remove(nx, ny, rejected)
            starved.append(StarvedStack(nx, ny, survivor, (x, y), (dx, dy)))
        return starved


class CollapseEngine:
    """
    Simplified Wave Function Collapse over a tile pool extracted from a sample.

    Each call to step() picks the unresolved cell with the fewest candidates,
    resolves it to a random candidate, writes that tile's center color to the
    output and prunes the eight neighbors. There is no backtracking: a stack
    that would become empty keeps one incompatible tile instead.
    """
    def __init__(self, pool: TilePool, output_width: int, output_height: int,
                 rng: Union[np.random.Generator, int, None] = None,
                 placeholder: ColorLike = MAGENTA,
                 on_contradiction: Optional[Callable[[StarvedStack], None]] = None) -> None:
        """
        Args:
            pool: Tiles every cell starts with
            output_width: Number of output columns
            output_height: Number of output rows
            rng: numpy Generator or seed; the only source of randomness
            placeholder: Color reported for unresolved cells
            on_contradiction: Called with every StarvedStack as it happens
        """
        for name, value in (("output_width", output_width), ("output_height", output_height)):
            if not isinstance(value, (int, np.integer)) or value <= 0:
                raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")
        if len(pool) == 0:
            raise InvalidConfiguration("Tile pool is empty")

        self.pool = pool
        self.width = int(output_width)
        self.height = int(output_height)
        self.rng = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)
        self.on_contradiction = on_contradiction

        self.wave = Wave(self.height, self.width, len(pool))
        self.propagator = Propagator(pool, self.wave)
        self.output = OutputBuffer(self.width, self.height, pool.palette, parse_color(placeholder))
        self._centers = pool.center_indices()

        self.resolved = np.zeros((self.height, self.width), dtype=bool)
        self.resolved_count = 0
        self.steps = 0
        self.last_resolved: Optional[Tuple[int, int]] = None
        self.contradictions: List[StarvedStack] = []
        self.status = EngineStatus.RUNNING

    @property
    def total_cells(self) -> int:
        return self.width * self.height

    @property
    def done(self) -> bool:
        return self.status is EngineStatus.DONE

    def stack(self, x: int, y: int) -> CandidateStack:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Coordinate ({x}, {y}) out of range")
        return CandidateStack(self.wave, x, y)

    def entropy_grid(self) -> np.ndarray:
        """Copy of the candidate count of every cell, indexed [y, x]"""
        return self.wave.counts.copy()

    def all_stacks_resolved(self) -> bool:
        return bool(np.all(self.wave.counts == 1))

    def select_cell(self) -> Tuple[int, int]:
        """
        Pick the next cell to resolve: uniformly at random on the first
        step, afterwards uniformly among the unresolved cells tied at the
        lowest entropy.
        """
        if self.steps == 0:
            index = int(self.rng.integers(self.total_cells))
            return index % self.width, index // self.width

        unresolved = ~self.resolved
        if not np.any(unresolved):
            raise EmptySelection(
                f"No unresolved cell left after {self.resolved_count} of {self.total_cells} resolutions"
            )
        min_entropy = self.wave.counts[unresolved].min()
        ties = np.flatnonzero(unresolved & (self.wave.counts == min_entropy))
        index = int(ties[self.rng.integers(len(ties))])
        return index % self.width, index // self.width

    def resolve(self, x: int, y: int) -> int:
        """Collapse (x, y) to one random candidate and record its center color"""
        candidates = self.wave.candidates(x, y)
        tile = int(candidates[self.rng.integers(len(candidates))])
        self.wave.collapse(x, y, tile)
        self.output.write(x, y, int(self._centers[tile]))
        self.resolved[y, x] = True
        self.resolved_count += 1
        return tile

    def step(self) -> EngineStatus:
        """
        Run one select / resolve / propagate cycle

        Returns:
            EngineStatus: DONE once every cell has been resolved
        """
        if self.done:
            return self.status

        x, y = self.select_cell()
        self.resolve(x, y)
        for event in self.propagator.propagate(x, y, int(self.output.indices[y, x])):
            self._report(event)

        self.steps += 1
        self.last_resolved = (x, y)
        if self.resolved_count == self.total_cells:
            self.status = EngineStatus.DONE
            logger.debug("Collapse finished after %d steps with %d contradictions",
                         self.steps, len(self.contradictions))
        return self.status

    def run(self, max_steps: Optional[int] = None) -> OutputBuffer:
        """
        Step until done, or until ``max_steps`` steps have run in total

        Returns:
            OutputBuffer: the (possibly partial) output
        """
        while not self.done:
            if max_steps is not None and self.steps >= max_steps:
                break
            self.step()
        return self.output

    def snapshot(self) -> np.ndarray:
        """RGBA image of the output so far, unresolved cells in the placeholder color"""
        return self.output.to_array()

    def _report(self, event: StarvedStack) -> None:
        self.contradictions.append(event)
        logger.warning("Ran out of valid tiles at (%d, %d), keeping tile %d (resolved neighbor %s)",
                       event.x, event.y, event.tile, event.source)
        if self.on_contradiction is not None:
            self.on_contradiction(event)
