from dataclasses import dataclass
from typing import Tuple


class InvalidConfiguration(ValueError):
    """Raised before a run starts when its inputs cannot produce a valid grid."""


class EmptySelection(RuntimeError):
    """
    Raised when no unresolved cell can be selected although the engine is
    not done. This means the resolved-cell bookkeeping is broken.
    """


@dataclass(frozen=True)
class StarvedStack:
    """
    A propagation step that would have emptied a candidate stack.

    The removal is skipped and the cell keeps ``tile`` even though it does
    not agree with the color resolved at ``source``.

    Attributes:
        x, y: Coordinate of the starved cell
        tile: Index of the tile left in the stack
        source: Coordinate of the resolved cell that propagated
        offset: Direction from ``source`` to the starved cell
    """
    x: int
    y: int
    tile: int
    source: Tuple[int, int]
    offset: Tuple[int, int]
