from .errors import EmptySelection, InvalidConfiguration, StarvedStack
from .sample import Sample, bordered_sample, load_sample, parse_color, solid_sample
from .tiles import TILE_SIZE, Tile, TilePool, extract_tiles
from .wfc import CandidateStack, CollapseEngine, EngineStatus, OutputBuffer, Wave

__all__ = [
    'EmptySelection', 'InvalidConfiguration', 'StarvedStack',
    'Sample', 'bordered_sample', 'load_sample', 'parse_color', 'solid_sample',
    'TILE_SIZE', 'Tile', 'TilePool', 'extract_tiles',
    'CandidateStack', 'CollapseEngine', 'EngineStatus', 'OutputBuffer', 'Wave',
]
