import os
import sys

import pytest

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sample_wfc.sample import bordered_sample, solid_sample
from sample_wfc.tiles import extract_tiles


@pytest.fixture
def bordered():
    """5x5 white ring, black interior, red center"""
    return bordered_sample(5, 1)


@pytest.fixture
def bordered_pool(bordered):
    return extract_tiles(bordered)


@pytest.fixture
def solid_pool():
    return extract_tiles(solid_sample(5, "black"))
