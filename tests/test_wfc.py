import logging
from collections import Counter

import numpy as np
import pytest

from sample_wfc.errors import EmptySelection, InvalidConfiguration
from sample_wfc.sample import BLACK, MAGENTA, RED, WHITE
from sample_wfc.tiles import NEIGHBOR_OFFSETS, TilePool
from sample_wfc.wfc import CollapseEngine, EngineStatus, OutputBuffer

# Every tile shows white towards its neighbors but has a black center
WHITE_RING = [
    ["white", "white", "white"],
    ["white", "black", "white"],
    ["white", "white", "white"],
]


def test_end_to_end_bordered_sample(bordered_pool):
    """5x5 ringed sample grown into an 8x8 output"""
    engine = CollapseEngine(bordered_pool, 8, 8, rng=0)
    output = engine.run()

    assert engine.done
    assert engine.status is EngineStatus.DONE
    assert engine.steps == 64
    assert engine.resolved_count == engine.total_cells == 64
    assert output.is_complete()
    assert output.colors() <= {WHITE, BLACK, RED}
    assert all(output[i] != MAGENTA for i in range(len(output)))
    assert engine.all_stacks_resolved()
    assert np.all(engine.entropy_grid() == 1)


def test_entropy_never_increases_and_never_empties(bordered_pool):
    for seed in range(5):
        engine = CollapseEngine(bordered_pool, 12, 10, rng=seed)
        previous = engine.entropy_grid()
        while not engine.done:
            engine.step()
            current = engine.entropy_grid()
            assert np.all(current <= previous)
            assert current.min() >= 1
            previous = current


def test_same_seed_same_output(bordered_pool):
    first = CollapseEngine(bordered_pool, 10, 10, rng=123)
    second = CollapseEngine(bordered_pool, 10, 10, rng=123)
    first.run()
    second.run()

    assert np.array_equal(first.output.indices, second.output.indices)
    assert first.contradictions == second.contradictions


def test_generator_can_be_injected(bordered_pool):
    first = CollapseEngine(bordered_pool, 6, 6, rng=np.random.default_rng(7))
    second = CollapseEngine(bordered_pool, 6, 6, rng=7)
    first.run()
    second.run()
    assert np.array_equal(first.snapshot(), second.snapshot())


def test_single_color_sample_is_uniform(solid_pool):
    engine = CollapseEngine(solid_pool, 5, 7, rng=1)
    output = engine.run()

    assert engine.steps == 35
    assert output.colors() == {BLACK}
    assert engine.contradictions == []


def test_single_color_sample_prunes_nothing(solid_pool):
    engine = CollapseEngine(solid_pool, 4, 4, rng=1)
    engine.step()
    counts = engine.entropy_grid()
    assert np.all(counts[~engine.resolved] == len(solid_pool))


def test_step_after_done_is_a_no_op(solid_pool):
    engine = CollapseEngine(solid_pool, 2, 2, rng=0)
    engine.run()
    assert engine.step() is EngineStatus.DONE
    assert engine.steps == 4


def test_run_can_stop_early(bordered_pool):
    engine = CollapseEngine(bordered_pool, 8, 8, rng=2)
    output = engine.run(max_steps=5)

    assert not engine.done
    assert engine.steps == 5
    assert output.written_count() == 5
    assert not output.is_complete()

    engine.run()
    assert engine.done


def test_selection_picks_minimum_entropy(bordered_pool):
    engine = CollapseEngine(bordered_pool, 10, 8, rng=5)
    engine.step()
    while not engine.done:
        counts = engine.entropy_grid()
        minimum = counts[~engine.resolved].min()
        engine.step()
        x, y = engine.last_resolved
        assert counts[y, x] == minimum


def test_resolve_writes_center_color(bordered_pool):
    engine = CollapseEngine(bordered_pool, 6, 6, rng=11)
    engine.step()
    x, y = engine.last_resolved
    stack = engine.stack(x, y)

    assert stack.is_resolved
    tile = bordered_pool[stack.candidates()[0]]
    assert engine.output[(x, y)] == tile.center_color()


def test_propagation_prunes_exactly_the_incompatible_tiles(bordered_pool):
    for seed in range(10):
        engine = CollapseEngine(bordered_pool, 7, 7, rng=seed)
        engine.step()
        x, y = engine.last_resolved
        color = engine.output[(x, y)]

        # the bordered sample always has a tile facing each interior color
        assert engine.contradictions == []
        for dx, dy in NEIGHBOR_OFFSETS:
            if not (0 <= x + dx < 7 and 0 <= y + dy < 7):
                continue
            expected = [t.index for t in bordered_pool if t.has_valid_overlap(color, dx, dy)]
            assert engine.stack(x + dx, y + dy).candidates() == expected


def test_cells_outside_the_neighborhood_are_untouched(bordered_pool):
    engine = CollapseEngine(bordered_pool, 9, 9, rng=3)
    engine.step()
    x, y = engine.last_resolved
    counts = engine.entropy_grid()
    for cy in range(9):
        for cx in range(9):
            if abs(cx - x) > 1 or abs(cy - y) > 1:
                assert counts[cy, cx] == len(bordered_pool)


def test_starved_stack_keeps_its_tile_and_is_reported(caplog):
    pool = TilePool.from_grids([WHITE_RING])
    events = []
    engine = CollapseEngine(pool, 2, 1, rng=0, on_contradiction=events.append)

    with caplog.at_level(logging.WARNING, logger="sample_wfc.wfc"):
        engine.run()

    assert engine.done
    assert engine.output.colors() == {BLACK}
    # once for the unresolved neighbor, once more when the second cell resolves
    assert len(events) == 2
    assert events == engine.contradictions
    first = events[0]
    assert first.tile == 0
    assert (first.x, first.y) != first.source
    assert first.offset == (first.x - first.source[0], first.y - first.source[1])
    assert engine.stack(0, 0).candidates() == [0]
    assert engine.stack(1, 0).candidates() == [0]
    assert "Ran out of valid tiles" in caplog.text


def test_starved_stack_keeps_the_first_remaining_tile():
    pool = TilePool.from_grids([WHITE_RING, WHITE_RING, WHITE_RING])
    engine = CollapseEngine(pool, 2, 1, rng=4)
    engine.step()

    sx, sy = engine.last_resolved
    neighbor = (1 - sx, 0)
    assert engine.stack(*neighbor).candidates() == [0]
    assert engine.contradictions[0].tile == 0
    assert (engine.contradictions[0].x, engine.contradictions[0].y) == neighbor


def test_resolved_cells_are_never_revisited():
    pool = TilePool.from_grids([WHITE_RING, WHITE_RING])
    engine = CollapseEngine(pool, 3, 1, rng=9)
    engine.step()
    x, y = engine.last_resolved
    chosen = engine.stack(x, y).candidates()

    engine.run()
    assert engine.stack(x, y).candidates() == chosen


def test_first_cell_is_uniform(solid_pool):
    counts = Counter()
    for seed in range(900):
        engine = CollapseEngine(solid_pool, 3, 3, rng=seed)
        engine.step()
        counts[engine.last_resolved] += 1

    assert len(counts) == 9
    assert all(50 <= n <= 150 for n in counts.values())


def test_ties_are_broken_uniformly(solid_pool):
    counts = Counter()
    for seed in range(900):
        engine = CollapseEngine(solid_pool, 3, 3, rng=seed)
        engine.step()
        engine.step()
        counts[engine.last_resolved] += 1

    assert len(counts) == 9
    assert all(50 <= n <= 150 for n in counts.values())


def test_empty_selection_is_fatal(bordered_pool):
    engine = CollapseEngine(bordered_pool, 2, 2, rng=0)
    engine.step()
    engine.resolved[:] = True
    with pytest.raises(EmptySelection):
        engine.step()


@pytest.mark.parametrize("width, height", [(0, 4), (4, -1), (2.5, 3)])
def test_invalid_output_size(bordered_pool, width, height):
    with pytest.raises(InvalidConfiguration):
        CollapseEngine(bordered_pool, width, height)


def test_empty_pool_is_rejected():
    with pytest.raises(InvalidConfiguration):
        CollapseEngine(TilePool(np.zeros((0, 3, 3)), ()), 4, 4)


def test_snapshot_uses_placeholder(bordered_pool):
    engine = CollapseEngine(bordered_pool, 4, 3, rng=0)
    snapshot = engine.snapshot()
    assert snapshot.shape == (3, 4, 4)
    assert np.all(snapshot == MAGENTA)

    engine.step()
    snapshot = engine.snapshot()
    assert np.count_nonzero(np.any(snapshot != MAGENTA, axis=2)) == 1

    green = CollapseEngine(bordered_pool, 2, 2, rng=0, placeholder="#00ff00")
    assert green.output[0] == (0, 255, 0, 255)


def test_candidate_stack_view(bordered_pool):
    engine = CollapseEngine(bordered_pool, 3, 3, rng=0)
    stack = engine.stack(1, 2)
    assert stack.entropy() == len(stack) == len(bordered_pool)
    assert bordered_pool[4] in stack
    assert 0 in stack
    assert len(bordered_pool) not in stack
    assert not stack.is_resolved
    assert list(stack) == list(range(len(bordered_pool)))
    with pytest.raises(IndexError):
        engine.stack(3, 0)


def test_output_buffer_indexing():
    buffer = OutputBuffer(3, 2, (WHITE, BLACK))
    buffer.write(2, 1, 1)

    assert buffer[(2, 1)] == BLACK
    assert buffer[2 + 1 * 3] == BLACK
    assert buffer[0] == MAGENTA
    assert buffer.written_count() == 1
    with pytest.raises(ValueError):
        buffer.write(2, 1, 0)
    with pytest.raises(IndexError):
        buffer[6]
    with pytest.raises(IndexError):
        buffer[(3, 0)]
