from __future__ import annotations

import pytest

import nestdecomp.constants as c
from nestdecomp.decomposition import Decomposition, NoLayout, ProcessGrid
from nestdecomp.io_layout import IOAllocation
from nestdecomp.nests import NestSpec
from nestdecomp.sweep import DecompositionSweep, SweepResult, SweepSettings


def _sweep(nest_specs, *, io_allocation=None, n_jobs: int = 1, **settings) -> DecompositionSweep:
  return DecompositionSweep(
    nest_specs,
    io_allocation or IOAllocation.disabled(),
    SweepSettings(**settings),
    n_jobs=n_jobs,
  )


def test_single_nest_exact_fit() -> None:
  result = _sweep([NestSpec(20, 20, 0)], cores_per_node=4, max_nodes=1, min_tile=2).run()

  assert result.found_any
  assert len(result.outcomes) == 1
  decomposition = result.decompositions[0]
  assert decomposition.process_grid == ProcessGrid(2, 2)
  assert decomposition.score == pytest.approx(100.0)
  assert (decomposition.tiles[0].grid_we, decomposition.tiles[0].grid_sn) == (20, 20)


def test_min_tile_rejection_yields_no_layout() -> None:
  result = _sweep([NestSpec(20, 20, 0)], cores_per_node=4, max_nodes=1, min_tile=11).run()

  assert not result.found_any
  assert result.decompositions == []
  assert len(result.no_layouts) == 1
  no_layout = result.no_layouts[0]
  assert no_layout.node_count == 1
  assert no_layout.reason == c.NO_PROCESS_GRID
  assert result.best() is None


def test_node_counts_without_compute_cores_are_reported() -> None:
  io_allocation = IOAllocation(2, 2)
  result = _sweep(
    [NestSpec(20, 20, 0)],
    io_allocation=io_allocation,
    cores_per_node=4,
    max_nodes=2,
    min_tile=2,
    io_enabled=True,
  ).run()

  first, second = result.outcomes
  assert isinstance(first, NoLayout)
  assert first.reason == c.NO_COMPUTE_CORES
  assert first.compute_cores == 0
  assert isinstance(second, Decomposition)
  assert second.compute_cores == 4
  assert second.process_grid == ProcessGrid(2, 2)
  assert second.io_allocation == io_allocation


def test_outcomes_follow_node_count_order() -> None:
  result = _sweep([NestSpec(200, 160, 20)], cores_per_node=8, max_nodes=6).run()
  assert [outcome.node_count for outcome in result.outcomes] == [1, 2, 3, 4, 5, 6]
  for outcome in result.decompositions:
    assert outcome.process_grid.size == outcome.compute_cores == outcome.node_count * 8


def test_sweep_is_deterministic() -> None:
  nest_specs = [NestSpec(150, 130, 15), NestSpec(220, 214, 22)]
  first = _sweep(nest_specs, cores_per_node=16, max_nodes=4).run()
  second = _sweep(nest_specs, cores_per_node=16, max_nodes=4).run()
  assert first.outcomes == second.outcomes


def test_parallel_sweep_matches_serial() -> None:
  nest_specs = [NestSpec(150, 130, 15), NestSpec(220, 214, 22)]
  serial = _sweep(nest_specs, cores_per_node=16, max_nodes=5).run()
  parallel = _sweep(nest_specs, cores_per_node=16, max_nodes=5, n_jobs=2).run()
  assert parallel.outcomes == serial.outcomes


def test_best_prefers_highest_score() -> None:
  result = _sweep([NestSpec(200, 160, 20)], cores_per_node=8, max_nodes=6).run()
  best = result.best()
  assert best is not None
  assert best.score == max(decomposition.score for decomposition in result.decompositions)


def test_more_than_two_nests_warns_unless_combining_all() -> None:
  nest_specs = [NestSpec(100, 100, 0), NestSpec(90, 90, 0), NestSpec(80, 80, 0)]
  with pytest.warns(RuntimeWarning, match="first two"):
    _sweep(nest_specs, cores_per_node=4, max_nodes=1).run()

  result = _sweep(nest_specs, cores_per_node=4, max_nodes=1, combine_all_nests=True).run()
  assert len(result.decompositions[0].tiles) == 3


def test_evaluate_single_node_count() -> None:
  sweep = _sweep([NestSpec(20, 20, 0)], cores_per_node=4, max_nodes=1, min_tile=2)
  outcome = sweep.evaluate(1)
  assert isinstance(outcome, Decomposition)
  with pytest.raises(ValueError):
    sweep.evaluate(0)


def test_sweep_result_partitions_outcomes() -> None:
  result = _sweep([NestSpec(40, 40, 0)], cores_per_node=4, max_nodes=3, min_tile=11).run()
  # 4 ranks fit 2 x 2 tiles of 20; 8 and 12 ranks cannot keep both edges >= 11
  assert [outcome.node_count for outcome in result.decompositions] == [1]
  assert [outcome.node_count for outcome in result.no_layouts] == [2, 3]
  assert isinstance(result, SweepResult)


@pytest.mark.parametrize(
  "settings",
  [
    {"cores_per_node": 0},
    {"max_nodes": 0},
    {"min_tile": 0},
    {"score_decimals": -1},
  ],
)
def test_settings_validation(settings) -> None:
  with pytest.raises(ValueError):
    SweepSettings(**settings)


def test_sweep_requires_nests_and_io_tasks() -> None:
  with pytest.raises(ValueError):
    DecompositionSweep([], IOAllocation.disabled())
  with pytest.raises(ValueError):
    DecompositionSweep([NestSpec(20, 20, 0)], IOAllocation.disabled(), SweepSettings(io_enabled=True))
