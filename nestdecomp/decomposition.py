"""
Process-grid enumeration and tile scoring for nested domains.

For a given number of compute ranks the engine enumerates every ``npx x npy``
factorisation, searches each nest's perturbation window for the grid size whose
tiles score best, and combines the per-nest tiles into a single aggregate
score.  The score rewards large tiles and penalises elongated ones::

    score = tile_x * tile_y / (1 + (tile_x / tile_y - 1) ** 2)

so a square tile of area ``A`` scores ``A`` and any other shape of the same area
scores less.  All functions here are pure; the node-count sweep that drives
them lives in :mod:`nestdecomp.sweep`.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

import nestdecomp.constants as c
from nestdecomp.io_layout import IOAllocation
from nestdecomp.nests import NestSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeConfiguration:
  """Core budget for one candidate node count."""

  node_count: int
  cores_per_node: int
  reserved_io_cores: int = 0

  @property
  def total_cores(self) -> int:
    return self.node_count * self.cores_per_node

  @property
  def compute_cores(self) -> int:
    return self.total_cores - self.reserved_io_cores


@dataclass(frozen=True)
class ProcessGrid:
  npx: int
  npy: int

  @property
  def size(self) -> int:
    return self.npx * self.npy

  def __str__(self) -> str:
    return f"{self.npx} x {self.npy}"


@dataclass(frozen=True)
class TileCandidate:
  """Best grid size found for one nest on one process grid."""

  nest_index: int
  grid_we: int
  grid_sn: int
  tile_x: int
  tile_y: int
  score: float

  @property
  def area(self) -> int:
    return self.tile_x * self.tile_y

  @property
  def aspect(self) -> float:
    return self.tile_x / self.tile_y


@dataclass(frozen=True)
class Decomposition:
  """Highest-scoring layout found for a node count."""

  node_configuration: NodeConfiguration
  process_grid: ProcessGrid
  tiles: Tuple[TileCandidate, ...]
  score: float
  io_allocation: IOAllocation

  @property
  def node_count(self) -> int:
    return self.node_configuration.node_count

  @property
  def total_cores(self) -> int:
    return self.node_configuration.total_cores

  @property
  def compute_cores(self) -> int:
    return self.node_configuration.compute_cores


@dataclass(frozen=True)
class NoLayout:
  """Marker for a node count where no admissible layout exists."""

  node_configuration: NodeConfiguration
  reason: str = c.NO_PROCESS_GRID

  @property
  def node_count(self) -> int:
    return self.node_configuration.node_count

  @property
  def total_cores(self) -> int:
    return self.node_configuration.total_cores

  @property
  def compute_cores(self) -> int:
    return self.node_configuration.compute_cores


def enumerate_process_grids(
  compute_cores: int,
  io_enabled: bool = False,
  io_tasks_per_group: int = 0,
) -> List[ProcessGrid]:
  """
  List the ``npx x npy == compute_cores`` factorisations in increasing ``npx``.

  With parallel I/O enabled, ``npy`` must be a positive multiple of the I/O
  tasks per group.  An empty list means no admissible process grid.
  """
  if compute_cores <= 0:
    return []
  if io_enabled and io_tasks_per_group < 1:
    raise ValueError("io_tasks_per_group must be at least 1 when parallel I/O is enabled")

  grids: List[ProcessGrid] = []
  for npx in range(1, compute_cores + 1):
    if compute_cores % npx != 0:
      continue
    npy = compute_cores // npx
    if io_enabled:
      if npy < io_tasks_per_group or npy % io_tasks_per_group != 0:
        continue
    grids.append(ProcessGrid(npx, npy))
  return grids


def tile_score(tile_x, tile_y):
  """Area of a tile divided by a quadratic penalty on its aspect ratio's distance from 1."""
  aspect = tile_x / tile_y
  return (tile_x * tile_y) / (1.0 + (aspect - 1.0) ** 2)


def _first_tiles(grid: np.ndarray, nprocs: int, min_tile: int) -> Tuple[np.ndarray, np.ndarray]:
  # Tile sizes are non-decreasing along the window, so the first index of each
  # unique tile is the earliest grid size that produces it.
  tiles = grid // nprocs
  keep = tiles >= min_tile
  values, first = np.unique(tiles[keep], return_index=True)
  return values, grid[keep][first]


def best_tile(
  nest: NestSpec,
  process_grid: ProcessGrid,
  min_tile: int = c.MIN_TILE,
  nest_index: int = 0,
) -> Optional[TileCandidate]:
  """
  Search a nest's perturbation window for the best-scoring tile.

  Every ``(grid_we, grid_sn)`` in the inclusive window is divided by the
  process grid with integer division; sizes with either tile edge below
  ``min_tile`` are discarded.  Ties keep the first candidate in scan order
  (``grid_we`` ascending, then ``grid_sn`` ascending).

  Returns
  -------
  TileCandidate or None
      ``None`` when nothing in the window satisfies ``min_tile``.
  """
  if min_tile < 1:
    raise ValueError("min_tile must be at least 1")

  we_start, we_end = nest.we_window
  sn_start, sn_end = nest.sn_window
  tile_x, grid_we = _first_tiles(np.arange(we_start, we_end + 1, dtype=np.int64), process_grid.npx, min_tile)
  tile_y, grid_sn = _first_tiles(np.arange(sn_start, sn_end + 1, dtype=np.int64), process_grid.npy, min_tile)
  if tile_x.size == 0 or tile_y.size == 0:
    return None

  scores = tile_score(tile_x[:, np.newaxis].astype(np.float64), tile_y[np.newaxis, :].astype(np.float64))
  # argmax returns the first maximum in row-major order, i.e. scan order
  row, col = np.unravel_index(int(np.argmax(scores)), scores.shape)
  return TileCandidate(
    nest_index=nest_index,
    grid_we=int(grid_we[row]),
    grid_sn=int(grid_sn[col]),
    tile_x=int(tile_x[row]),
    tile_y=int(tile_y[col]),
    score=float(scores[row, col]),
  )


def aggregate_score(
  tiles: Sequence[TileCandidate],
  combine_all_nests: bool = False,
  decimals: Optional[int] = c.SCORE_DECIMALS,
) -> float:
  """
  Combine per-nest tiles into one score.

  A single nest scores its own tile.  For several nests the aspect-ratio
  deviations are combined in quadrature and divide the mean tile area::

      ar_diff = sqrt(sum((aspect_i - 1) ** 2))
      score   = mean(area_i) / (1 + ar_diff ** 2)

  Only the first two nests take part unless ``combine_all_nests`` is set.
  """
  if not tiles:
    raise ValueError("At least one tile is required to score a decomposition")

  if len(tiles) == 1:
    score = float(tile_score(tiles[0].tile_x, tiles[0].tile_y))
  else:
    combined = tiles if combine_all_nests else tiles[:2]
    aspects = np.array([tile.aspect for tile in combined], dtype=np.float64)
    areas = np.array([tile.area for tile in combined], dtype=np.float64)
    ar_diff = np.sqrt(np.sum((aspects - 1.0) ** 2))
    score = float(areas.mean() / (1.0 + ar_diff ** 2))

  if decimals is not None:
    score = round(score, decimals)
  return score


def score_process_grid(
  node_configuration: NodeConfiguration,
  process_grid: ProcessGrid,
  nest_specs: Sequence[NestSpec],
  io_allocation: IOAllocation,
  *,
  min_tile: int = c.MIN_TILE,
  combine_all_nests: bool = False,
  score_decimals: Optional[int] = c.SCORE_DECIMALS,
) -> Optional[Decomposition]:
  """Score one process grid; ``None`` when any nest has no admissible tile."""
  tiles: List[TileCandidate] = []
  for index, nest in enumerate(nest_specs):
    tile = best_tile(nest, process_grid, min_tile=min_tile, nest_index=index)
    if tile is None:
      logger.debug(f"  {process_grid}: nest {index + 1} has no tile >= {min_tile}")
      return None
    tiles.append(tile)

  score = aggregate_score(tiles, combine_all_nests=combine_all_nests, decimals=score_decimals)
  logger.debug(
    f"  {process_grid}: tiles {[(t.tile_x, t.tile_y) for t in tiles]} score={score}"
  )
  return Decomposition(
    node_configuration=node_configuration,
    process_grid=process_grid,
    tiles=tuple(tiles),
    score=score,
    io_allocation=io_allocation,
  )


def evaluate_node_configuration(
  node_configuration: NodeConfiguration,
  nest_specs: Sequence[NestSpec],
  io_allocation: IOAllocation,
  *,
  min_tile: int = c.MIN_TILE,
  io_enabled: bool = False,
  combine_all_nests: bool = False,
  score_decimals: Optional[int] = c.SCORE_DECIMALS,
) -> Optional[Decomposition]:
  """
  Return the best decomposition for one node configuration.

  Process grids where any nest lacks an admissible tile are skipped.  Among
  the rest the highest aggregate score wins, ties going to the lowest ``npx``.
  ``None`` means no process grid was admissible.
  """
  if not nest_specs:
    raise ValueError("At least one nest is required")

  grids = enumerate_process_grids(
    node_configuration.compute_cores,
    io_enabled=io_enabled,
    io_tasks_per_group=io_allocation.tasks_per_group,
  )
  logger.debug(
    f"Nodes {node_configuration.node_count}: {node_configuration.compute_cores} compute ranks, "
    f"{len(grids)} candidate process grids"
  )

  candidates: List[Decomposition] = []
  for grid in grids:
    decomposition = score_process_grid(
      node_configuration,
      grid,
      nest_specs,
      io_allocation,
      min_tile=min_tile,
      combine_all_nests=combine_all_nests,
      score_decimals=score_decimals,
    )
    if decomposition is not None:
      candidates.append(decomposition)

  if not candidates:
    return None
  # max keeps the first of equal scores
  return max(candidates, key=lambda decomposition: decomposition.score)
