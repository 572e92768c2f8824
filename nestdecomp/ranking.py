"""Ranking and text/table rendering of sweep results."""

from __future__ import annotations

from typing import Dict, List, Sequence

import pandas as pd

from nestdecomp.decomposition import Decomposition, NoLayout, TileCandidate
from nestdecomp.sweep import SweepResult

FRAME_COLUMNS = [
  'node_count',
  'total_cores',
  'compute_cores',
  'npx',
  'npy',
  'layout',
  'tiles',
  'grids',
  'io_groups',
  'io_tasks_per_group',
  'score',
]

NO_LAYOUT_HINT = (
  "No valid decompositions found. Consider adjusting --nio-tasks-per-group (e.g., try 2 or 4)."
)


def _domain_label(tile: TileCandidate) -> str:
  return f"d{tile.nest_index + 1:02d}"


def format_tiles(tiles: Sequence[TileCandidate]) -> str:
  return ", ".join(f"{_domain_label(tile)}: {tile.tile_x}x{tile.tile_y}" for tile in tiles)


def format_grids(tiles: Sequence[TileCandidate]) -> str:
  return ", ".join(f"{_domain_label(tile)}: {tile.grid_we}x{tile.grid_sn}" for tile in tiles)


def rank_decompositions(decompositions: Sequence[Decomposition]) -> List[Decomposition]:
  """Sort by score, highest first; equal scores keep node-count order."""
  return sorted(decompositions, key=lambda decomposition: decomposition.score, reverse=True)


def decompositions_to_frame(decompositions: Sequence[Decomposition]) -> pd.DataFrame:
  rows: List[Dict[str, object]] = []
  for decomposition in decompositions:
    rows.append(
      {
        'node_count': decomposition.node_count,
        'total_cores': decomposition.total_cores,
        'compute_cores': decomposition.compute_cores,
        'npx': decomposition.process_grid.npx,
        'npy': decomposition.process_grid.npy,
        'layout': str(decomposition.process_grid),
        'tiles': format_tiles(decomposition.tiles),
        'grids': format_grids(decomposition.tiles),
        'io_groups': decomposition.io_allocation.groups,
        'io_tasks_per_group': decomposition.io_allocation.tasks_per_group,
        'score': decomposition.score,
      }
    )
  return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def ranked_frame(decompositions: Sequence[Decomposition]) -> pd.DataFrame:
  frame = decompositions_to_frame(decompositions)
  return frame.sort_values('score', ascending=False, kind='mergesort').reset_index(drop=True)


def format_decomposition(decomposition: Decomposition) -> str:
  return (
    f"Nodes: {decomposition.node_count:2d}  Cores: {decomposition.total_cores:4d}  "
    f"Compute Ranks: {decomposition.compute_cores:4d}  ->  "
    f"Layout: {str(decomposition.process_grid):<10s}  | {format_tiles(decomposition.tiles):<25s} | "
    f"Grid: {format_grids(decomposition.tiles):<20s} | NIO: {decomposition.io_allocation} | "
    f"score={decomposition.score:.1f}"
  )


def format_no_layout(no_layout: NoLayout) -> str:
  return (
    f"Nodes: {no_layout.node_count:2d}  Cores: {no_layout.total_cores:4d}  "
    f"Compute Ranks: {no_layout.compute_cores:4d}  ->  No valid layout found ({no_layout.reason})"
  )


def format_report(result: SweepResult, io_enabled: bool = False) -> str:
  """
  Render the sweep as text.

  Node counts without a layout are listed first, in node order, followed by
  the valid layouts sorted by score.  When nothing was found and parallel
  I/O is enabled, a hint about the I/O task count replaces the table.
  """
  lines = [format_no_layout(no_layout) for no_layout in result.no_layouts]

  if result.found_any:
    lines.append("")
    lines.append("Sorted Valid Layouts by Score:")
    lines.extend(format_decomposition(decomposition) for decomposition in rank_decompositions(result.decompositions))
  elif io_enabled:
    lines.append("")
    lines.append(NO_LAYOUT_HINT)

  return "\n".join(lines)
