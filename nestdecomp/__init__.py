"""
Domain decomposition search for nested simulation grids.

The top-level objects exported here let callers describe their nests and I/O
reservation, enumerate process grids, score tiles, and sweep node counts for
the best-scoring layout.
"""

from __future__ import annotations

from .errors import (
  GridDimensionError,
  IOConfigurationError,
  NamelistError,
  NestDecompError,
)
from .nests import (
  NestInput,
  NestSpec,
  build_nest_specs,
  nest_inputs_from_lists,
  parse_namelist,
)
from .io_layout import IOAllocation, recommend_io_allocation
from .decomposition import (
  Decomposition,
  NodeConfiguration,
  NoLayout,
  ProcessGrid,
  TileCandidate,
  aggregate_score,
  best_tile,
  enumerate_process_grids,
  evaluate_node_configuration,
  tile_score,
)
from .sweep import DecompositionSweep, SweepResult, SweepSettings
from .ranking import decompositions_to_frame, format_report, rank_decompositions
from .optimizer import DomainOptimizer

__all__ = [
  "GridDimensionError",
  "IOConfigurationError",
  "NamelistError",
  "NestDecompError",
  "NestInput",
  "NestSpec",
  "build_nest_specs",
  "nest_inputs_from_lists",
  "parse_namelist",
  "IOAllocation",
  "recommend_io_allocation",
  "Decomposition",
  "NodeConfiguration",
  "NoLayout",
  "ProcessGrid",
  "TileCandidate",
  "aggregate_score",
  "best_tile",
  "enumerate_process_grids",
  "evaluate_node_configuration",
  "tile_score",
  "DecompositionSweep",
  "SweepResult",
  "SweepSettings",
  "decompositions_to_frame",
  "format_report",
  "rank_decompositions",
  "DomainOptimizer",
]
