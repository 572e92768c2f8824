"""
Node-count sweep over the decomposition engine.

Every node count from 1 to ``max_nodes`` is evaluated independently from the
same nest definitions and I/O allocation, so the sweep can be dispatched across
joblib workers without changing the result: outcomes are always reassembled in
node-count order.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
from typing import List, Optional, Sequence, Union
import warnings

from joblib import Parallel, delayed
from joblib import parallel as joblib_parallel
from tqdm.auto import tqdm

import nestdecomp.constants as c
from nestdecomp.decomposition import (
  Decomposition,
  NodeConfiguration,
  NoLayout,
  evaluate_node_configuration,
)
from nestdecomp.io_layout import IOAllocation
from nestdecomp.nests import NestSpec

logger = logging.getLogger(__name__)

Outcome = Union[Decomposition, NoLayout]


@contextmanager
def tqdm_joblib(tqdm_object):
  class TqdmBatchCompletionCallback(joblib_parallel.BatchCompletionCallBack):
    def __call__(self, *args, **kwargs):
      tqdm_object.update(n=self.batch_size)
      return super().__call__(*args, **kwargs)

  old_callback = joblib_parallel.BatchCompletionCallBack
  joblib_parallel.BatchCompletionCallBack = TqdmBatchCompletionCallback
  try:
    yield tqdm_object
  finally:
    joblib_parallel.BatchCompletionCallBack = old_callback
    tqdm_object.close()


@dataclass(frozen=True)
class SweepSettings:
  """
  Run-wide parameters of the sweep.

  Parameters
  ----------
  cores_per_node:
      Cores available on every node.
  max_nodes:
      Largest node count evaluated; the sweep covers ``1..max_nodes``.
  min_tile:
      Smallest admissible tile edge, in grid points.
  io_enabled:
      Require ``npy`` to be a multiple of the I/O tasks per group.
  combine_all_nests:
      Use every nest in the multi-nest aggregate score instead of the first two.
  score_decimals:
      Rounding applied to aggregate scores before comparison; ``None`` keeps
      full precision.
  """

  cores_per_node: int = c.DEFAULT_CORES_PER_NODE
  max_nodes: int = c.DEFAULT_MAX_NODES
  min_tile: int = c.MIN_TILE
  io_enabled: bool = False
  combine_all_nests: bool = False
  score_decimals: Optional[int] = c.SCORE_DECIMALS

  def __post_init__(self) -> None:
    if self.cores_per_node < 1:
      raise ValueError("cores_per_node must be at least 1")
    if self.max_nodes < 1:
      raise ValueError("max_nodes must be at least 1")
    if self.min_tile < 1:
      raise ValueError("min_tile must be at least 1")
    if self.score_decimals is not None and self.score_decimals < 0:
      raise ValueError("score_decimals must be non-negative")


@dataclass
class SweepResult:
  """Per-node-count outcomes, in node-count order."""

  outcomes: List[Outcome] = field(default_factory=list)

  @property
  def decompositions(self) -> List[Decomposition]:
    return [outcome for outcome in self.outcomes if isinstance(outcome, Decomposition)]

  @property
  def no_layouts(self) -> List[NoLayout]:
    return [outcome for outcome in self.outcomes if isinstance(outcome, NoLayout)]

  @property
  def found_any(self) -> bool:
    return any(isinstance(outcome, Decomposition) for outcome in self.outcomes)

  def best(self) -> Optional[Decomposition]:
    """Return the highest-scoring decomposition; the lowest node count wins ties."""
    decompositions = self.decompositions
    if not decompositions:
      return None
    return max(decompositions, key=lambda decomposition: decomposition.score)


def _evaluate_node_count(
  nest_specs: Sequence[NestSpec],
  io_allocation: IOAllocation,
  settings: SweepSettings,
  node_count: int,
) -> Outcome:
  node_configuration = NodeConfiguration(
    node_count=node_count,
    cores_per_node=settings.cores_per_node,
    reserved_io_cores=io_allocation.reserved_cores,
  )
  if node_configuration.compute_cores <= 0:
    return NoLayout(node_configuration, reason=c.NO_COMPUTE_CORES)

  decomposition = evaluate_node_configuration(
    node_configuration,
    nest_specs,
    io_allocation,
    min_tile=settings.min_tile,
    io_enabled=settings.io_enabled,
    combine_all_nests=settings.combine_all_nests,
    score_decimals=settings.score_decimals,
  )
  if decomposition is None:
    return NoLayout(node_configuration, reason=c.NO_PROCESS_GRID)
  return decomposition


class DecompositionSweep:
  """
  Evaluate the best decomposition for every node count up to ``max_nodes``.

  Parameters
  ----------
  nest_specs:
      Nests in order, outermost first.
  io_allocation:
      Reserved I/O processes, subtracted from every node count's total.
  settings:
      :class:`SweepSettings` for the run.
  n_jobs:
      joblib worker count; ``1`` evaluates serially in-process.
  progress:
      Show a tqdm progress bar over node counts.
  """

  def __init__(
    self,
    nest_specs: Sequence[NestSpec],
    io_allocation: IOAllocation,
    settings: Optional[SweepSettings] = None,
    *,
    n_jobs: int = 1,
    progress: bool = False,
  ) -> None:
    if not nest_specs:
      raise ValueError("At least one nest is required")
    if n_jobs == 0:
      raise ValueError("n_jobs must be non-zero")
    if settings is None:
      settings = SweepSettings()
    if settings.io_enabled and io_allocation.tasks_per_group < 1:
      raise ValueError("Parallel I/O is enabled but the I/O allocation has no tasks per group")

    self._nest_specs = tuple(nest_specs)
    self._io_allocation = io_allocation
    self._settings = settings
    self._n_jobs = int(n_jobs)
    self._progress = bool(progress)

  @property
  def settings(self) -> SweepSettings:
    return self._settings

  @property
  def io_allocation(self) -> IOAllocation:
    return self._io_allocation

  @property
  def nest_specs(self) -> tuple:
    return self._nest_specs

  def evaluate(self, node_count: int) -> Outcome:
    """Evaluate a single node count."""
    if node_count < 1:
      raise ValueError("node_count must be at least 1")
    return _evaluate_node_count(self._nest_specs, self._io_allocation, self._settings, node_count)

  def run(self) -> SweepResult:
    if len(self._nest_specs) > 2 and not self._settings.combine_all_nests:
      warnings.warn(
        f"{len(self._nest_specs)} nests configured but only the first two enter the aggregate score; "
        "pass combine_all_nests=True to score every nest.",
        RuntimeWarning,
        stacklevel=2,
      )

    node_counts = list(range(1, self._settings.max_nodes + 1))
    if self._n_jobs == 1 or len(node_counts) <= 1:
      outcomes = [
        self.evaluate(node_count)
        for node_count in tqdm(node_counts, total=len(node_counts), desc='Evaluating node counts', unit='node', leave=False, disable=not self._progress)
      ]
    else:
      progress_bar = tqdm(total=len(node_counts), desc='Evaluating node counts', unit='node', leave=False, disable=not self._progress)
      with tqdm_joblib(progress_bar):
        outcomes = Parallel(n_jobs=self._n_jobs, backend='loky')(
          delayed(_evaluate_node_count)(self._nest_specs, self._io_allocation, self._settings, node_count)
          for node_count in node_counts
        )

    result = SweepResult(outcomes=list(outcomes))
    logger.debug(
      f"Sweep finished: {len(result.decompositions)} layouts, {len(result.no_layouts)} node counts without a layout"
    )
    return result
