from __future__ import annotations

from os import PathLike
from time import perf_counter
from typing import Optional, Sequence

import nestdecomp.constants as c
from nestdecomp.io_layout import IOAllocation, recommend_io_allocation
from nestdecomp.nests import NestInput, build_nest_specs
from nestdecomp.ranking import format_report
from nestdecomp.saver import Saver
from nestdecomp.sweep import DecompositionSweep, SweepResult, SweepSettings


class DomainOptimizer:
  """
  Resolve nests and I/O settings, then sweep node counts for the best layout.

  Fatal configuration problems (a nest without grid dimensions, an
  unsatisfiable I/O layout) are raised from the constructor, before any
  search starts.
  """

  def __init__(
    self,
    nest_inputs: Sequence[NestInput],
    cores_per_node: int = c.DEFAULT_CORES_PER_NODE,
    max_nodes: int = c.DEFAULT_MAX_NODES,
    *,
    parallel_io: bool = False,
    nio_groups: Optional[int] = None,
    nio_tasks_per_group: Optional[int] = None,
    min_tile: int = c.MIN_TILE,
    perturb_percent: float = c.PERTURB_PERCENT,
    disable_perturbation: bool = False,
    combine_all_nests: bool = False,
    n_jobs: int = 1,
    progress: bool = True,
  ) -> None:
    self.nest_specs = build_nest_specs(
      nest_inputs,
      perturb_percent=perturb_percent,
      disable_perturbation=disable_perturbation,
    )
    self.io_allocation: IOAllocation = recommend_io_allocation(
      parallel_io,
      cores_per_node,
      nests=len(self.nest_specs),
      groups=nio_groups,
      tasks_per_group=nio_tasks_per_group,
    )
    self.settings = SweepSettings(
      cores_per_node=cores_per_node,
      max_nodes=max_nodes,
      min_tile=min_tile,
      io_enabled=parallel_io,
      combine_all_nests=combine_all_nests,
    )
    if n_jobs == 0:
      raise ValueError("n_jobs must be non-zero")
    self.n_jobs = n_jobs
    self.progress = progress

  def _log_step(self, current: int, total: int, message: str) -> None:
    print(f"[{current}/{total}] {message}", flush=True)

  def _log_duration(self, start_time: float) -> None:
    print(f"    Done in {perf_counter() - start_time:.2f} seconds.", flush=True)

  def run(self, output: Optional[PathLike | str] = None) -> SweepResult:
    total_steps = 3 if output is not None else 2
    step = 1

    for index, nest in enumerate(self.nest_specs):
      print(f"Nest {index + 1}: {nest.base_we}x{nest.base_sn} grid points, perturbation +/-{nest.perturb}", flush=True)
    print(f"I/O layout: {self.io_allocation} ({self.io_allocation.reserved_cores} reserved cores)", flush=True)

    self._log_step(step, total_steps, f"Optimizing tiling from 1 to {self.settings.max_nodes} nodes...")
    t1 = perf_counter()
    sweep = DecompositionSweep(
      self.nest_specs,
      self.io_allocation,
      self.settings,
      n_jobs=self.n_jobs,
      progress=self.progress,
    )
    result = sweep.run()
    self._log_duration(t1)
    step += 1

    self._log_step(step, total_steps, 'Ranking layouts...')
    report = format_report(result, io_enabled=self.settings.io_enabled)
    if report:
      print(report, flush=True)
    step += 1

    if output is not None:
      self._log_step(step, total_steps, f"Saving layouts to {output}...")
      t1 = perf_counter()
      Saver(str(output)).save(result, self.settings, self.io_allocation)
      self._log_duration(t1)

    return result
