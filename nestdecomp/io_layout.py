"""Reserved parallel I/O (quilt) processes and the advisor that picks them."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

import nestdecomp.constants as c
from nestdecomp.errors import IOConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IOAllocation:
  """I/O groups and tasks per group, subtracted from the total before tiling."""

  groups: int = 0
  tasks_per_group: int = 0

  def __post_init__(self) -> None:
    object.__setattr__(self, "groups", int(self.groups))
    object.__setattr__(self, "tasks_per_group", int(self.tasks_per_group))
    if self.groups < 0 or self.tasks_per_group < 0:
      raise ValueError("I/O groups and tasks per group must be non-negative")

  @classmethod
  def disabled(cls) -> "IOAllocation":
    return cls(0, 0)

  @property
  def reserved_cores(self) -> int:
    return self.groups * self.tasks_per_group

  def __str__(self) -> str:
    return f"{self.groups}x{self.tasks_per_group}"


def recommend_io_allocation(
  enabled: bool,
  cores_per_node: int,
  nests: int = c.DEFAULT_NESTS,
  groups: Optional[int] = None,
  tasks_per_group: Optional[int] = None,
) -> IOAllocation:
  """
  Decide the I/O group layout.

  With parallel I/O disabled nothing is reserved.  When neither count is
  given, the first entry of :data:`constants.IO_RECOMMENDATIONS` that still
  leaves compute cores on a single node is used.  When only one count is
  given, groups default to one per nest and tasks per group to two.
  """
  if not enabled:
    return IOAllocation.disabled()

  if groups is None and tasks_per_group is None:
    for rec_groups, rec_tasks in c.IO_RECOMMENDATIONS:
      if cores_per_node - rec_groups * rec_tasks > 0:
        logger.debug(f"Recommended I/O layout {rec_groups}x{rec_tasks} for {cores_per_node} cores/node")
        return IOAllocation(rec_groups, rec_tasks)
    raise IOConfigurationError(
      f"No recommended I/O layout leaves compute cores on a {cores_per_node}-core node; "
      "set --nio-groups and --nio-tasks-per-group explicitly."
    )

  if groups is None:
    groups = nests
  if tasks_per_group is None:
    tasks_per_group = c.DEFAULT_IO_TASKS_PER_GROUP

  if groups < 0:
    raise IOConfigurationError(f"I/O groups must be non-negative, got {groups}")
  if tasks_per_group < 1:
    raise IOConfigurationError(
      f"I/O tasks per group must be at least 1 when parallel I/O is enabled, got {tasks_per_group}"
    )
  return IOAllocation(groups, tasks_per_group)
