from __future__ import annotations
import h5py
import numpy as np
import os

from typing import Optional

from nestdecomp.io_layout import IOAllocation
from nestdecomp.ranking import decompositions_to_frame
from nestdecomp.sweep import SweepResult, SweepSettings

_LABEL_COLUMNS = {'layout', 'tiles', 'grids'}


def _create_dataset(group: h5py.Group, name: str, data: np.ndarray) -> None:
  # empty datasets cannot be chunked, so only compress when there is data
  if data.size:
    group.create_dataset(name, data=data, compression=1)
  else:
    group.create_dataset(name, data=data)


class Saver:
  def __init__(self, filename: str) -> None:
    self.filename = filename

    # frame column -> dataset under /decompositions
    self.column_to_dataset_map = {
      'node_count': 'node_count',
      'total_cores': 'total_cores',
      'compute_cores': 'compute_cores',
      'npx': 'npx',
      'npy': 'npy',
      'score': 'score',
      'layout': 'labels/layout',
      'tiles': 'labels/tiles',
      'grids': 'labels/grids',
    }

    # per-nest tile attributes stored as (n_layouts, n_nests) arrays
    self.tile_fields = ['tile_x', 'tile_y', 'grid_we', 'grid_sn']

  def save(self, result: SweepResult, settings: Optional[SweepSettings] = None, io_allocation: Optional[IOAllocation] = None) -> None:
    if os.path.exists(self.filename):
      os.remove(self.filename)

    decompositions = result.decompositions
    frame = decompositions_to_frame(decompositions)

    with h5py.File(self.filename, 'w') as f:
      layout_data = f.create_group('decompositions')
      missing_data = f.create_group('no_layout')

      for column, dataset_name in self.column_to_dataset_map.items():
        values = frame[column].tolist()
        if column in _LABEL_COLUMNS:
          data = np.asarray(values, dtype=h5py.string_dtype())
        elif column == 'score':
          data = np.asarray(values, dtype=np.float64)
        else:
          data = np.asarray(values, dtype=np.int64)
        _create_dataset(layout_data, dataset_name, data)

      n_nests = len(decompositions[0].tiles) if decompositions else 0
      for name in self.tile_fields:
        data = np.array(
          [[getattr(tile, name) for tile in decomposition.tiles] for decomposition in decompositions],
          dtype=np.int64,
        ).reshape(len(decompositions), n_nests)
        _create_dataset(layout_data, name, data)

      no_layouts = result.no_layouts
      _create_dataset(missing_data, 'node_count', np.array([item.node_count for item in no_layouts], dtype=np.int64))
      _create_dataset(missing_data, 'reason', np.asarray([item.reason for item in no_layouts], dtype=h5py.string_dtype()))

      if settings is not None:
        f.attrs['cores_per_node'] = settings.cores_per_node
        f.attrs['max_nodes'] = settings.max_nodes
        f.attrs['min_tile'] = settings.min_tile
        f.attrs['io_enabled'] = settings.io_enabled
        f.attrs['combine_all_nests'] = settings.combine_all_nests
      if io_allocation is not None:
        f.attrs['io_groups'] = io_allocation.groups
        f.attrs['io_tasks_per_group'] = io_allocation.tasks_per_group
