from __future__ import annotations

import h5py
import numpy as np
import pytest

from nestdecomp.io_layout import IOAllocation
from nestdecomp.nests import NestSpec
from nestdecomp.saver import Saver
from nestdecomp.sweep import DecompositionSweep, SweepSettings


def test_saver_writes_layouts_and_failures(tmp_path) -> None:
  settings = SweepSettings(cores_per_node=4, max_nodes=3, min_tile=11)
  io_allocation = IOAllocation.disabled()
  result = DecompositionSweep([NestSpec(40, 40, 0), NestSpec(44, 44, 0)], io_allocation, settings).run()
  assert [d.node_count for d in result.decompositions] == [1]

  path = tmp_path / "layouts.h5"
  path.write_text("stale")
  Saver(str(path)).save(result, settings, io_allocation)

  with h5py.File(path, 'r') as f:
    layouts = f['decompositions']
    assert layouts['node_count'][()].tolist() == [1]
    assert layouts['npx'][()].tolist() == [2]
    assert layouts['npy'][()].tolist() == [2]
    assert layouts['score'][()][0] == pytest.approx(result.decompositions[0].score)
    assert layouts['tile_x'].shape == (1, 2)
    assert layouts['tile_x'][()].tolist() == [[20, 22]]
    assert layouts['grid_sn'][()].tolist() == [[40, 44]]
    assert layouts['labels/layout'].asstr()[()].tolist() == ["2 x 2"]

    assert f['no_layout/node_count'][()].tolist() == [2, 3]
    assert f.attrs['cores_per_node'] == 4
    assert f.attrs['min_tile'] == 11
    assert f.attrs['io_groups'] == 0


def test_saver_handles_empty_results(tmp_path) -> None:
  settings = SweepSettings(cores_per_node=4, max_nodes=1, min_tile=50)
  result = DecompositionSweep([NestSpec(40, 40, 0)], IOAllocation.disabled(), settings).run()
  assert not result.found_any

  path = tmp_path / "empty.h5"
  Saver(str(path)).save(result)

  with h5py.File(path, 'r') as f:
    assert f['decompositions/node_count'].shape == (0,)
    assert f['decompositions/tile_x'].shape == (0, 0)
    assert np.array_equal(f['no_layout/node_count'][()], np.array([1]))
