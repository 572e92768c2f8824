from __future__ import annotations

import pytest

from nestdecomp.errors import GridDimensionError, NamelistError
from nestdecomp.nests import (
  NestInput,
  NestSpec,
  build_nest_specs,
  nest_inputs_from_lists,
  parse_namelist,
  perturbation_half_width,
  resolve_base_grid,
)


def test_nest_spec_windows() -> None:
  nest = NestSpec(100, 80, 10)
  assert nest.we_window == (90, 110)
  assert nest.sn_window == (70, 90)
  assert NestSpec(20, 20).we_window == (20, 20)


@pytest.mark.parametrize("base_we,base_sn", [(0, 10), (10, 0), (-1, 10)])
def test_nest_spec_rejects_empty_grids(base_we: int, base_sn: int) -> None:
  with pytest.raises(GridDimensionError):
    NestSpec(base_we, base_sn, 0)


def test_nest_spec_rejects_negative_perturbation() -> None:
  with pytest.raises(ValueError):
    NestSpec(10, 10, -1)


def test_explicit_points_take_precedence() -> None:
  assert resolve_base_grid(NestInput(we=320, sn=180, spacing=3000.0, length_we=9.0)) == (320, 180)


def test_points_derived_from_length_and_spacing() -> None:
  assert resolve_base_grid(NestInput(spacing=3000.0, length_we=120.0, length_sn=90.0)) == (40, 30)
  # south-north length defaults to the west-east one
  assert resolve_base_grid(NestInput(spacing=3000.0, length_we=120.0)) == (40, 40)
  # a lone point count is not enough; the lengths are used instead
  assert resolve_base_grid(NestInput(we=320)) == (0, 0)


def test_perturbation_half_width_truncates() -> None:
  assert perturbation_half_width(40) == 4
  assert perturbation_half_width(45) == 4
  assert perturbation_half_width(9) == 0
  assert perturbation_half_width(200, 5) == 10


def test_build_nest_specs_uses_west_east_size_for_both_axes() -> None:
  specs = build_nest_specs([NestInput(we=200, sn=50), NestInput(we=120, sn=300)])
  assert specs == [NestSpec(200, 50, 20), NestSpec(120, 300, 12)]


def test_build_nest_specs_can_disable_perturbation() -> None:
  specs = build_nest_specs([NestInput(we=200, sn=50)], disable_perturbation=True)
  assert specs == [NestSpec(200, 50, 0)]


def test_build_nest_specs_reports_missing_dimensions() -> None:
  inputs = nest_inputs_from_lists(2, we=[100], sn=[100])
  with pytest.raises(GridDimensionError, match="nest 2"):
    build_nest_specs(inputs)


def test_nest_inputs_from_lists_pads_with_none() -> None:
  inputs = nest_inputs_from_lists(2, we=[100, 60], sn=[80], spacing=[3000.0])
  assert inputs[0] == NestInput(we=100, sn=80, spacing=3000.0)
  assert inputs[1] == NestInput(we=60)
  with pytest.raises(ValueError):
    nest_inputs_from_lists(0)


def test_parse_namelist(tmp_path) -> None:
  namelist = tmp_path / "namelist.input"
  namelist.write_text(
    "\n".join(
      [
        "&domains",
        " max_dom = 2,",
        " e_we    = 150, 220, 301,  ! third domain unused",
        " e_sn    = 130, 214, 256,",
        " dx      = 9000, 3000, 1000,",
        "/",
      ]
    )
  )

  inputs = parse_namelist(namelist)
  assert inputs == [
    NestInput(we=150, sn=130, spacing=9000.0),
    NestInput(we=220, sn=214, spacing=3000.0),
  ]


def test_parse_namelist_without_dx(tmp_path) -> None:
  namelist = tmp_path / "namelist.input"
  namelist.write_text("max_dom = 1,\ne_we = 320,\ne_sn = 180,\n")
  assert parse_namelist(namelist) == [NestInput(we=320, sn=180)]


def test_parse_namelist_errors(tmp_path) -> None:
  with pytest.raises(NamelistError, match="does not exist"):
    parse_namelist(tmp_path / "missing.input")

  no_sn = tmp_path / "no_sn.input"
  no_sn.write_text("max_dom = 1,\ne_we = 320,\n")
  with pytest.raises(NamelistError, match="e_sn"):
    parse_namelist(no_sn)

  too_many = tmp_path / "too_many.input"
  too_many.write_text("max_dom = 3,\ne_we = 320, 200,\ne_sn = 180, 150,\n")
  with pytest.raises(NamelistError, match="max_dom=3"):
    parse_namelist(too_many)
