"""
Nest definitions for the decomposition search.

Each nest is reduced to a base grid size (points along the west-east and
south-north axes) plus a symmetric perturbation half-width.  The sizes come
either from explicit point counts or from a physical extent and a grid
spacing; a WRF ``namelist.input`` can supply the same information.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import nestdecomp.constants as c
from nestdecomp.errors import GridDimensionError, NamelistError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NestSpec:
  """
  Base grid size and perturbation window of a single nest.

  Parameters
  ----------
  base_we:
      Grid points along the west-east axis.
  base_sn:
      Grid points along the south-north axis.
  perturb:
      Half-width of the search window, applied to both axes.
  """

  base_we: int
  base_sn: int
  perturb: int = 0

  def __post_init__(self) -> None:
    object.__setattr__(self, "base_we", int(self.base_we))
    object.__setattr__(self, "base_sn", int(self.base_sn))
    object.__setattr__(self, "perturb", int(self.perturb))
    if self.base_we <= 0 or self.base_sn <= 0:
      raise GridDimensionError(
        f"Nest grid size must be positive in both axes, got {self.base_we}x{self.base_sn}"
      )
    if self.perturb < 0:
      raise ValueError("perturb must be non-negative")

  @property
  def we_window(self) -> Tuple[int, int]:
    return self.base_we - self.perturb, self.base_we + self.perturb

  @property
  def sn_window(self) -> Tuple[int, int]:
    return self.base_sn - self.perturb, self.base_sn + self.perturb


@dataclass(frozen=True)
class NestInput:
  """Raw per-nest input: explicit point counts and/or a physical extent (km, m)."""

  we: Optional[int] = None
  sn: Optional[int] = None
  spacing: Optional[float] = None
  length_we: Optional[float] = None
  length_sn: Optional[float] = None


def resolve_base_grid(nest_input: NestInput) -> Tuple[int, int]:
  """
  Return ``(base_we, base_sn)`` for a nest.

  Explicit point counts win when both are present.  Otherwise the extent in
  kilometres is divided by the spacing in metres; the spacing defaults to 1,
  the west-east length to 0 and the south-north length to the west-east one.
  """
  if nest_input.we is not None and nest_input.sn is not None:
    return int(nest_input.we), int(nest_input.sn)

  spacing = nest_input.spacing if nest_input.spacing is not None else 1.0
  if spacing <= 0:
    raise GridDimensionError(f"Grid spacing must be positive, got {spacing}")
  length_we = nest_input.length_we if nest_input.length_we is not None else 0.0
  length_sn = nest_input.length_sn if nest_input.length_sn is not None else length_we
  base_we = int(length_we * c.LENGTH_TO_SPACING / spacing)
  base_sn = int(length_sn * c.LENGTH_TO_SPACING / spacing)
  return base_we, base_sn


def perturbation_half_width(base_we: int, percent: float = c.PERTURB_PERCENT) -> int:
  return int(base_we * percent / 100)


def build_nest_specs(
  inputs: Sequence[NestInput],
  *,
  perturb_percent: float = c.PERTURB_PERCENT,
  disable_perturbation: bool = False,
) -> List[NestSpec]:
  """
  Convert raw nest input into :class:`NestSpec` objects, in nest order.

  Raises
  ------
  GridDimensionError
      When a nest resolves to zero points along either axis.  This aborts the
      whole run; no partial results are produced.
  """
  if perturb_percent < 0:
    raise ValueError("perturb_percent must be non-negative")

  specs: List[NestSpec] = []
  for index, nest_input in enumerate(inputs):
    base_we, base_sn = resolve_base_grid(nest_input)
    if base_we <= 0 or base_sn <= 0:
      raise GridDimensionError(f"Missing grid dimensions for nest {index + 1}")
    perturb = 0 if disable_perturbation else perturbation_half_width(base_we, perturb_percent)
    spec = NestSpec(base_we=base_we, base_sn=base_sn, perturb=perturb)
    logger.debug(f"Nest {index + 1}: base {base_we}x{base_sn}, perturbation +/-{perturb}")
    specs.append(spec)
  return specs


def nest_inputs_from_lists(
  nests: int,
  we: Sequence[int] = (),
  sn: Sequence[int] = (),
  spacing: Sequence[float] = (),
  length_we: Sequence[float] = (),
  length_sn: Sequence[float] = (),
) -> List[NestInput]:
  """Zip per-nest value lists into :class:`NestInput` records; short lists yield ``None``."""
  if nests < 1:
    raise ValueError("nests must be at least 1")

  def _at(values: Sequence, index: int):
    return values[index] if index < len(values) else None

  return [
    NestInput(
      we=_at(we, i),
      sn=_at(sn, i),
      spacing=_at(spacing, i),
      length_we=_at(length_we, i),
      length_sn=_at(length_sn, i),
    )
    for i in range(nests)
  ]


_NAMELIST_PATTERNS = {
  "e_we": re.compile(r"\be_we\s*=\s*([\d,\s]+)", re.IGNORECASE),
  "e_sn": re.compile(r"\be_sn\s*=\s*([\d,\s]+)", re.IGNORECASE),
  "max_dom": re.compile(r"\bmax_dom\s*=\s*(\d+)", re.IGNORECASE),
}

_DX_PATTERN = re.compile(r"\bdx\s*=\s*([\d.,\sEe+-]+)", re.IGNORECASE)


def _split_numbers(value: str) -> List[str]:
  return [token.strip() for token in value.split(",") if token.strip()]


def parse_namelist(namelist_path: str | Path) -> List[NestInput]:
  """
  Read the domain sizes from a WRF ``namelist.input``.

  The file should contain lines such as::

      max_dom = 2,
      e_we    = 150, 220,
      e_sn    = 130, 214,
      dx      = 9000, 3000,

  ``dx`` is optional and only recorded as the grid spacing.  Comments
  (anything after ``!``) are ignored.

  Raises
  ------
  NamelistError
      If the file is missing, ``e_we``/``e_sn``/``max_dom`` cannot be found, or
      ``max_dom`` exceeds the number of listed sizes.
  """
  if not os.path.isfile(namelist_path):
    raise NamelistError(f"Namelist file '{namelist_path}' does not exist.")

  with open(namelist_path, "r") as handle:
    content = handle.read()

  content = re.sub(r"!.*", "", content)

  matches = {}
  for key, pattern in _NAMELIST_PATTERNS.items():
    match = pattern.search(content)
    if not match:
      raise NamelistError(f"'{key}' not found in the namelist file.")
    matches[key] = match.group(1)

  e_we = [int(token) for token in _split_numbers(matches["e_we"]) if token.isdigit()]
  e_sn = [int(token) for token in _split_numbers(matches["e_sn"]) if token.isdigit()]
  max_dom = int(matches["max_dom"])

  if max_dom > len(e_we) or max_dom > len(e_sn):
    raise NamelistError(
      f"max_dom={max_dom} exceeds the number of 'e_we' ({len(e_we)}) or 'e_sn' ({len(e_sn)}) values provided."
    )

  dx: List[float] = []
  dx_match = _DX_PATTERN.search(content)
  if dx_match:
    for token in _split_numbers(dx_match.group(1)):
      try:
        dx.append(float(token))
      except ValueError:
        break

  inputs = [
    NestInput(we=e_we[i], sn=e_sn[i], spacing=dx[i] if i < len(dx) else None)
    for i in range(max_dom)
  ]
  logger.debug(f"Namelist domains: {[(n.we, n.sn) for n in inputs]}")
  return inputs
