"""Exception hierarchy for fatal configuration problems."""

from __future__ import annotations


class NestDecompError(Exception):
  """Base class for errors that abort a decomposition run."""


class GridDimensionError(NestDecompError, ValueError):
  """A nest resolved to a zero (or negative) grid size."""


class NamelistError(NestDecompError, ValueError):
  """A namelist file is missing or does not describe the domains."""


class IOConfigurationError(NestDecompError, ValueError):
  """The parallel I/O settings cannot be satisfied."""
