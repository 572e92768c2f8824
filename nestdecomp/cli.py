"""
Command-line entry point.

Usage:
    nestdecomp --we 400 --sn 300 --cores-per-node 128 --max-nodes 8
    nestdecomp --nests 2 --we 400,301 --sn 300,256 --enable-parallel-io
    nestdecomp --nests 2 --length-we 1200,400 --spacing 3000,1000 --max-nodes 16
    nestdecomp --namelist namelist.input --max-nodes 32 --output layouts.h5
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional, Sequence

import nestdecomp.constants as c
from nestdecomp.errors import NestDecompError
from nestdecomp.nests import nest_inputs_from_lists, parse_namelist
from nestdecomp.optimizer import DomainOptimizer
from nestdecomp.resources import detect_cores_per_node, detect_node_count


def _comma_list(cast: Callable) -> Callable[[str], List]:
  def parse(value: str) -> List:
    try:
      return [cast(token) for token in value.split(',') if token.strip()]
    except ValueError as exc:
      raise argparse.ArgumentTypeError(f"invalid list '{value}': {exc}") from exc
  return parse


def create_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="nestdecomp",
    description="Find the best process layout for nested domains at every node count.",
  )

  # Nest geometry
  parser.add_argument("--nests", type=int, default=c.DEFAULT_NESTS, help="Number of nests [default = 1]")
  parser.add_argument("--we", type=_comma_list(int), default=[], help="Grid points west-east, comma separated per nest")
  parser.add_argument("--sn", type=_comma_list(int), default=[], help="Grid points south-north, comma separated per nest")
  parser.add_argument("--spacing", type=_comma_list(float), default=[], help="Grid spacing in metres, per nest")
  parser.add_argument("--length-we", type=_comma_list(float), default=[], help="Domain length west-east in km, per nest")
  parser.add_argument("--length-sn", type=_comma_list(float), default=[], help="Domain length south-north in km, per nest")
  parser.add_argument("--namelist", type=str, help="Read e_we, e_sn, dx and max_dom from a WRF namelist")

  # Machine
  parser.add_argument(
    "--cores-per-node",
    type=int,
    default=None,
    help=f"Cores per node (e.g., Derecho: 128 cores/node) [default = {c.DEFAULT_CORES_PER_NODE}]",
  )
  parser.add_argument("--max-nodes", type=int, default=None, help="Largest node count to evaluate [default = 1]")
  parser.add_argument(
    "--detect-resources",
    action="store_true",
    help="Default --cores-per-node and --max-nodes from the current SLURM allocation",
  )

  # Parallel I/O
  parser.add_argument("--enable-parallel-io", action="store_true", help="Reserve I/O (quilt) processes")
  parser.add_argument("--nio-groups", type=int, default=None, help="Number of I/O groups")
  parser.add_argument("--nio-tasks-per-group", type=int, default=None, help="I/O tasks per group")

  # Search
  parser.add_argument("--disable-grid-perturb", action="store_true", help="Only evaluate the base grid sizes")
  parser.add_argument(
    "--perturb-percent",
    type=float,
    default=c.PERTURB_PERCENT,
    help=f"Perturbation half-width as a percentage of the west-east size [default = {c.PERTURB_PERCENT}]",
  )
  parser.add_argument("--min-tile", type=int, default=c.MIN_TILE, help=f"Minimum tile edge in grid points [default = {c.MIN_TILE}]")
  parser.add_argument(
    "--combine-all-nests",
    action="store_true",
    help="Score every nest in the aggregate instead of only the first two",
  )

  # Execution and output
  parser.add_argument("--jobs", "-j", type=int, default=1, help="Parallel workers for the sweep (-1 = all cores)")
  parser.add_argument("--output", "-o", type=str, default=None, help="Write the layouts to an HDF5 file")
  parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
  parser.add_argument("--debug", action="store_true", help="Enable debug mode for detailed output")

  return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
  args = create_parser().parse_args(argv)

  if args.debug:
    logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")
    logging.debug("Debug mode is enabled.")
  else:
    logging.basicConfig(level=logging.INFO, format="%(message)s")

  cores_per_node = args.cores_per_node
  max_nodes = args.max_nodes
  if args.detect_resources:
    if cores_per_node is None:
      cores_per_node = detect_cores_per_node()
    if max_nodes is None:
      max_nodes = detect_node_count()
    logging.debug(f"Detected allocation: {cores_per_node} cores/node, {max_nodes} nodes")
  if cores_per_node is None:
    cores_per_node = c.DEFAULT_CORES_PER_NODE
  if max_nodes is None:
    max_nodes = c.DEFAULT_MAX_NODES

  try:
    if args.namelist:
      nest_inputs = parse_namelist(args.namelist)
    else:
      nest_inputs = nest_inputs_from_lists(
        args.nests,
        we=args.we,
        sn=args.sn,
        spacing=args.spacing,
        length_we=args.length_we,
        length_sn=args.length_sn,
      )

    optimizer = DomainOptimizer(
      nest_inputs,
      cores_per_node=cores_per_node,
      max_nodes=max_nodes,
      parallel_io=args.enable_parallel_io,
      nio_groups=args.nio_groups,
      nio_tasks_per_group=args.nio_tasks_per_group,
      min_tile=args.min_tile,
      perturb_percent=args.perturb_percent,
      disable_perturbation=args.disable_grid_perturb,
      combine_all_nests=args.combine_all_nests,
      n_jobs=args.jobs,
      progress=not args.no_progress,
    )
  except (NestDecompError, ValueError) as exc:
    print(f"Error: {exc}", file=sys.stderr)
    return 1

  optimizer.run(output=args.output)
  return 0


if __name__ == "__main__":
  sys.exit(main())
