"""
Detect the core and node budget of the current batch allocation.

Used to default ``cores_per_node`` and ``max_nodes`` from a SLURM job when the
caller does not pass them explicitly.  Outside a job the local node is used.
"""

from __future__ import annotations

import os
import re
import subprocess
from typing import List


_CPU_SPEC_PATTERN = re.compile(r'^(?P<count>\d+)(?:\(x(?P<rep>\d+)\))?$')


def _split_nodelist_entries(nodelist: str) -> List[str]:
  parts: List[str] = []
  depth = 0
  current = []
  for char in nodelist:
    if char == ',' and depth == 0:
      if current:
        parts.append(''.join(current))
        current = []
      continue
    if char == '[':
      depth += 1
    elif char == ']':
      depth = max(depth - 1, 0)
    current.append(char)
  if current:
    parts.append(''.join(current))
  return [part.strip() for part in parts if part.strip()]


def _expand_bracket_expression(expr: str) -> List[str]:
  start = expr.find('[')
  if start == -1:
    return [expr]
  end = expr.find(']', start)
  if end == -1:
    return [expr]
  prefix = expr[:start]
  suffix = expr[end + 1:]

  expansions: List[str] = []
  for token in expr[start + 1:end].split(','):
    token = token.strip()
    if not token:
      continue
    if '-' in token:
      start_token, end_token = token.split('-', 1)
      width = len(start_token)
      try:
        first, last = int(start_token), int(end_token)
      except ValueError:
        values = [token]
      else:
        step = 1 if last >= first else -1
        values = [f"{value:0{width}d}" for value in range(first, last + step, step)]
    else:
      values = [token]

    for value in values:
      for tail in _expand_bracket_expression(suffix):
        expansions.append(prefix + value + tail)

  return expansions or [expr]


def expand_nodelist(nodelist: str) -> List[str]:
  """Expand a SLURM nodelist such as ``node[001-003],gpu07`` into host names."""
  try:
    output = subprocess.check_output(['scontrol', 'show', 'hostnames', nodelist], text=True, stderr=subprocess.DEVNULL)
  except (OSError, subprocess.CalledProcessError):
    output = ''
  hosts = [line.strip() for line in output.splitlines() if line.strip()]
  if hosts:
    return hosts

  hosts = []
  for entry in _split_nodelist_entries(nodelist):
    hosts.extend(_expand_bracket_expression(entry))
  return hosts


def parse_cpu_list(spec: str) -> List[int]:
  """Parse ``SLURM_JOB_CPUS_PER_NODE`` syntax, e.g. ``'128(x2),64'`` -> ``[128, 128, 64]``."""
  values: List[int] = []
  for chunk in spec.split(','):
    match = _CPU_SPEC_PATTERN.match(chunk.strip())
    if not match:
      continue
    values.extend([int(match.group('count'))] * int(match.group('rep') or 1))
  return values


def detect_cores_per_node() -> int:
  """
  Cores per node of the current allocation.

  Heterogeneous allocations report the smallest node, since every node must
  host the same number of ranks.
  """
  cpu_counts = parse_cpu_list(os.environ.get('SLURM_JOB_CPUS_PER_NODE', ''))
  if cpu_counts:
    return min(cpu_counts)

  on_node = os.environ.get('SLURM_CPUS_ON_NODE', '')
  if on_node.isdigit() and int(on_node) > 0:
    return int(on_node)

  return os.cpu_count() or 1


def detect_node_count() -> int:
  for key in ('SLURM_JOB_NUM_NODES', 'SLURM_NNODES'):
    value = os.environ.get(key, '')
    if value.isdigit() and int(value) > 0:
      return int(value)

  nodelist = os.environ.get('SLURM_NODELIST') or os.environ.get('SLURM_JOB_NODELIST')
  if nodelist:
    hosts = expand_nodelist(nodelist)
    if hosts:
      return len(hosts)

  return 1
