MIN_TILE = 10
PERTURB_PERCENT = 10

DEFAULT_CORES_PER_NODE = 128
DEFAULT_MAX_NODES = 1
DEFAULT_NESTS = 1

DEFAULT_IO_TASKS_PER_GROUP = 2

# groups x tasks-per-group, tried in order until one leaves compute cores on a node
IO_RECOMMENDATIONS = (
  (1, 2),
  (2, 2),
  (2, 4),
  (4, 2),
)

# km -> m
LENGTH_TO_SPACING = 1000.0

SCORE_DECIMALS = 1

NO_COMPUTE_CORES = 'no compute cores'
NO_PROCESS_GRID = 'no admissible process grid'
