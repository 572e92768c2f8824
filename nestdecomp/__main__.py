import sys

from nestdecomp.cli import main

sys.exit(main())
