"""Allow ``python -m checkpoint.cli``."""

import sys

from checkpoint.cli import main

sys.exit(main())
