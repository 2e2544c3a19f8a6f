"""entry point for `python -m docpanic`."""

import sys

from .cli import main

sys.exit(main())
