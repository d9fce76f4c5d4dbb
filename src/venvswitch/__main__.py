"""entry point for `python -m venvswitch`."""

from __future__ import annotations

import sys

from .cli import main

sys.exit(main())
