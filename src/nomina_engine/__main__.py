"""Entry point for ``python -m nomina_engine``."""

import sys

from nomina_engine.cli import main

if __name__ == "__main__":
    sys.exit(main())
