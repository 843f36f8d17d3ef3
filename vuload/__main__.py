"""Allow running the engine with ``python -m vuload``."""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
