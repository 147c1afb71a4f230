"""Entry point for python -m tmf."""

import sys

from tmf.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
