"""
Module entry point for das_sim package.

Allows running via: python -m das_sim <command>
"""

import sys
from das_sim.cli import main

if __name__ == "__main__":
    sys.exit(main())
