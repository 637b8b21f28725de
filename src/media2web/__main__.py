"""
Entry point for running media2web as a module: python -m media2web

This allows the package to be executed directly:
    python -m media2web image ./photos
    python -m media2web --help
"""

import sys

from media2web.cli import main

if __name__ == "__main__":
    sys.exit(main())
