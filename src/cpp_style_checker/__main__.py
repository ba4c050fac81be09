"""Entry point for running the checker as a module.

Usage: python -m cpp_style_checker
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
