"""vcs-command entry point.

Supports: python -m vcs_command
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
