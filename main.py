#!/usr/bin/env python
"""
PlotGuard - plot reconciliation and overlap detection for Kobo field surveys.

Main entry point for the command line tools.

Usage
-----
    uv run python main.py sync <form_id>

or:
    python main.py check --shape "..." --region Adama
"""

import sys


def main() -> int:
    """
    Main entry point for the PlotGuard command line.

    Returns
    -------
    int
        Exit code (0 for success, non-zero for error).
    """
    from plotguard.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
