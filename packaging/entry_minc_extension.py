#!/usr/bin/env python3
"""PyInstaller entrypoint for the minc-extension binary.

Thin wrapper around the project CLI so a frozen, single-file binary can be
built for hosts without a Python environment.
"""

from minc_extension.cli import main


if __name__ == "__main__":
    main()
