#!/usr/bin/env python3
"""Entry point for indexrunner CLI when run as python -m indexrunner.cli."""

if __name__ == "__main__":
    from indexrunner.cli.main import main

    main()
