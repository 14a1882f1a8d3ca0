"""Entry point for python -m indexrunner."""

from indexrunner.cli.main import main

if __name__ == "__main__":
    main()
