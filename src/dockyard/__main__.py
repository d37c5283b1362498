"""Entry point for ``python -m dockyard``."""

from dockyard.cli.main import main


if __name__ == "__main__":
    main()
