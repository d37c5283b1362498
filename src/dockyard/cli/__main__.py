"""Entry point for ``python -m dockyard.cli``."""

from dockyard.cli.main import main


if __name__ == "__main__":
    main()
