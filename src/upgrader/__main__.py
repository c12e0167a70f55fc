"""Allow `python -m upgrader` as an alias for the `upgrader` command."""

from upgrader.cli import main

if __name__ == "__main__":
    main()
