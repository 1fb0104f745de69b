"""Entry point for `python -m themeforge`."""

import sys


def main():
    from themeforge.app import main as run_cli
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
