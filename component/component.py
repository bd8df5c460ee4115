# component/component.py
"""Ponto de entrada do comando `component`."""

import sys

from component.modules.cli import main as cli_main


def main():
    return cli_main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
