"""Entry point so `python -m lobcross.backtest` dispatches to the CLI backtest command."""
from __future__ import annotations

import sys

from ..cli import build_parser, cmd_backtest


def main() -> None:
    """Forward module execution to the CLI backtest subcommand."""
    parser = build_parser()
    # Insert the subcommand name so argparse routes to the correct handler.
    args = parser.parse_args(["backtest", *sys.argv[1:]])
    cmd_backtest(args)


if __name__ == "__main__":
    main()
