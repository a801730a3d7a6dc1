"""Command line tool for managing the environments of a GitOps repository."""

import argparse
import asyncio
import logging
import sys
import traceback

from argo_envs.exceptions import ArgoEnvsException
from . import env, get

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for managing environments of a GitOps repository.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    get.GetAction.register(subparsers)
    env.AddEnvAction.register(subparsers)
    env.RemoveEnvAction.register(subparsers)
    return parser


def main() -> None:
    """Argo-envs command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args()

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except ArgoEnvsException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("argo-envs error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
