"""Test helpers for argo-envs tools."""

import sys
from unittest.mock import patch

from argo_envs.tool.argo_envs import main

ARGO_ENVS_BIN = "argo-envs"


def run_command(args: list[str]) -> None:
    """Run the command line tool with the arguments."""
    with patch.object(sys, "argv", [ARGO_ENVS_BIN] + args):
        main()
