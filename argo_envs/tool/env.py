"""Argo-envs actions that add or remove environments in a working tree.

These only modify the local working tree. Pushing the result, and applying
or deleting resources in a cluster, is left to the caller.
"""

import logging
from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
from pathlib import Path
from typing import cast

from argo_envs import app_tree
from argo_envs.config import load_config
from argo_envs.git_repo import GitRepository
from argo_envs.installer import install_environment
from argo_envs.uninstaller import delete_environment

from .get import add_path_flag


_LOGGER = logging.getLogger(__name__)


def add_commit_flag(args: ArgumentParser) -> None:
    """Add the flag to commit the working tree changes."""
    args.add_argument(
        "--commit",
        action=BooleanOptionalAction,
        default=False,
        help="Commit the changes to the git repository of the working tree",
    )


def commit_changes(path: Path, message: str) -> None:
    """Commit every change in the working tree."""
    repo = GitRepository.open(path)
    repo.add(".")
    sha = repo.commit(message)
    print(f"Committed {sha[:8]}: {message}")


class AddEnvAction:
    """Add an environment from a template working tree."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "add-env",
                help="Add an environment to the repository",
                description=(
                    "Merge the application tree of an environment materialized "
                    "from a template into the repository"
                ),
            ),
        )
        add_path_flag(args)
        args.add_argument(
            "--template",
            type=Path,
            required=True,
            help="Path to the materialized template working tree",
        )
        args.add_argument(
            "--env",
            required=True,
            help="Name of the environment to add",
        )
        add_commit_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: Path,
        template: Path,
        env: str,
        commit: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = await load_config(path)
        template_config = await load_config(template)
        new_env = await install_environment(config, template_config, env)
        print(f"Added environment {env} ({new_env.root_app_path})")
        if new_env.template_ref:
            print(f"Bootstrap manifests: {new_env.bootstrap_url()}")
        if commit:
            commit_changes(path, f"added environment {env}")


class RemoveEnvAction:
    """Remove the managed applications of an environment."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "remove-env",
                help="Remove an environment from the working tree only",
                description=(
                    "Remove the managed applications of an environment and, when "
                    "nothing else remains, its root application and registry entry. "
                    "Everything is removed in a single change, without waiting for "
                    "the controller to sync the removal before the root application "
                    "goes away. Do not push the result to a repository that a live "
                    "cluster syncs from; use `argo_envs.uninstaller` there."
                ),
            ),
        )
        add_path_flag(args)
        args.add_argument(
            "--env",
            required=True,
            help="Name of the environment to remove",
        )
        add_commit_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: Path,
        env: str,
        commit: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = await load_config(path)
        environment = config.get_environment(env)
        should_clean = await app_tree.prune_managed_apps(config, environment)
        if should_clean:
            await app_tree.remove_root_app_files(config, environment)
            await delete_environment(config, env)
            print(f"Removed environment {env}")
        else:
            print(f"Removed managed applications of {env}, unmanaged applications remain")
        if commit:
            commit_changes(path, f"uninstalled environment {env}")
