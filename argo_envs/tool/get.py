"""Argo-envs get action."""

import logging
from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
from pathlib import Path
from typing import cast, Any

from argo_envs import app_tree
from argo_envs.config import load_config

from .format import PrintFormatter, YamlListFormatter


_LOGGER = logging.getLogger(__name__)


def add_path_flag(args: ArgumentParser) -> None:
    """Add the flag selecting the GitOps working tree."""
    args.add_argument(
        "--path",
        type=Path,
        default=Path.cwd(),
        help="Path to the GitOps repository working tree",
    )


class GetEnvironmentsAction:
    """Get details about environments."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "environments",
                aliases=["envs", "env"],
                help="Get environments",
                description="Print the environments registered in the repository",
            ),
        )
        add_path_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: Path,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = await load_config(path)
        results: list[dict[str, Any]] = [
            {
                "name": name,
                "root_app_path": env.root_app_path,
                "template_ref": env.template_ref or "",
            }
            for name, env in config.environments.items()
        ]
        if not results:
            print(f"No environments found in {config.config_file}")
            return
        PrintFormatter().print(results)


class GetApplicationsAction:
    """Get details about the leaf applications of an environment."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "applications",
                aliases=["apps", "app"],
                help="Get Application objects",
                description="Print the leaf Applications of an environment",
            ),
        )
        add_path_flag(args)
        args.add_argument(
            "--env",
            required=True,
            help="Name of the environment",
        )
        args.add_argument(
            "--name",
            default=None,
            help="Only print the managed Application with this name",
        )
        args.add_argument(
            "--output",
            "-o",
            choices=["wide", "yaml"],
            default=None,
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: Path,
        env: str,
        name: str | None,
        output: str | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = await load_config(path)
        root = await app_tree.root_app(config, config.get_environment(env))
        if name is not None:
            apps = [await app_tree.find_by_managed_name(config, root, name)]
        else:
            apps = await app_tree.leaf_apps(config, root)

        if output == "yaml":
            YamlListFormatter().print([app.compact_dict() for app in apps])
            return

        cols = ["name", "app", "source_path"]
        if output == "wide":
            cols.append("file")
        results: list[dict[str, Any]] = []
        for app in apps:
            file = app.path.relative_to(config.root_path) if app.path else ""
            results.append(
                {
                    "name": app.name,
                    "app": app.managed_name,
                    "source_path": app.source_path,
                    "file": file,
                }
            )
        if not results:
            print(f"No applications found in environment {env}")
            return
        PrintFormatter(cols).print(results)


class GetAction:
    """Argo-envs get action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "get",
                help="Print information about the GitOps repository",
                description="Print information about environments and applications",
            ),
        )
        subcmds = args.add_subparsers(
            title="Available commands",
            required=True,
        )
        GetEnvironmentsAction.register(subcmds)
        GetApplicationsAction.register(subcmds)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        # No-op given subcommands are always the dispatch target
