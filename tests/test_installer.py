"""Tests for the installer library."""

from pathlib import Path

import pytest

from argo_envs import app_tree
from argo_envs.config import CONFIG_FILE_NAME, Config, load_config, new_config
from argo_envs.exceptions import EnvironmentAlreadyExists, InputException
from argo_envs.installer import base_location, install_environment, overlay_path
from argo_envs.manifest import Application, read_application

KUSTOMIZATION = """\
apiVersion: kustomize.config.k8s.io/v1beta1
kind: Kustomization
resources:
  - {resource}
"""


@pytest.mark.parametrize(
    ("base", "expected"),
    [
        ("apps/foo/overlays/base", "apps/foo/overlays/prod"),
        ("shared/foo/base/deployment.yaml", "shared/foo/overlays/prod"),
        ("apps/foo/base/", "apps/foo/overlays/prod"),
    ],
)
def test_overlay_path(base: str, expected: str) -> None:
    """Test computing the overlay directory next to a base."""
    assert overlay_path(base, "prod") == expected


async def test_base_location(gitops_path: Path) -> None:
    """Test resolving the base of an application from its kustomization."""
    config = await load_config(gitops_path)
    app = await app_tree.find_app(config, "foo")
    assert await base_location(config, app) == "shared/foo/base/deployment.yaml"


async def test_base_location_no_resources(tmp_path: Path) -> None:
    """Test a kustomization without resources."""
    (tmp_path / "apps/foo").mkdir(parents=True)
    (tmp_path / "apps/foo/kustomization.yaml").write_text("resources: []\n")
    app = Application(name="foo", namespace=None, source_path="apps/foo")
    with pytest.raises(InputException, match="no resources"):
        await base_location(Config(root_path=tmp_path), app)


async def test_install_environment(gitops_path: Path, template_path: Path) -> None:
    """Test merging the prod environment into the staging repository."""
    config = await load_config(gitops_path)
    template = await load_config(template_path)

    env = await install_environment(config, template, "prod")
    assert env.root_app_path == "argocd-apps/prod.yaml"
    assert env.template_ref == "https://github.com/example/template#main"

    # A brand new application is copied with its base and overlays
    assert (gitops_path / "apps/baz/base/kustomization.yaml").exists()
    assert (gitops_path / "apps/baz/overlays/prod/kustomization.yaml").exists()

    # An existing application gets a new overlay next to the existing ones
    overlay = gitops_path / "shared/foo/overlays/prod"
    assert (overlay / "kustomization.yaml").exists()
    assert (overlay / "replicas.yaml").exists()
    assert not (gitops_path / "apps/foo").exists()
    assert (gitops_path / "shared/foo/overlays/staging/kustomization.yaml").exists()

    # The application definitions are reachable next to staging
    apps_dir = gitops_path / "argocd-apps"
    assert (apps_dir / "prod.yaml").exists()
    assert (apps_dir / "prod-project.yaml").exists()
    foo = await read_application(apps_dir / "prod/foo.yaml")
    assert foo is not None
    assert foo.source_path == "shared/foo/overlays/prod"
    assert foo.contents is not None
    assert foo.contents["spec"]["source"]["path"] == "shared/foo/overlays/prod"
    baz = await read_application(apps_dir / "prod/baz.yaml")
    assert baz is not None
    assert baz.source_path == "apps/baz/overlays/prod"
    assert (apps_dir / "staging.yaml").exists()

    # The registry is persisted
    reloaded = await load_config(gitops_path)
    assert list(reloaded.environments) == ["staging", "prod"]
    assert reloaded.environments["prod"] == env

    # The new environment tree is walkable from the destination
    root = await app_tree.root_app(reloaded, env)
    leaves = await app_tree.leaf_apps(reloaded, root)
    assert [leaf.name for leaf in leaves] == ["prod-baz", "prod-foo"]


async def test_install_preserves_file_modes(gitops_path: Path, template_path: Path) -> None:
    """Test copied files keep their permission bits."""
    source = template_path / "apps/baz/base/deployment.yaml"
    source.chmod(0o755)
    config = await load_config(gitops_path)
    template = await load_config(template_path)

    await install_environment(config, template, "prod")

    copied = gitops_path / "apps/baz/base/deployment.yaml"
    assert copied.stat().st_mode & 0o777 == 0o755


async def test_install_overlay_from_relative_base(tmp_path: Path) -> None:
    """Test an existing application whose overlay references a sibling base."""
    dest = tmp_path / "dest"
    (dest / "envs").mkdir(parents=True)
    (dest / "envs/staging.yaml").write_text(
        ROOT_APP.format(name="staging", source_path="envs/staging")
    )
    (dest / "envs/staging").mkdir()
    (dest / "envs/staging/foo.yaml").write_text(
        LEAF_APP.format(name="staging-foo", source_path="apps/foo/overlays/staging")
    )
    (dest / "apps/foo/overlays/staging").mkdir(parents=True)
    (dest / "apps/foo/overlays/staging/kustomization.yaml").write_text(
        KUSTOMIZATION.format(resource="../base")
    )
    (dest / CONFIG_FILE_NAME).write_text(
        "version: '1.0'\nenvironments:\n  staging:\n    rootAppPath: envs/staging.yaml\n"
    )

    template_dir = tmp_path / "template"
    (template_dir / "envs/prod").mkdir(parents=True)
    (template_dir / "envs/prod.yaml").write_text(
        ROOT_APP.format(name="prod", source_path="envs/prod")
    )
    (template_dir / "envs/prod/foo.yaml").write_text(
        LEAF_APP.format(name="prod-foo", source_path="apps/foo/overlays/prod")
    )
    (template_dir / "apps/foo/overlays/prod").mkdir(parents=True)
    (template_dir / "apps/foo/overlays/prod/kustomization.yaml").write_text(
        KUSTOMIZATION.format(resource="../base")
    )
    (template_dir / CONFIG_FILE_NAME).write_text(
        "version: '1.0'\nenvironments:\n  prod:\n    rootAppPath: envs/prod.yaml\n"
    )

    config = await load_config(dest)
    await install_environment(config, await load_config(template_dir), "prod")

    assert (dest / "apps/foo/overlays/prod/kustomization.yaml").exists()
    foo = await read_application(dest / "envs/prod/foo.yaml")
    assert foo is not None
    assert foo.source_path == "apps/foo/overlays/prod"


async def test_install_environment_already_exists(
    gitops_path: Path, template_path: Path
) -> None:
    """Test installing an environment that is already registered."""
    config = await load_config(gitops_path)
    template = await load_config(template_path)
    await install_environment(config, template, "prod")
    before = (gitops_path / CONFIG_FILE_NAME).read_text()

    with pytest.raises(EnvironmentAlreadyExists, match="prod"):
        await install_environment(config, await load_config(template_path), "prod")

    assert (gitops_path / CONFIG_FILE_NAME).read_text() == before


async def test_install_environment_rejected_before_changes(
    gitops_path: Path, template_path: Path
) -> None:
    """Test nothing is modified when the environment name is taken."""
    config = await load_config(gitops_path)
    template = await load_config(template_path)
    template.environments["staging"] = template.environments.pop("prod")

    with pytest.raises(EnvironmentAlreadyExists):
        await install_environment(config, template, "staging")

    assert not (gitops_path / "apps/baz").exists()
    assert not (gitops_path / "argocd-apps/prod.yaml").exists()


async def test_install_into_empty_registry(tmp_path: Path, template_path: Path) -> None:
    """Test installing the first environment of a repository."""
    dest = tmp_path / "dest"
    dest.mkdir()
    config = new_config(dest)
    template = await load_config(template_path)

    env = await install_environment(config, template, "prod")

    assert env.root_app_path == "argocd-apps/prod.yaml"
    assert (dest / "apps/foo/overlays/prod/kustomization.yaml").exists()
    assert (dest / "apps/baz/base/deployment.yaml").exists()
    assert (dest / "argocd-apps/prod/foo.yaml").exists()
    reloaded = await load_config(dest)
    assert list(reloaded.environments) == ["prod"]


ROOT_APP = """\
apiVersion: argoproj.io/v1alpha1
kind: Application
metadata:
  name: {name}
  namespace: argocd
  labels:
    app.kubernetes.io/managed-by: argo-envs
    app.kubernetes.io/name: {name}
spec:
  source:
    path: {source_path}
"""

LEAF_APP = """\
apiVersion: argoproj.io/v1alpha1
kind: Application
metadata:
  name: {name}
  namespace: argocd
  labels:
    app.kubernetes.io/managed-by: argo-envs
    app.kubernetes.io/name: foo
spec:
  source:
    path: {source_path}
"""
