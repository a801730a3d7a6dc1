"""Test fixtures for argo-envs."""

from pathlib import Path
import shutil

import pytest

TESTDATA = Path(__file__).parent / "testdata"


@pytest.fixture
def gitops_path(tmp_path: Path) -> Path:
    """A writable copy of the destination GitOps repository."""
    path = tmp_path / "gitops"
    shutil.copytree(TESTDATA / "gitops", path)
    return path


@pytest.fixture
def template_path(tmp_path: Path) -> Path:
    """A writable copy of a template materialized for the `prod` environment."""
    path = tmp_path / "template"
    shutil.copytree(TESTDATA / "template", path)
    return path
