"""
argo-envs manages the environments of an Argo CD app-of-apps GitOps repository.

An environment is a tree of Application manifests rooted at a single root
Application. Environments are merged into a shared repository by the
`installer`, removed by the `uninstaller`, and cluster operations are gated
on convergence through the `waiter`.
"""

__all__ = [
    "app_tree",
    "cluster",
    "config",
    "exceptions",
    "git_repo",
    "installer",
    "manifest",
    "uninstaller",
    "waiter",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
