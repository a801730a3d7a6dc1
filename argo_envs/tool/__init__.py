"""Command line tool for argo-envs."""
