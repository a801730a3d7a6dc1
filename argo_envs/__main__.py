"""Run the argo-envs command line tool."""

from argo_envs.tool.argo_envs import main

if __name__ == "__main__":
    main()
