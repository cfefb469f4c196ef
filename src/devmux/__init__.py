"""devmux - named tmux workspaces for projects, and a controller that finds their windows"""

__version__ = "0.3.0"
