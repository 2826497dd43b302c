"""flaketrack -- TestGrid flake and failure reporter."""

__version__ = "0.1.0"
