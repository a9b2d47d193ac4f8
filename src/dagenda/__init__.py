"""dagenda: task dependency graph + conflict-free agenda scheduling."""

__version__ = "0.1.0"
