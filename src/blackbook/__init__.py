"""Keep declared files, assets and plugins in sync across AI coding-tool instances."""

__version__ = "0.1.0"
