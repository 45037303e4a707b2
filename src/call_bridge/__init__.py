"""Turn-based spoken translation relay between two parties."""

__version__ = "0.1.0"
