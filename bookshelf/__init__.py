"""Personal e-book library: catalog search, reading lists and reviews."""

__version__ = "0.1.0"
