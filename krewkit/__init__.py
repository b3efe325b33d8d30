"""Building blocks for a kubectl plugin manager: paths, manifests, indexes, downloads and reports."""

__version__ = "0.1.0"