"""Google Photos tools served over the Model Context Protocol."""

__version__ = "1.0.0"
