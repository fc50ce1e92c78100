"""reeldocs: turn uploaded videos into structured, multi-language documentation."""

__version__ = "0.1.0"
