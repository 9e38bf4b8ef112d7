"""Dev Tycoon economy engine."""

__version__ = "0.1.0"
