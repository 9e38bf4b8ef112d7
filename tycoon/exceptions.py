"""Engine exceptions."""
from __future__ import annotations


class TycoonError(Exception):
    """Base class for engine errors."""


class UnknownJobError(TycoonError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown job: {self.name}"
