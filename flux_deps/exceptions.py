"""Exceptions related to flux-deps."""

__all__ = [
    "FluxDepsException",
    "InputException",
]


class FluxDepsException(Exception):
    """Generic base exception used for this library."""


class InputException(FluxDepsException):
    """Raised when the input files or values are not formatted as expected."""
