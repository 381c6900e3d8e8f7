"""Errors raised while reading deployment configuration."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A configuration value is missing or malformed.

    ``variable`` names the environment variable at fault, when there is one.
    """

    def __init__(self, message: str, *, variable: str | None = None) -> None:
        super().__init__(message)
        self.variable = variable
