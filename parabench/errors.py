from __future__ import annotations


class ParabenchError(Exception):
    """Base class for errors raised by parabench."""


class ConfigurationError(ParabenchError, ValueError):
    """Raised when a suite configuration is unusable before any run starts."""


class ScalabilityUnavailableError(ParabenchError, RuntimeError):
    """Raised when comparing two runs cannot produce a meaningful ratio."""


__all__ = [
    "ParabenchError",
    "ConfigurationError",
    "ScalabilityUnavailableError",
]
