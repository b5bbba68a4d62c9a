"""Errors raised while loading settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A setting is present but unusable, e.g. an unknown backend or a negative interval."""


class MissingConfigurationError(ConfigurationError):
    """A setting the selected backend needs is absent or blank."""
