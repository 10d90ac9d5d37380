"""Errors raised while assembling dbfleet settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """A setting is present but unusable (bad number, impossible retry budget, unknown URL)."""


class MissingConfigurationError(ConfigurationError):
    """Required variables are unset or blank; ``names`` holds them sorted."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")
