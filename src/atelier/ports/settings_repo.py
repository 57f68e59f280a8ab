"""Business settings repository interface."""

from typing import Protocol

from atelier.config import BusinessSettings


class SettingsRepository(Protocol):
    """Interface for the single business settings record."""

    def fetch_settings(self) -> BusinessSettings:
        """Fetch settings, falling back to defaults when none are stored."""
        ...
