"""Settings resolution utilities for ApiClient configuration."""

from __future__ import annotations

from typing import Any

from pagewalk.utils.types import MAX_PER_PAGE

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "pagewalk"


class SettingsResolver:
    """Resolves client settings from an inner Settings class."""

    @staticmethod
    def get_per_page(cls: type) -> int:
        """Get the default page size, capped at MAX_PER_PAGE.

        Args:
            cls: ApiClient class

        Returns:
            Page size sent when a request does not specify one
        """
        settings = getattr(cls, "Settings", None)
        if settings and hasattr(settings, "per_page"):
            per_page = int(settings.per_page)
            if per_page < 1:
                raise ValueError("Settings.per_page must be >= 1")
            return min(per_page, MAX_PER_PAGE)
        return MAX_PER_PAGE

    @staticmethod
    def get_timeout(cls: type) -> float:
        """Get the request timeout in seconds from Settings or default.

        Args:
            cls: ApiClient class

        Returns:
            Timeout in seconds
        """
        settings = getattr(cls, "Settings", None)
        if settings and hasattr(settings, "timeout"):
            return float(settings.timeout)
        return DEFAULT_TIMEOUT

    @staticmethod
    def get_record_class(cls: type) -> Any:
        """Get the Record subclass responses decode into.

        Args:
            cls: ApiClient class

        Returns:
            Record class
        """
        settings = getattr(cls, "Settings", None)
        if settings and hasattr(settings, "record_class"):
            return settings.record_class
        from pagewalk.core.record import Record

        return Record

    @staticmethod
    def get_user_agent(cls: type) -> str:
        settings = getattr(cls, "Settings", None)
        if settings and hasattr(settings, "user_agent"):
            return settings.user_agent
        return DEFAULT_USER_AGENT
