"""Configuration module using Pydantic Settings.

Usage:
    from datakit.config import ClientSettings

    settings = ClientSettings(endpoint="https://data.example.com")
"""

from datakit.config.settings import ClientSettings

__all__ = [
    "ClientSettings",
]
