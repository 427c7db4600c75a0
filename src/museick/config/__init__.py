"""Configuration module for Museick."""

from .settings import (
    BackendSettings,
    CredentialSettings,
    ObservabilitySettings,
    PromotionPolicy,
    SearchSettings,
    SelectionSettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "BackendSettings",
    "CredentialSettings",
    "ObservabilitySettings",
    "PromotionPolicy",
    "SearchSettings",
    "SelectionSettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
