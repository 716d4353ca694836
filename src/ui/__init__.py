"""
UI subsystem: colors, embeds and views.

Usage:
    >>> from src.ui import EmbedFactory
    >>> embed = EmbedFactory.success("Case Created", "AA-2026-0001-client")
"""

from src.ui.colors import ColorPalette, ColorTheme
from src.ui.embeds import EmbedFactory

__all__ = [
    "ColorPalette",
    "ColorTheme",
    "EmbedFactory",
]
