"""
Discord integration layer: the bot client, the base cog every feature
extends, and the feature cog loader.
"""

from src.bot.bot import LawFirmBot

__all__ = ["LawFirmBot"]
