"""
Discord Command Package

Centralizes registration for the bot's command surfaces.

IMPORTANT DESIGN RULES:
- No command registration on import
- No Discord client ownership
- Explicit setup() calls only
"""

from __future__ import annotations

from discord.ext import commands

from shared.logging.logger import get_logger

from services.discord.commands import tracking_commands
from services.discord.commands.tracking import TrackingCommandHandler
from services.discord.permissions import on_app_command_error

log = get_logger("discord.commands", runtime="discord")


def setup(bot: commands.Bot, *, handler: TrackingCommandHandler):
    """
    Register all Discord command surfaces.

    Called exactly once by the Discord client during startup.
    """
    tracking_commands.setup(bot, handler=handler)
    bot.tree.error(on_app_command_error)

    log.info("Discord command surfaces initialized")
