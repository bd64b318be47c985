"""
Discord permission checks.

Every tracking command is administrator-only. Gating is declared on the
slash command itself so handler classes stay free of permission logic.
"""

from __future__ import annotations

import discord
from discord import app_commands

from shared.logging.logger import get_logger

log = get_logger("discord.permissions", runtime="discord")


def is_admin(member: discord.abc.User | None) -> bool:
    permissions = getattr(member, "guild_permissions", None)
    return bool(permissions and permissions.administrator)


def require_admin():
    """app_commands check: caller must hold the Administrator permission."""
    return app_commands.checks.has_permissions(administrator=True)


async def on_app_command_error(
    interaction: discord.Interaction,
    error: app_commands.AppCommandError,
):
    """Tree-level error handler registered by the Discord client."""
    command = interaction.command.name if interaction.command else "unknown"

    if isinstance(error, app_commands.MissingPermissions):
        log.warning(f"User {interaction.user.id} denied /{command}: missing administrator")
        message = "You need the Administrator permission to use this command."
    else:
        log.error(f"Unhandled error in /{command}: {error}")
        message = "There was an error while executing this command!"

    if interaction.response.is_done():
        await interaction.followup.send(message, ephemeral=True)
    else:
        await interaction.response.send_message(message, ephemeral=True)
