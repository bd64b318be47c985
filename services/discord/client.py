"""
Discord Client

This module owns the Discord connection itself.

Responsibilities:
- connect to Discord
- handle ready / resume / disconnect events
- register command surfaces and sync the command tree
- hand the bot to the announcer and fire the on-ready hook once
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST NOT create its own event loop
- Background work (polling, reports) is started through on_ready_hook,
  never from here directly
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import discord
from discord.ext import commands

from services.discord.announcements import DiscordAnnouncer
from services.discord.logging import DiscordLogAdapter
from shared.logging.logger import get_logger

# NOTE: routed to Discord runtime log file
log = get_logger("discord.client", runtime="discord")


class DiscordClient:
    """
    Thin wrapper around discord.py Bot.
    """

    def __init__(
        self,
        *,
        token: Optional[str],
        announcer: DiscordAnnouncer,
        logger: DiscordLogAdapter,
        register_commands: Callable[[commands.Bot], None],
        on_ready_hook: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        if not token:
            raise RuntimeError("DISCORD_BOT_TOKEN not found in environment or config")

        self._token: str = token
        self._announcer = announcer
        self._logger = logger
        self._register_commands = register_commands
        self._on_ready_hook = on_ready_hook

        self._bot: Optional[commands.Bot] = None
        self._hook_fired = False

    # --------------------------------------------------

    def _build_bot(self) -> commands.Bot:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.message_content = False  # slash-command focused

        bot = commands.Bot(
            command_prefix="!",
            intents=intents,
        )

        self._register_commands(bot)
        self._announcer.attach(bot)

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @bot.event
        async def on_ready():
            log.info(
                f"Discord connected as {bot.user} "
                f"(id={bot.user.id}) "
                f"guilds={len(bot.guilds)}"
            )
            self._logger.log_event(event="discord_ready", data={"guilds": len(bot.guilds)})

            try:
                await bot.tree.sync()
                log.info("Discord command tree synced")
            except discord.DiscordException as e:
                log.error(f"Failed to sync Discord commands: {e}")

            # on_ready fires again after reconnects
            if not self._hook_fired and self._on_ready_hook is not None:
                self._hook_fired = True
                await self._on_ready_hook()

        @bot.event
        async def on_resumed():
            log.info("Discord connection resumed")

        @bot.event
        async def on_disconnect():
            log.warning("Discord connection lost")

        @bot.event
        async def on_guild_join(guild: discord.Guild):
            log.info(f"Joined guild: {guild.name} (id={guild.id}, members={guild.member_count})")

        @bot.event
        async def on_guild_remove(guild: discord.Guild):
            log.info(f"Removed from guild: {guild.name} (id={guild.id})")

        return bot

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._bot is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")
        self._bot = self._build_bot()

        try:
            await self._bot.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    async def shutdown(self):
        """
        Gracefully close the Discord connection.
        """
        if not self._bot:
            return

        log.info("Closing Discord connection")

        try:
            await self._bot.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self._bot = None

    # --------------------------------------------------

    @property
    def bot(self) -> Optional[commands.Bot]:
        return self._bot
