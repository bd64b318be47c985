import asyncio
import signal
import sys
from typing import Dict, Tuple

from dotenv import load_dotenv

from core.monitor import StreamMonitor
from core.reports import ReportService
from core.resolver import IdentifierResolver
from core.scheduler import Scheduler
from runtime.version import as_string
from services.discord import commands as discord_commands
from services.discord.announcements import DiscordAnnouncer
from services.discord.client import DiscordClient
from services.discord.commands.tracking import ChannelResolver, TrackingCommandHandler
from services.discord.logging import DiscordLogAdapter
from services.twitch.api.helix import TwitchChannelResolver, TwitchHelixAPI
from services.youtube.api.directory import YouTubeDirectoryAPI
from services.youtube.api.livestream import YouTubeLivestreamAPI
from shared.config.tracker import ConfigStore, TrackerConfig
from shared.logging.logger import get_logger
from shared.platforms.platform import Platform
from shared.storage.activity_store import ActivityStore

log = get_logger("core.app")


def build_providers(config: TrackerConfig) -> Tuple[Dict[Platform, object], Dict[Platform, ChannelResolver]]:
    """
    Status providers and identifier resolvers for every platform that has
    credentials. A platform without credentials is left out and its channels
    are skipped with a warning each cycle.
    """
    providers: Dict[Platform, object] = {}
    resolvers: Dict[Platform, ChannelResolver] = {}

    if config.youtube_api_key:
        resolver = IdentifierResolver(YouTubeDirectoryAPI(api_key=config.youtube_api_key))
        providers[Platform.YOUTUBE] = YouTubeLivestreamAPI(api_key=config.youtube_api_key, resolver=resolver)
        resolvers[Platform.YOUTUBE] = resolver
        log.info("[BOOT] YouTube provider ENABLED")
    else:
        log.warning("[BOOT] YOUTUBE_API_KEY missing; YouTube channels will be skipped")

    if config.twitch_client_id and config.twitch_client_secret:
        helix = TwitchHelixAPI(
            client_id=config.twitch_client_id,
            client_secret=config.twitch_client_secret,
        )
        providers[Platform.TWITCH] = helix
        resolvers[Platform.TWITCH] = TwitchChannelResolver(helix)
        log.info("[BOOT] Twitch provider ENABLED")
    else:
        log.warning("[BOOT] TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET missing; Twitch channels will be skipped")

    return providers, resolvers


async def main(stop_event: asyncio.Event):
    # --------------------------------------------------
    # ENV + CONFIG
    # --------------------------------------------------
    load_dotenv()
    log.info("Environment variables loaded")
    log.info(f"{as_string()} booting")

    config_store = ConfigStore()
    config = config_store.load()
    log.info(
        f"Loaded {len(config.tracked_channels)} tracked channel(s); "
        f"poll every {config.stream_check_interval_minutes:g} min, "
        f"cooldown {config.announcement_cooldown_minutes:g} min"
    )

    # --------------------------------------------------
    # CORE SYSTEMS
    # --------------------------------------------------
    store = ActivityStore()
    providers, resolvers = build_providers(config)
    announcer = DiscordAnnouncer()
    audit = DiscordLogAdapter()

    monitor = StreamMonitor(
        config_store=config_store,
        store=store,
        providers=providers,
        sink=announcer,
    )
    reports = ReportService(
        config_store=config_store,
        store=store,
        sink=announcer,
        providers=providers,
        name_resolver=announcer.user_name,
    )
    scheduler = Scheduler(
        monitor=monitor,
        reports=reports,
        poll_interval=lambda: config.poll_interval_seconds,
    )
    handler = TrackingCommandHandler(
        config_store=config_store,
        store=store,
        resolvers=resolvers,
        scheduler=scheduler,
        reports=reports,
        logger=audit,
    )

    async def _start_scheduler():
        scheduler.start()

    try:
        client = DiscordClient(
            token=config.discord_bot_token,
            announcer=announcer,
            logger=audit,
            register_commands=lambda bot: discord_commands.setup(bot, handler=handler),
            on_ready_hook=_start_scheduler,
        )
    except RuntimeError as e:
        log.error(f"Cannot start: {e}")
        return

    client_task = asyncio.create_task(client.run(), name="discord-client")
    stop_task = asyncio.create_task(stop_event.wait(), name="stop-event")

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL (OR CLIENT EXIT)
    # --------------------------------------------------
    await asyncio.wait({client_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN: TASKS FIRST
    # --------------------------------------------------
    try:
        await scheduler.shutdown()
    except Exception as e:
        log.warning(f"Scheduler shutdown error ignored: {e}")

    try:
        await client.shutdown()
    except Exception as e:
        log.warning(f"Discord shutdown error ignored: {e}")

    for task in (client_task, stop_task):
        if not task.done():
            task.cancel()
    await asyncio.gather(client_task, stop_task, return_exceptions=True)

    log.info("Munchy stream tracker stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        loop.call_soon_threadsafe(stop_event.set)

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except (ValueError, OSError) as e:
        log.warning(f"Signal handlers not installed: {e}")


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run():
    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    try:
        loop.run_until_complete(main(stop_event))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received; shutdown initiated")
        stop_event.set()

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))

        loop.run_until_complete(loop.shutdown_asyncgens())
        asyncio.set_event_loop(None)
        loop.close()


if __name__ == "__main__":
    run()
    sys.exit(0)
