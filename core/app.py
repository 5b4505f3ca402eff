import asyncio
import signal
import sys

from dotenv import load_dotenv

from core.engine import AggregationEngine
from core.sweeper import PeriodicSweeper
from runtime.version import as_string as version_string
from services.discord.client import DiscordClient
from services.discord.notifier import build_notifier
from services.webhook.server import WebhookServer
from shared.config.system import load_system_config
from shared.logging.logger import get_logger
from shared.storage.state_store import JsonStateStore

log = get_logger("core.app")


async def main(stop_event: asyncio.Event):
    # --------------------------------------------------
    # ENV + CONFIG
    # --------------------------------------------------
    load_dotenv()
    log.info("Environment variables loaded")
    log.info(f"{version_string()} booting")

    config = load_system_config()

    # --------------------------------------------------
    # STATE + ENGINE
    # --------------------------------------------------
    store = JsonStateStore(config.storage.state_dir)
    notifier = build_notifier(config.discord)

    engine = AggregationEngine(
        notifier=notifier,
        storage=store,
        dedup_window=config.engine.dedup_window_seconds,
        clan_only=config.engine.clan_only,
        auto_register_observed=config.engine.auto_register_observed,
        outbound_timeout=config.engine.outbound_timeout_seconds,
        max_pending_notifications=config.engine.max_pending_notifications,
    )
    engine.restore(store.load_snapshot())

    sweeper = PeriodicSweeper(engine.sweep_dedup, interval=engine.dedup_window * 3)
    sweeper.start()

    # --------------------------------------------------
    # INGRESS
    # --------------------------------------------------
    webhook = None
    if config.webhook.enabled:
        webhook = WebhookServer(engine, config.webhook)
        webhook.start()
    else:
        log.info("Webhook server disabled by configuration")

    discord_client = None
    discord_task = None
    if config.discord.bot_token:
        discord_client = DiscordClient(
            engine=engine,
            settings=config.discord,
            notifier=notifier,
        )
        discord_task = asyncio.create_task(discord_client.run(), name="discord")
    else:
        log.info("DISCORD_BOT_TOKEN not set; slash commands unavailable")

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL (OR DISCORD EXIT)
    # --------------------------------------------------
    stop_task = asyncio.create_task(stop_event.wait(), name="stop")
    waiters = {stop_task} | ({discord_task} if discord_task else set())
    done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

    if discord_task in done and discord_task.exception() is not None:
        log.error(f"Discord client exited: {discord_task.exception()}")

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN (INGRESS FIRST, FLUSH, THEN DISCORD)
    # --------------------------------------------------
    if webhook is not None:
        webhook.stop()

    sweeper.stop(timeout=2.0)

    try:
        await asyncio.to_thread(engine.flush, config.engine.outbound_timeout_seconds * 2)
    except TimeoutError:
        log.warning("Outbound queue did not drain before shutdown")

    if discord_client is not None:
        try:
            await discord_client.shutdown()
        except Exception as e:
            log.warning(f"Discord shutdown error ignored: {e}")

    engine.close()

    stop_task.cancel()
    log.info("Monday Madness stopped")


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
        try:
            loop.call_soon_threadsafe(stop_event.set)
        except RuntimeError:
            stop_event.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError as e:
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
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        loop.run_until_complete(loop.shutdown_asyncgens())
        asyncio.set_event_loop(None)
        loop.close()


if __name__ == "__main__":
    run()
    sys.exit(0)
