"""Application entry point"""
import sys
import signal
import asyncio
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional
from PySide6.QtCore import QCoreApplication
import qasync

from playlist_app.config import Settings
from playlist_app.services.realtime_client import RealtimeClient
from playlist_app.services.supabase import SupabaseRepo
from playlist_app.services.tree_controller import TreeController


def setup_logging(settings: Optional[Settings] = None) -> Path:
    """Stdout plus rotating file log"""
    settings = settings or Settings()
    logs_dir = Path(settings.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / "channel_playlists.log"

    handlers = [
        logging.StreamHandler(sys.stdout),
        RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ]

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Suppress verbose realtime and httpx logs
    logging.getLogger("realtime._async.client").setLevel(logging.WARNING)
    logging.getLogger("realtime._async.channel").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("=== channel-playlists starting ===")
    logger.info(f"Logs written to: {log_file}")
    return log_file


def build_controller(settings: Settings) -> TreeController:
    repo = SupabaseRepo(
        settings.supabase_url,
        settings.supabase_key,
        playlists_table=settings.playlists_table,
        channels_table=settings.channels_table,
        content_table=settings.content_table,
    )
    return TreeController(
        repo,
        catalog=repo,
        drag_cooldown_ms=settings.drag_cooldown_ms,
        refresh_debounce_ms=settings.refresh_debounce_ms,
        external_change_suppress_ms=settings.external_change_suppress_ms,
        refresh_max_attempts=settings.refresh_max_attempts,
        refresh_initial_delay=settings.refresh_initial_delay,
    )


async def start(controller: TreeController, realtime: RealtimeClient):
    logger = logging.getLogger(__name__)
    result = await controller.load()
    logger.info(f"Initial load: {result.status.value} {result.message}")
    realtime.treeChanged.connect(controller.on_external_change)
    realtime.connectionStatusChanged.connect(
        lambda connected: logger.info(f"Realtime {'connected' if connected else 'disconnected'}")
    )
    await realtime.connect()


def main():
    """Main entry point with qasync integration"""
    settings = Settings()
    setup_logging(settings)
    logger = logging.getLogger(__name__)
    if not settings.supabase_url or not settings.supabase_key:
        logger.error("SUPABASE_URL and SUPABASE_KEY must be set")
        sys.exit(1)

    app = QCoreApplication(sys.argv)
    app.setApplicationName("channel-playlists")

    # Create async event loop
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    controller = build_controller(settings)
    realtime = RealtimeClient(settings.supabase_url, settings.supabase_key, table=settings.playlists_table)

    with loop:
        loop.run_until_complete(start(controller, realtime))
        loop.run_forever()
        loop.run_until_complete(realtime.disconnect())


if __name__ == "__main__":
    main()
