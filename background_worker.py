#!/usr/bin/env python3
import asyncio
import logging
import signal

from app_config import config
from services import build_services
from utils import log, write_status
from worker_manager import WorkerManager

# ───────────────────────────────
# Logging setup
# ───────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if config.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("background_worker")


# ───────────────────────────────
# Dashboard heartbeat updater
# ───────────────────────────────
async def monitor_status(manager: WorkerManager, interval: int):
    """Periodically update dashboard state.json with live queue stats."""
    while True:
        try:
            counts = manager.count_by_status()
            pending = sum(counts.get(s, 0) for s in ("queued", "scheduled", "in_progress"))
            write_status("running" if pending else "idle", pending, counts.get("failed", 0))
        except Exception as e:
            logger.warning(f"[monitor_status] failed: {e}")

        await asyncio.sleep(interval)


# ───────────────────────────────
# Main event loop
# ───────────────────────────────
async def main():
    logger.info(f"Starting fan-out runner: {config.summary()}")
    services = build_services(with_worker=True)
    manager = services.workers
    stop_event = asyncio.Event()

    def handle_shutdown(*_):
        logger.warning("🛑 Received shutdown signal — draining fan-out jobs...")
        write_status("stopping")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_shutdown)

    write_status("starting")
    log(f"Fan-out runner started (db={config.DB_PATH})")
    runner = asyncio.create_task(manager.start_all())
    monitor = asyncio.create_task(monitor_status(manager, config.STATUS_INTERVAL))

    await stop_event.wait()

    await manager.stop_all(config.FANOUT_DRAIN_TIMEOUT)
    monitor.cancel()
    await asyncio.gather(runner, monitor, return_exceptions=True)
    manager.close()

    write_status("stopped")
    log("Fan-out runner stopped")
    logger.info("✅ All workers stopped cleanly.")


# ───────────────────────────────
# Entry point
# ───────────────────────────────
if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Interrupted manually — shutting down.")
        write_status("stopped")
