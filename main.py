#main.py

"""
fswatcher - watch the configured directories and log their changes
"""
import sys
import asyncio
import logging
from pathlib import Path

from fswatcher.utils.config import load_config
from fswatcher.utils.logger import setup_logging
from fswatcher.watch import (
    WatcherConfiguration,
    RecursiveWatchOptions,
    MultiDirectoryWatcher,
    MultiRecursiveDirectoryWatcher,
)

logger = logging.getLogger(__name__)


async def log_filtered_changes(stream):
    """Consume filtered change batches until the stream ends"""
    async for paths in stream:
        for path in paths:
            logger.info(f"Changed: {path}")


async def main(config_path: str = None):
    """Main entry point"""
    config = load_config(config_path)
    setup_logging(config.log_level, config.log_file, config.log_format)

    directories = config.watch_directories or [Path.cwd()]
    configuration = WatcherConfiguration.from_config(config)

    if config.watchdog.recursive:
        watcher = MultiRecursiveDirectoryWatcher(
            configuration,
            RecursiveWatchOptions.from_config(config),
        )
    else:
        watcher = MultiDirectoryWatcher(configuration)

    watcher.on_directory_change = lambda d: logger.debug(f"Directory changed: {d}")
    watcher.on_error = lambda e: logger.error(f"Watcher error: {e}")

    consumer = asyncio.create_task(log_filtered_changes(watcher.stream('filtered_change')))

    try:
        if not watcher.start_watching(directories):
            logger.warning("Some directories could not be watched")
        if not watcher.is_watching:
            logger.error("No directories could be watched")
            return 1

        print(f"Watching {len(watcher.watched_directories)} directories. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        pass

    finally:
        watcher.stop_all_watching()
        await consumer

    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None)))
    except KeyboardInterrupt:
        print("\nShutting down...")
