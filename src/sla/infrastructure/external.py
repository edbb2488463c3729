"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- YAML defaults file watcher
- APScheduler for the periodic breach sweep
"""

import threading
from pathlib import Path
from typing import Awaitable, Callable, Optional

import yaml
from pydantic import ValidationError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.config import SLA_SWEEP_MIN_INTERVAL_SECONDS
from src.core import ConfigurationException
from src.shared.infrastructure.logging import get_logger
from src.sla.application import ISLADefaultsProvider
from src.sla.domain import SLADefaultsConfig

logger = get_logger(__name__)


class DefaultsFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA defaults file changes."""

    def __init__(self, manager: "SLADefaultsManager", path: Path):
        self.manager = manager
        self.path = path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.path.resolve():
            logger.info("SLA defaults file changed", extra={"path": str(event.src_path)})
            self.manager.reload()

    on_created = on_modified


class SLADefaultsManager(ISLADefaultsProvider):
    """
    Thread-safe SLA defaults with hot-reload support.

    Uses watchdog to monitor file changes and reload defaults without
    restarting the service. A missing file means built-in defaults; a broken
    file on reload keeps the last good values.
    """

    def __init__(self):
        self._config: Optional[SLADefaultsConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLADefaultsConfig:
        """Initial load."""
        self._path = Path(path)
        self._config = self._load_from_file(self._path)
        return self._config

    def _load_from_file(self, path: Path) -> SLADefaultsConfig:
        if not path.exists():
            logger.warning("SLA defaults file not found, using built-in defaults", extra={"path": str(path)})
            return SLADefaultsConfig()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            return SLADefaultsConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                "Invalid SLA defaults file", {"path": str(path), "error": str(e)}
            ) from e

    def reload(self) -> bool:
        """Reload defaults from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error(
                "Failed to reload SLA defaults, keeping previous values",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA defaults reloaded", extra={"path": str(self._path)})
        return True

    def start_watching(self) -> None:
        """
        Start watching the defaults file for changes.

        Skips watching if the file does not exist or inotify is unavailable
        (some containers).
        """
        if self._path is None:
            raise RuntimeError("SLA defaults not loaded. Call load() first.")

        if not self._path.exists():
            logger.info("SLA defaults file absent, not watching", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                DefaultsFileHandler(self, self._path),
                str(self._path.resolve().parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Watching SLA defaults file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static defaults", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> SLADefaultsConfig:
        if self._config is None:
            self._config = SLADefaultsConfig()
        with self._lock:
            return self._config


class SLAScheduler:
    """
    Wrapper for APScheduler running the breach sweep on a fixed interval.

    Intervals below SLA_SWEEP_MIN_INTERVAL_SECONDS (zero and negative
    included) disable the scheduler instead of running a tight loop.
    """

    JOB_ID = "sla_breach_sweep"

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def enabled(self) -> bool:
        return self.interval_seconds >= SLA_SWEEP_MIN_INTERVAL_SECONDS

    async def start(self, job_func: Callable[[], Awaitable[int]]) -> bool:
        """
        Start the scheduler with the sweep as its only job.

        Returns:
            True if the scheduler is running after the call
        """
        if self._running:
            logger.warning("SLA scheduler already running")
            return True

        if not self.enabled:
            logger.warning(
                "SLA sweep interval below minimum, scheduler disabled",
                extra={
                    "interval_seconds": self.interval_seconds,
                    "minimum_seconds": SLA_SWEEP_MIN_INTERVAL_SECONDS
                }
            )
            return False

        async def run_sweep() -> None:
            # A failed sweep must not stop the next tick
            try:
                await job_func()
            except Exception as e:
                logger.error("SLA sweep failed", extra={"error": str(e)})

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            run_sweep,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="SLA Breach Sweep",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )
        return True

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
