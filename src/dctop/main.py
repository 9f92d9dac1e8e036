"""
Entry point and view glue for dctop.

This module wires the pieces together and owns the main thread:

  1. setup_logging(): rotating log file (curses owns the terminal, so
     nothing goes to stderr)
  2. curses.wrapper(main) -> App(stdscr).run()
  3. App.run():
     - opens the ContainersWindow (owner, refresh and draw threads)
     - polls the screen for input (non-blocking, configured period) and
       forwards keys, clicks and resizes into the window's inbox
     - drains view events posted by the window: status messages, logs and
       shell requests, quit

Logs and shell hand the terminal to the docker CLI through
CursesScreen.suspended(); the table resumes afterwards with a full redraw.
"""

import curses
import logging
import os
import queue
import shutil
import subprocess
import time
from logging.handlers import RotatingFileHandler
from typing import Optional

from . import get_log_path
from .backend import DockerBackend
from .cache import cache_manager
from .config import AppConfig, config_manager
from .events import (
    KeyEvent, Level, MouseEvent, Quit, ResizeEvent, ShowLogs, ShowShell, StatusMessage,
    SwitchToDefaultView,
)
from .screen import CursesScreen
from .table import TableRenderer
from .window import ContainersWindow

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
SHELL_NOT_FOUND_CODES = (126, 127)
EXEC_FAILED_MESSAGE = "Exec failed, container probably isn't running"


def setup_logging() -> str:
    """Send all logging to a rotating file; returns its path."""
    settings = config_manager.get_config().logging
    path = config_manager.get_custom_log_path() or get_log_path()
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.max_size_mb * 1024 * 1024,
        backupCount=settings.backup_count,
    )
    level = getattr(logging, config_manager.get_log_level(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler], force=True)
    return path


class App:
    def __init__(self, stdscr, config: Optional[AppConfig] = None, backend=None):
        self.config = config or config_manager.get_config()
        cache_manager.configure_ttl("inspect", self.config.docker.inspect_cache_ttl)
        self.screen = CursesScreen(stdscr, self.config.ui.color_theme)
        self.backend = backend or DockerBackend(max_workers=self.config.docker.stats_workers)
        self.events: queue.Queue = queue.Queue()
        self.window = ContainersWindow(
            self.screen,
            self.backend,
            self.post_event,
            keybindings=self.config.keybindings,
            renderer=TableRenderer(self.config.ui.row_render_workers),
            min_refresh_interval=self.config.docker.min_refresh_interval,
        )
        self.running = True

    def post_event(self, event) -> None:
        self.events.put(event)

    def run(self) -> None:
        self.screen.setup()
        self.window.open()
        poll_delay = self.config.ui.refresh_interval / 1000
        logger.info("Containers window opened")
        try:
            while self.running:
                self.dispatch_pending()
                if not self.running:
                    break
                event = self.screen.poll_event()
                if event is None:
                    time.sleep(poll_delay)
                elif isinstance(event, ResizeEvent):
                    self.screen.clear()
                    self.window.resize()
                elif isinstance(event, KeyEvent):
                    self.window.key_press(event)
                elif isinstance(event, MouseEvent):
                    self.window.mouse_press(event)
        finally:
            self.window.close()
            logger.info(f"Inspect cache stats: {cache_manager.get_stats()}")

    def dispatch_pending(self) -> None:
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return
            self.handle_view_event(event)

    def handle_view_event(self, event) -> None:
        if isinstance(event, StatusMessage):
            logger.debug(f"Status [{event.level.value}]: {event.text}")
            self.screen.draw_status(event.text, event.level)
        elif isinstance(event, ShowLogs):
            self.show_logs(event.container_id)
        elif isinstance(event, ShowShell):
            self.show_shell(event.container_id)
        elif isinstance(event, SwitchToDefaultView):
            self.screen.clear()
            self.window.resize()
        elif isinstance(event, Quit):
            logger.info("Quitting")
            self.running = False
        else:
            logger.warning(f"Unhandled view event {event!r}")

    def show_logs(self, container_id: str) -> None:
        cmd = self.backend.logs_command(container_id, tail=self.config.docker.logs_tail)
        logger.info(f"Showing logs for {container_id[:12]}")
        with self.screen.suspended():
            try:
                if shutil.which("less"):
                    logs = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
                    try:
                        subprocess.call(["less", "-R"], stdin=logs.stdout)
                    finally:
                        logs.stdout.close()
                        logs.terminate()
                        logs.wait()
                else:
                    subprocess.call(cmd)
            except KeyboardInterrupt:
                logger.debug("Log viewer interrupted")
        self.post_event(SwitchToDefaultView())

    def show_shell(self, container_id: str) -> None:
        details = self.backend.inspect(container_id)
        if details is None or details.state != "running":
            self.post_event(SwitchToDefaultView())
            self.post_event(StatusMessage(Level.ERROR, EXEC_FAILED_MESSAGE))
            return
        shells = [self.config.docker.default_shell, self.config.docker.fallback_shell]
        code = None
        with self.screen.suspended():
            for shell in shells:
                try:
                    code = subprocess.call(self.backend.shell_command(container_id, shell))
                except KeyboardInterrupt:
                    code = 0
                if code not in SHELL_NOT_FOUND_CODES:
                    break
                logger.info(f"{shell} not available in {container_id[:12]}, trying next shell")
        self.post_event(SwitchToDefaultView())
        if code in SHELL_NOT_FOUND_CODES:
            self.post_event(StatusMessage(Level.ERROR, EXEC_FAILED_MESSAGE))


def main(stdscr) -> None:
    logger.info("Main started")
    App(stdscr).run()


def run() -> None:
    log_path = setup_logging()
    logger.info(f"Logging to {log_path}")
    if os.environ.get("DCTOP_TEST"):
        print("Test mode")
        return
    try:
        curses.wrapper(main)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.critical(f"Crash: {e}", exc_info=True)
        print(f"Crash: {e}")


if __name__ == "__main__":
    run()
