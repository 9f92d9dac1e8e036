"""
dctop - a live terminal dashboard for Docker containers.

Shows a continuously refreshed table of containers (id, state, name,
image, memory and CPU usage) that can be sorted, filtered, scrolled and
drilled into, without the display ever waiting on the Docker daemon.

Main Components:
  - main.py: entry point, logging setup, view glue (logs/shell/status bar)
  - window.py: single-owner state machine for the containers window
  - state.py: TableState, refresh worker and draw worker threads
  - table.py: column layout, row fan-out, inspect screen
  - styler.py: composable position -> (char, style) producers
  - viewport.py: focus and scroll arithmetic
  - stats.py: CPU/memory/network calculations
  - backend.py: docker-py wrapper
  - screen.py: curses driver

Usage:
  dctop
  python -m dctop

Dependencies:
  - docker>=7.0.0
  - PyYAML
  - curses (built-in, not available on Windows natively)
"""

import os
from pathlib import Path

__version__ = "0.1.0"


def get_log_path() -> str:
    """
    Get the log file path following XDG Base Directory conventions.

    Returns XDG_DATA_HOME/dctop/logs/dctop.log, creating the directory,
    with /tmp/dctop.log as the fallback when that isn't writable.
    """
    xdg_data_home = os.environ.get('XDG_DATA_HOME')
    if xdg_data_home:
        data_home = Path(xdg_data_home)
    else:
        data_home = Path.home() / '.local' / 'share'

    log_dir = data_home / 'dctop' / 'logs'
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return str(log_dir / 'dctop.log')
    except (PermissionError, OSError):
        return '/tmp/dctop.log'
