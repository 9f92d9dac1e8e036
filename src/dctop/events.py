"""
Message types for dctop.

Two families live here:

Window inbox messages, consumed by the ContainersWindow owner thread:
  - ResizeEvent, KeyEvent, MouseEvent: produced by the screen input pump
  - NewData: produced by the DataRefreshWorker
  - Stop: produced by ContainersWindow.close()

View events, produced by the window for the surrounding App glue through
its post_event callable:
  - ShowLogs / ShowShell: hand the terminal to `docker logs` / `docker exec`
  - SwitchToDefaultView: back to the table after an interactive command
  - StatusMessage: one line for the status bar, tagged with a Level
  - Quit: the user asked to leave

Key names are normalized by the screen driver: "up", "down", "left",
"right", "delete", "backspace", "enter", "escape", "ctrl-d", or a single
printable character.
"""

from dataclasses import dataclass
from enum import Enum

from .model import ContainerCollection


@dataclass(frozen=True)
class ResizeEvent:
    """The terminal was resized; the new size is read back from the screen."""


@dataclass(frozen=True)
class KeyEvent:
    key: str


@dataclass(frozen=True)
class MouseEvent:
    x: int
    y: int


@dataclass(frozen=True)
class NewData:
    collection: ContainerCollection


@dataclass(frozen=True)
class Stop:
    pass


class Level(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ShowLogs:
    container_id: str


@dataclass(frozen=True)
class ShowShell:
    container_id: str


@dataclass(frozen=True)
class SwitchToDefaultView:
    pass


@dataclass(frozen=True)
class StatusMessage:
    level: Level
    text: str


@dataclass(frozen=True)
class Quit:
    pass
