"""Terminal view of a listening session, built only on the observer interface."""

import logging
import threading

from rich.align import Align
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ..models.session import SessionStatus
from ..services.session_controller import SessionController
from .keyboard_input import KeyboardInputHandler

logger = logging.getLogger(__name__)

TOGGLE_KEYS = (" ", "\r", "\n")
QUIT_KEYS = ("q", "\x03")


def render_status(status: SessionStatus) -> Panel:
    """Render one status snapshot."""
    if status.is_listening:
        state = Text("🔴 " + status.status_text, style="bold red")
    else:
        state = Text("⏹️  " + status.status_text, style="bold yellow")

    result = Text(status.result_text or "No sound detected yet", style="bold white")
    hint = Text("space/enter = start/stop   q = quit", style="dim")

    return Panel(
        Group(Align.center(state), Text(""), Align.center(result), Text(""), Align.center(hint)),
        title="🎙️  SenseEar",
        style="bright_blue",
    )


class StatusScreen:
    """Shows status and latest detection; keys toggle listening."""

    def __init__(self, controller: SessionController, console: Console = None):
        self.controller = controller
        self.console = console or Console()
        self.quit_event = threading.Event()
        self.live = None

    def on_key(self, key: str) -> bool:
        """Handle a keypress. Returns False to quit."""
        if key in QUIT_KEYS:
            self.quit_event.set()
            return False
        if key in TOGGLE_KEYS:
            self.controller.toggle()
        return True

    def on_status(self, status: SessionStatus) -> None:
        if self.live is not None:
            self.live.update(render_status(status))

    def run(self) -> None:
        """Block until the user quits."""
        input_handler = KeyboardInputHandler(self.on_key)
        self.controller.subscribe(self.on_status)
        try:
            with Live(render_status(self.controller.status), console=self.console,
                      refresh_per_second=8) as live:
                self.live = live
                input_handler.start()
                while not self.quit_event.wait(0.25) and not input_handler.finished.is_set():
                    pass
        finally:
            self.live = None
            input_handler.stop()
            self.controller.unsubscribe(self.on_status)
