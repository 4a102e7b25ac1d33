"""prompt_toolkit application shell for the issue manager.

The shell owns the terminal. It forwards key presses, timer ticks and
task-result wake-ups to the session engine, executes the commands the
engine returns and redraws. The engine itself never touches the terminal.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Set

from prompt_toolkit.application import Application, run_in_terminal
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout.containers import Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.layout import Layout
from prompt_toolkit.styles import Style

from .editor_utils import run_foreground
from .state_machine import Command, Quit, Refresh, SessionMachine, Suspend
from .view import build_frame, to_formatted_text

logger = logging.getLogger(__name__)

DEFAULT_STYLE = {
    "header": "bold #ffffff bg:#5f5fd7",
    "list": "",
    "list.selected": "bold #000000 bg:#87d7ff",
    "list.processing": "#d7af00",
    "separator": "#585858",
    "preview": "#bcbcbc",
    "footer": "#808080",
    "status": "bold #87d787",
    "backdrop": "#4e4e4e",
    "popup": "#ffffff bg:#262626",
}

# prompt_toolkit names for keys the bindings refer to by their common name
_KEY_NAMES = {
    "c-m": "enter",
    "c-j": "enter",
    "c-h": "backspace",
    "c-i": "tab",
}


def normalize_key_name(key) -> str:
    """Binding-style name for a prompt_toolkit key press."""
    name = key.value if isinstance(key, Keys) else str(key)
    return _KEY_NAMES.get(name, name)


class IssueApp:
    """Full-screen application around a SessionMachine."""

    def __init__(self, machine: SessionMachine, tick_interval: float = 0.1,
                 style: Optional[dict] = None):
        self.machine = machine
        self._tick_interval = tick_interval
        self._style = Style.from_dict(style or DEFAULT_STYLE)
        self._results_ready: Optional[asyncio.Event] = None
        self._app = self._build_app()

    # =========================================================================
    # Construction
    # =========================================================================

    def _bound_keys(self) -> Set[str]:
        keys: Set[str] = set()
        for alternatives in self.machine.keys.bindings.values():
            keys.update(alternatives)
        return keys

    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        def on_key(event) -> None:
            name = normalize_key_name(event.key_sequence[0].key)
            self._execute(self.machine.handle_key(name))

        # Explicit bindings are required for keys that prompt_toolkit's
        # defaults bind specifically (c-u, c-d, ...); Any only covers the rest
        for key in sorted(self._bound_keys()):
            try:
                kb.add(key)(on_key)
            except ValueError as e:
                logger.warning(f"Cannot bind key {key!r}: {e}")
        kb.add(Keys.Any)(on_key)

        @kb.add(Keys.BracketedPaste)
        def on_paste(event) -> None:
            self.machine.insert_text(event.data)

        return kb

    def _render(self):
        size = self._app.output.get_size()
        if (size.columns, size.rows) != (self.machine.width, self.machine.height):
            self.machine.resize(size.columns, size.rows)
        return to_formatted_text(build_frame(self.machine))

    def _build_app(self) -> Application:
        window = Window(
            content=FormattedTextControl(self._render, focusable=True, show_cursor=False),
            wrap_lines=False,
        )
        app = Application(
            layout=Layout(window),
            key_bindings=self._build_key_bindings(),
            full_screen=True,
            style=self._style,
        )
        # Escape should act immediately rather than wait for a meta sequence
        app.ttimeoutlen = 0.05
        app.timeoutlen = 0.5
        return app

    # =========================================================================
    # Event sources
    # =========================================================================

    def _tick(self) -> None:
        if not self._app.is_running:
            return
        self.machine.tick()
        self._app.invalidate()
        self._app.loop.call_later(self._tick_interval, self._tick)

    async def _listen_for_results(self) -> None:
        """Drain task results whenever a worker signals one is queued."""
        event = self._results_ready
        while True:
            await event.wait()
            event.clear()
            await self._drain_results()
            # A failed pass can leave results behind
            if self.machine.orchestrator.pending_results:
                event.set()
            self._app.invalidate()

    async def _drain_results(self) -> None:
        try:
            commands = self.machine.deliver_results()
            await self._execute_async(commands)
        except Exception as e:
            logger.exception("Error handling task results")
            self.machine.status_message = f"Error handling task result: {e}"

    def _pre_run(self) -> None:
        loop = asyncio.get_running_loop()
        self._results_ready = asyncio.Event()
        event = self._results_ready
        self.machine.orchestrator.set_result_hook(lambda: loop.call_soon_threadsafe(event.set))
        self._app.create_background_task(self._listen_for_results())
        # Results queued before the loop started
        if self.machine.orchestrator.pending_results:
            event.set()
        loop.call_later(self._tick_interval, self._tick)

    # =========================================================================
    # Commands
    # =========================================================================

    def _execute(self, commands: List[Command]) -> None:
        if any(isinstance(c, Suspend) for c in commands):
            self._app.create_background_task(self._execute_async(commands))
            return
        for command in commands:
            self._apply(command)

    def _apply(self, command: Command) -> None:
        if isinstance(command, Refresh):
            self.machine.refresh_issues()
        elif isinstance(command, Quit):
            if self._app.is_running:
                self._app.exit(result=0)

    async def _execute_async(self, commands: Iterable[Command]) -> None:
        for command in commands:
            if isinstance(command, Suspend):
                exit_code = await run_in_terminal(
                    lambda: run_foreground(command.argv, command.cwd))
                self.machine.after_suspension(command, exit_code)
                self._app.invalidate()
            else:
                self._apply(command)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def run(self) -> int:
        """Run until the user quits. Returns the process exit code."""
        size = self._app.output.get_size()
        self.machine.resize(size.columns, size.rows)
        self.machine.refresh_issues()
        try:
            result = self._app.run(pre_run=self._pre_run)
        finally:
            self.machine.orchestrator.set_result_hook(None)
        return result if isinstance(result, int) else 0
