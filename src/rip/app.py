"""rip - Textual renderer and input source for the selection state machine."""

import time
from collections.abc import Callable

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Footer, Header, Static

from rip.formatting import (
    confirm_prompt,
    cpu_style,
    format_cpu,
    format_memory,
    format_port,
    truncate,
)
from rip.models import ProcessRecord
from rip.state import Key, SelectionState

NAME_WIDTH = 40


class ConfirmDialog(Static):
    """Confirmation prompt shown while a kill is pending."""

    DEFAULT_CSS = """
    ConfirmDialog {
        dock: bottom;
        display: none;
        width: 100%;
        height: 6;
        content-align: center middle;
        text-align: center;
        border: round $warning;
        border-title-color: $warning;
        background: $surface;
    }
    """


class ProcessTable(DataTable, can_focus=False):
    """Process table. Never takes focus; all keys go to the app bindings."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, show_ports: bool = False, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(cursor_type="row", zebra_stripes=False, **kwargs)
        self._show_ports = show_ports
        self._cell_columns: list[str] = []
        self._shown_rows: list[str] = []

    def on_mount(self) -> None:
        """Add columns when mounted."""
        self._add_keyed_column(" ", "marker", 2)
        self._add_keyed_column("PID", "pid", 7)
        self._add_keyed_column("NAME", "name", NAME_WIDTH)
        if self._show_ports:
            self._add_keyed_column("PORT", "port", 10)
        self._add_keyed_column("CPU %", "cpu", 8)
        self._add_keyed_column("MEMORY", "mem", 10)

    def _add_keyed_column(self, label: str, key: str, width: int) -> None:
        self.add_column(label, key=key, width=width)
        self._cell_columns.append(key)

    def show(self, state: SelectionState) -> None:
        """
        Bring the rows in line with the state and place the cursor.

        Rows are keyed by pid (and port in port mode). When the same rows are
        shown in the same order, only the cells that changed are updated;
        a new, vanished or reordered row rebuilds the table.
        """
        rows = {self.row_key(record): self._cells(state, record) for record in state.records}
        keys = list(rows)

        if keys == self._shown_rows:
            for row_key, cells in rows.items():
                for column_key, value in zip(self._cell_columns, cells):
                    if self.get_cell(row_key, column_key) != value:
                        self.update_cell(row_key, column_key, value)
        else:
            self.clear()
            for row_key, cells in rows.items():
                self.add_row(*cells, key=row_key)
            self._shown_rows = keys

        if state.records:
            self.move_cursor(row=state.cursor, animate=False)

    @staticmethod
    def row_key(record: ProcessRecord) -> str:
        """Key identifying a record's row across redraws."""
        if record.port is None:
            return str(record.pid)
        return f"{record.pid}:{record.port}/{record.protocol}"

    def _cells(self, state: SelectionState, record: ProcessRecord) -> list[Text]:
        marked = state.is_marked(record)
        cells = [
            Text("●" if marked else " ", style="bold green" if marked else ""),
            Text(str(record.pid), style="dim"),
            Text(truncate(record.name, NAME_WIDTH)),
        ]
        if self._show_ports:
            cells.append(Text(format_port(record.port, record.protocol), style="magenta"))
        cells.append(Text(format_cpu(record.cpu_percent), style=cpu_style(record.cpu_percent)))
        cells.append(Text(format_memory(record.memory_mb), style="cyan"))
        return cells


class RipApp(App[SelectionState]):
    """Interactive process picker.

    The app holds no selection state of its own: key bindings, typed
    characters and the poll timer are forwarded to the SelectionState, and
    the screen is redrawn whenever it reports a visible change.
    """

    TITLE = "rip"

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        Binding("up", "press('up')", "Up", show=False, priority=True),
        Binding("down", "press('down')", "Down", show=False, priority=True),
        Binding("k", "shortcut('up', 'k')", "Up", show=False, priority=True),
        Binding("j", "shortcut('down', 'j')", "Down", show=False, priority=True),
        Binding("space", "press('toggle')", "Select", priority=True),
        Binding("enter", "press('confirm')", "Kill", priority=True),
        Binding("slash", "press('filter')", "Filter", priority=True),
        Binding("backspace", "press('backspace')", "Erase", show=False, priority=True),
        Binding("escape", "press('cancel')", "Cancel", priority=True),
        Binding("q", "shortcut('quit', 'q')", "Quit", priority=True),
    ]

    def __init__(
        self,
        state: SelectionState,
        show_ports: bool = False,
        poll_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the RipApp.

        Args:
            state: Selection state to drive and draw.
            show_ports: Show the PORT column.
            poll_interval: Seconds between refresh-timer checks.
            clock: Monotonic clock passed to SelectionState.poll().
        """
        super().__init__()
        self._state = state
        self._show_ports = show_ports
        self._poll_interval = poll_interval
        self._clock = clock

    @property
    def state(self) -> SelectionState:
        """The state machine being driven."""
        return self._state

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Header()
        yield ProcessTable(show_ports=self._show_ports, id="process-table")
        yield ConfirmDialog(id="confirm")
        yield Footer()

    def on_mount(self) -> None:
        """Draw the initial records and start the refresh timer."""
        self.query_one("#confirm", ConfirmDialog).border_title = "Confirm"
        if self._state.auto_refresh:
            self.set_interval(self._poll_interval, self._check_refresh)
        self._draw()

    def _check_refresh(self) -> None:
        """Give the state machine a timer tick."""
        if self._state.poll(self._clock()):
            self._draw()

    def action_press(self, key: str) -> None:
        """Forward a key press to the state machine."""
        if self._state.press(Key(key)):
            self._draw()
        if self._state.exiting:
            self.exit(self._state)

    def action_shortcut(self, key: str, char: str) -> None:
        """Letter shortcut: typed into the query while filtering, a key press otherwise."""
        if self._state.filtering:
            self._type(char)
        else:
            self.action_press(key)

    def on_key(self, event: events.Key) -> None:
        """Send printable keys without a binding to the query."""
        if self._state.filtering and event.is_printable and event.character:
            event.stop()
            self._type(event.character)

    def _type(self, char: str) -> None:
        if self._state.type_char(char):
            self._draw()

    def _draw(self) -> None:
        """Render the current state."""
        state = self._state
        self.query_one("#process-table", ProcessTable).show(state)

        selected = len(state.kill_list())
        parts = []
        if state.filtering or state.query:
            cursor = "▏" if state.filtering else ""
            parts.append(f"filter: {state.query}{cursor}")
        if selected:
            parts.append(f"{selected} selected")
        self.sub_title = " · ".join(parts)

        confirm = self.query_one("#confirm", ConfirmDialog)
        confirm.display = state.confirm_pending
        if state.confirm_pending:
            confirm.update(Text(confirm_prompt(selected), justify="center"))
