"""Selection state machine driving the interactive process picker."""

import time
from collections.abc import Callable
from enum import Enum

from rip.models import ProcessRecord
from rip.sorting import matches_name


def select_targets(records: list[ProcessRecord], pids: set[int]) -> list[ProcessRecord]:
    """
    Copy out the records whose pid is in pids, one record per pid.

    In port mode a pid owning several ports appears on several rows; it is
    signalled once.
    """
    seen: set[int] = set()
    targets: list[ProcessRecord] = []
    for record in records:
        if record.pid in pids and record.pid not in seen:
            seen.add(record.pid)
            targets.append(record)
    return targets


class Mode(Enum):
    """States of the selection loop."""

    BROWSING = "browsing"
    FILTERING = "filtering"
    CONFIRM_PENDING = "confirm_pending"
    EXITING = "exiting"


class Key(Enum):
    """Abstract key events understood by the state machine."""

    UP = "up"
    DOWN = "down"
    TOGGLE = "toggle"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    QUIT = "quit"
    FILTER = "filter"
    BACKSPACE = "backspace"


class SelectionState:
    """
    Cursor, marked pids, typed query and confirmation gate for the picker.

    The state machine owns all mutable state. Whoever drives it feeds key
    presses through press(), typed characters through type_char() and timer
    ticks through poll(); all return whether anything visible changed so the
    driver knows when to redraw.

    Marks are kept by pid, so they survive a refresh that reorders rows and
    stop matching once the process has gone. The typed query only narrows
    which rows are shown: a marked process hidden by the query is still
    part of the kill list.
    """

    def __init__(
        self,
        records: list[ProcessRecord],
        refresh: Callable[[], list[ProcessRecord]] | None = None,
        refresh_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the SelectionState.

        Args:
            records: Initial records, already filtered and sorted.
            refresh: Callable producing a fresh record list.
            refresh_interval: Seconds between refreshes. None disables
                auto-refresh (one-shot picker).
            clock: Monotonic clock, replaceable in tests.
        """
        self._snapshot: list[ProcessRecord] = list(records)
        self.records: list[ProcessRecord] = list(records)
        self.query = ""
        self.cursor = 0
        self.marked: set[int] = set()
        self.mode = Mode.BROWSING
        self.with_kill = False
        self._refresh = refresh
        self._refresh_interval = refresh_interval
        self._clock = clock
        self._last_refresh = clock()

    @property
    def confirm_pending(self) -> bool:
        """Whether the confirmation gate is open."""
        return self.mode is Mode.CONFIRM_PENDING

    @property
    def filtering(self) -> bool:
        """Whether typed characters go to the query."""
        return self.mode is Mode.FILTERING

    @property
    def exiting(self) -> bool:
        """Whether the loop has finished."""
        return self.mode is Mode.EXITING

    @property
    def auto_refresh(self) -> bool:
        """Whether poll() will resample on its own."""
        return self._refresh is not None and self._refresh_interval is not None

    @property
    def current(self) -> ProcessRecord | None:
        """The record under the cursor, or None when no record is shown."""
        if not self.records:
            return None
        return self.records[self.cursor]

    def is_marked(self, record: ProcessRecord) -> bool:
        """Check whether a record's pid is marked."""
        return record.pid in self.marked

    def kill_list(self) -> list[ProcessRecord]:
        """Copy out the marked records from the current snapshot, shown or not."""
        return select_targets(self._snapshot, self.marked)

    def poll(self, now: float) -> bool:
        """Refresh the records if the refresh interval has elapsed."""
        if not self.auto_refresh or self.mode not in (Mode.BROWSING, Mode.FILTERING):
            return False
        if now - self._last_refresh < self._refresh_interval:
            return False

        self.replace_records(self._refresh())
        self._last_refresh = self._clock()
        return True

    def replace_records(self, records: list[ProcessRecord]) -> None:
        """Swap in a new snapshot and pull the cursor back inside it."""
        self._snapshot = list(records)
        self._apply_query()

    def type_char(self, char: str) -> bool:
        """Append a typed character to the query while filtering."""
        if self.mode is not Mode.FILTERING or not char:
            return False
        self.query += char
        self._apply_query()
        return True

    def press(self, key: Key) -> bool:
        """Handle a key press for the current mode."""
        if self.mode is Mode.BROWSING:
            return self._press_browsing(key)
        if self.mode is Mode.FILTERING:
            return self._press_filtering(key)
        if self.mode is Mode.CONFIRM_PENDING:
            return self._press_confirming(key)
        return False

    def _press_browsing(self, key: Key) -> bool:
        if key in (Key.QUIT, Key.CANCEL):
            self.marked.clear()
            self._exit(with_kill=False)
            return True
        if key is Key.FILTER:
            self.mode = Mode.FILTERING
            return True
        if key is Key.CONFIRM:
            if not self.kill_list():
                return False
            self.mode = Mode.CONFIRM_PENDING
            return True
        return self._press_common(key)

    def _press_filtering(self, key: Key) -> bool:
        if key is Key.CONFIRM:
            # Keep the query, go back to browsing
            self.mode = Mode.BROWSING
            return True
        if key is Key.CANCEL:
            self.mode = Mode.BROWSING
            self.query = ""
            self._apply_query()
            return True
        return self._press_common(key)

    def _press_common(self, key: Key) -> bool:
        """Keys that behave the same while browsing and filtering."""
        if key is Key.UP:
            return self._move(-1)
        if key is Key.DOWN:
            return self._move(1)
        if key is Key.TOGGLE:
            record = self.current
            if record is None:
                return False
            if record.pid in self.marked:
                self.marked.remove(record.pid)
            else:
                self.marked.add(record.pid)
            return True
        if key is Key.BACKSPACE:
            if not self.query:
                return False
            self.query = self.query[:-1]
            self._apply_query()
            return True
        return False

    def _press_confirming(self, key: Key) -> bool:
        if key is Key.CONFIRM:
            self._exit(with_kill=True)
            return True
        if key is Key.CANCEL:
            self.mode = Mode.BROWSING
            return True
        return False

    def _apply_query(self) -> None:
        self.records = [r for r in self._snapshot if matches_name(r.name, self.query)]
        self._clamp_cursor()

    def _move(self, delta: int) -> bool:
        previous = self.cursor
        self.cursor += delta
        self._clamp_cursor()
        return self.cursor != previous

    def _clamp_cursor(self) -> None:
        # No records: cursor rests at 0 with nothing selected
        self.cursor = max(0, min(self.cursor, len(self.records) - 1))

    def _exit(self, with_kill: bool) -> None:
        self.mode = Mode.EXITING
        self.with_kill = with_kill
