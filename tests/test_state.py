"""Tests for the selection state machine."""

import random

import pytest
from fakes import FakeClock, record

from rip.state import Key, Mode, SelectionState, select_targets

CHROME = [record(150, "chrome"), record(200, "chrome"), record(300, "chrome")]


def assert_cursor_valid(state: SelectionState) -> None:
    if state.records:
        assert 0 <= state.cursor <= len(state.records) - 1
    else:
        assert state.cursor == 0
        assert state.current is None


class Refresher:
    """Refresh callable returning scripted snapshots."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]


def live_state(records, *snapshots, interval=2.0):
    clock = FakeClock()
    refresher = Refresher(*snapshots) if snapshots else Refresher(records)
    state = SelectionState(records, refresh=refresher, refresh_interval=interval, clock=clock)
    return state, clock, refresher


class TestEntry:
    def test_initial_state(self):
        state = SelectionState(CHROME)

        assert state.mode is Mode.BROWSING
        assert state.cursor == 0
        assert state.marked == set()
        assert not state.confirm_pending
        assert not state.exiting
        assert state.current == CHROME[0]

    def test_records_are_copied(self):
        records = list(CHROME)
        state = SelectionState(records)

        records.clear()

        assert len(state.records) == 3


class TestNavigation:
    def test_down_and_up(self):
        state = SelectionState(CHROME)

        assert state.press(Key.DOWN)
        assert state.press(Key.DOWN)
        assert state.cursor == 2
        assert state.press(Key.UP)
        assert state.cursor == 1

    def test_no_wraparound(self):
        state = SelectionState(CHROME)

        assert not state.press(Key.UP)
        assert state.cursor == 0

        for _ in range(5):
            state.press(Key.DOWN)
        assert state.cursor == 2

    def test_empty_records(self):
        state = SelectionState([])

        assert not state.press(Key.DOWN)
        assert not state.press(Key.TOGGLE)
        assert not state.press(Key.CONFIRM)
        assert state.mode is Mode.BROWSING
        assert_cursor_valid(state)


class TestMarking:
    def test_toggle(self):
        state = SelectionState(CHROME)

        state.press(Key.TOGGLE)
        assert state.marked == {150}

        state.press(Key.TOGGLE)
        assert state.marked == set()

    def test_marks_follow_pid_across_reorder(self):
        state = SelectionState(CHROME)
        state.press(Key.DOWN)
        state.press(Key.TOGGLE)

        state.replace_records(list(reversed(CHROME)))

        assert [r.pid for r in state.kill_list()] == [200]

    def test_marks_for_exited_process_stop_matching(self):
        state = SelectionState(CHROME)
        state.press(Key.TOGGLE)

        state.replace_records(CHROME[1:])

        assert state.kill_list() == []
        assert not state.press(Key.CONFIRM)

    def test_kill_list_one_record_per_pid(self):
        rows = [
            record(300, "nginx", port=80, protocol="tcp"),
            record(300, "nginx", port=443, protocol="tcp"),
            record(100, "sshd", port=22, protocol="tcp"),
        ]
        state = SelectionState(rows)
        state.press(Key.TOGGLE)

        assert state.kill_list() == [rows[0]]

    def test_kill_list_is_a_copy(self):
        state = SelectionState(CHROME)
        state.press(Key.TOGGLE)

        targets = state.kill_list()
        targets.clear()

        assert len(state.kill_list()) == 1


class TestConfirmation:
    def test_confirm_with_nothing_marked_is_noop(self):
        state = SelectionState(CHROME)

        assert not state.press(Key.CONFIRM)
        assert state.mode is Mode.BROWSING

    def test_confirm_then_confirm_exits_with_kill(self):
        state = SelectionState(CHROME)
        state.press(Key.TOGGLE)

        assert state.press(Key.CONFIRM)
        assert state.confirm_pending
        assert state.press(Key.CONFIRM)

        assert state.exiting
        assert state.with_kill
        assert state.kill_list() == [CHROME[0]]

    def test_cancel_returns_to_browsing_keeping_marks(self):
        state = SelectionState(CHROME)
        state.press(Key.TOGGLE)
        state.press(Key.CONFIRM)

        assert state.press(Key.CANCEL)

        assert state.mode is Mode.BROWSING
        assert state.marked == {150}

    @pytest.mark.parametrize("key", [Key.UP, Key.DOWN, Key.TOGGLE, Key.QUIT])
    def test_other_keys_ignored_while_confirming(self, key):
        state = SelectionState(CHROME)
        state.press(Key.DOWN)
        state.press(Key.TOGGLE)
        state.press(Key.CONFIRM)

        assert not state.press(key)

        assert state.confirm_pending
        assert state.cursor == 1
        assert state.marked == {200}

    def test_mark_cancel_then_quit_sends_nothing(self):
        """Mark 150 and 300, cancel at the confirmation, then quit."""
        state = SelectionState(CHROME)
        state.press(Key.TOGGLE)
        state.press(Key.DOWN)
        state.press(Key.DOWN)
        state.press(Key.TOGGLE)
        assert state.marked == {150, 300}

        state.press(Key.CONFIRM)
        state.press(Key.CANCEL)
        state.press(Key.QUIT)

        assert state.exiting
        assert not state.with_kill
        assert state.marked == set()
        assert state.kill_list() == []


class TestQuit:
    @pytest.mark.parametrize("key", [Key.QUIT, Key.CANCEL])
    def test_quit_clears_marks(self, key):
        state = SelectionState(CHROME)
        state.press(Key.TOGGLE)

        assert state.press(key)

        assert state.exiting
        assert not state.with_kill
        assert state.marked == set()

    def test_keys_ignored_after_exit(self):
        state = SelectionState(CHROME)
        state.press(Key.QUIT)

        for key in Key:
            assert not state.press(key)
        assert state.exiting


MIXED = [record(10, "nginx"), record(20, "Chrome"), record(30, "postgres"), record(40, "chromium")]


def type_query(state: SelectionState, text: str) -> None:
    state.press(Key.FILTER)
    for char in text:
        state.type_char(char)


class TestFiltering:
    def test_filter_key_enters_filtering(self):
        state = SelectionState(MIXED)

        assert state.press(Key.FILTER)
        assert state.filtering
        assert state.query == ""
        assert state.records == MIXED

    def test_typing_narrows_case_insensitively(self):
        state = SelectionState(MIXED)

        type_query(state, "CHR")

        assert state.query == "CHR"
        assert [r.pid for r in state.records] == [20, 40]

    def test_typing_ignored_while_browsing(self):
        state = SelectionState(MIXED)

        assert not state.type_char("n")
        assert state.query == ""
        assert state.records == MIXED

    def test_typing_reclamps_cursor(self):
        state = SelectionState(MIXED)
        for _ in range(3):
            state.press(Key.DOWN)

        type_query(state, "nginx")

        assert state.cursor == 0
        assert state.current == MIXED[0]

    def test_no_match_leaves_empty_list(self):
        state = SelectionState(MIXED)

        type_query(state, "zzz")

        assert_cursor_valid(state)
        assert not state.press(Key.TOGGLE)

    def test_backspace_widens_again(self):
        state = SelectionState(MIXED)
        type_query(state, "chromi")

        assert [r.pid for r in state.records] == [40]
        assert state.press(Key.BACKSPACE)
        assert state.press(Key.BACKSPACE)
        assert state.query == "chro"
        assert [r.pid for r in state.records] == [20, 40]

    def test_backspace_on_empty_query_is_noop(self):
        state = SelectionState(MIXED)
        state.press(Key.FILTER)

        assert not state.press(Key.BACKSPACE)

    def test_enter_keeps_query_and_browses(self):
        state = SelectionState(MIXED)
        type_query(state, "chr")

        assert state.press(Key.CONFIRM)

        assert state.mode is Mode.BROWSING
        assert state.query == "chr"
        assert [r.pid for r in state.records] == [20, 40]

    def test_escape_clears_query(self):
        state = SelectionState(MIXED)
        type_query(state, "chr")

        assert state.press(Key.CANCEL)

        assert state.mode is Mode.BROWSING
        assert state.query == ""
        assert state.records == MIXED

    def test_quit_key_does_not_exit_while_filtering(self):
        state = SelectionState(MIXED)
        state.press(Key.FILTER)

        assert not state.press(Key.QUIT)
        assert not state.exiting

    def test_marks_survive_narrowing(self):
        """A marked process hidden by the query is still killed."""
        state = SelectionState(MIXED)
        state.press(Key.TOGGLE)

        type_query(state, "chr")
        state.press(Key.DOWN)
        state.press(Key.TOGGLE)
        state.press(Key.CONFIRM)

        assert [r.pid for r in state.records] == [20, 40]
        assert [r.pid for r in state.kill_list()] == [10, 40]
        assert state.press(Key.CONFIRM)
        assert state.confirm_pending

    def test_refresh_keeps_query_applied(self):
        fresh = [record(50, "chrome"), record(60, "nginx")]
        state, clock, _ = live_state(MIXED, fresh)
        type_query(state, "chr")

        clock.advance(2.0)
        assert state.poll(clock())

        assert state.filtering
        assert [r.pid for r in state.records] == [50]

    def test_cursor_stays_valid_while_typing_and_refreshing(self):
        rng = random.Random(99)
        names = ["chrome", "nginx", "node", "postgres", "code"]
        snapshots = [
            [record(pid, rng.choice(names)) for pid in range(rng.randint(0, 6))]
            for _ in range(100)
        ]
        state, clock, _ = live_state(MIXED, *snapshots, interval=1.0)
        state.press(Key.FILTER)

        for _ in range(1000):
            roll = rng.random()
            if roll < 0.2:
                clock.advance(1.0)
                state.poll(clock())
            elif roll < 0.5:
                state.type_char(rng.choice("cdeno"))
            else:
                state.press(rng.choice([Key.UP, Key.DOWN, Key.TOGGLE, Key.BACKSPACE]))
            assert_cursor_valid(state)
            assert all(state.query.lower() in r.name.lower() for r in state.records)


class TestRefresh:
    def test_refresh_after_interval(self):
        fresh = [record(1, "new")]
        state, clock, refresher = live_state(CHROME, fresh)

        clock.advance(1.9)
        assert not state.poll(clock())
        assert refresher.calls == 0

        clock.advance(0.1)
        assert state.poll(clock())
        assert refresher.calls == 1
        assert state.records == fresh

    def test_interval_restarts_after_refresh(self):
        state, clock, refresher = live_state(CHROME)

        clock.advance(2.0)
        state.poll(clock())
        clock.advance(1.0)

        assert not state.poll(clock())
        assert refresher.calls == 1

    def test_no_refresh_while_confirming(self):
        state, clock, refresher = live_state(CHROME, [])
        state.press(Key.TOGGLE)
        state.press(Key.CONFIRM)

        clock.advance(10.0)

        assert not state.poll(clock())
        assert refresher.calls == 0
        assert state.records == CHROME

        state.press(Key.CANCEL)
        assert state.poll(clock())
        assert refresher.calls == 1

    def test_no_refresh_without_interval(self):
        refresher = Refresher([])
        clock = FakeClock()
        state = SelectionState(CHROME, refresh=refresher, clock=clock)

        clock.advance(100.0)

        assert not state.auto_refresh
        assert not state.poll(clock())
        assert refresher.calls == 0

    def test_shrink_reclamps_cursor(self):
        state, clock, _ = live_state(CHROME, CHROME[:1])
        state.press(Key.DOWN)
        state.press(Key.DOWN)

        clock.advance(2.0)
        state.poll(clock())

        assert state.cursor == 0
        assert state.current == CHROME[0]

    def test_shrink_to_zero(self):
        state, clock, _ = live_state(CHROME, [], CHROME)
        state.press(Key.DOWN)
        state.press(Key.TOGGLE)

        clock.advance(2.0)
        state.poll(clock())

        assert_cursor_valid(state)
        assert not state.press(Key.TOGGLE)
        assert not state.press(Key.CONFIRM)

        clock.advance(2.0)
        state.poll(clock())
        assert state.kill_list() == [CHROME[1]]

    def test_cursor_stays_valid_under_random_events(self):
        rng = random.Random(1234)
        snapshots = [[record(pid) for pid in range(rng.randint(0, 6))] for _ in range(200)]
        state, clock, _ = live_state(CHROME, *snapshots, interval=1.0)
        keys = [Key.UP, Key.DOWN, Key.TOGGLE, Key.CONFIRM, Key.CANCEL]

        for _ in range(2000):
            if rng.random() < 0.2:
                clock.advance(1.0)
                state.poll(clock())
            else:
                key = rng.choice(keys)
                if key is Key.CANCEL and state.mode is Mode.BROWSING:
                    continue
                if key is Key.CONFIRM and state.confirm_pending:
                    key = Key.CANCEL
                state.press(key)
            assert_cursor_valid(state)


def test_select_targets_dedupes_and_preserves_order():
    rows = [record(3), record(1), record(3), record(2)]

    assert select_targets(rows, {3, 2, 99}) == [rows[0], rows[3]]
