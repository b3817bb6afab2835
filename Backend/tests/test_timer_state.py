import uuid
from datetime import timedelta

import pytest

from focustimer.timer.modes import TimerDurations, TimerMode
from focustimer.timer.state import TimerSnapshot, TimerStateMachine, format_clock, format_duration


class StubTasks:
    def __init__(self, active_task_id=None):
        self.active_task_id = active_task_id

    async def increment_completed_pomodoros(self, task_id):
        pass


@pytest.fixture
def machine(clock, recorder) -> TimerStateMachine:
    return TimerStateMachine(TimerDurations(), clock=clock, recorder=recorder)


def test_initial_state(machine):
    assert machine.state.mode is TimerMode.FOCUS
    assert machine.state.remaining_seconds == 1500
    assert machine.state.running is False
    assert machine.state.last_tick is None


def test_toggle_running_sets_and_clears_last_tick(machine, clock):
    machine.toggle_running()
    assert machine.state.running is True
    assert machine.state.last_tick == clock.monotonic()

    machine.toggle_running()
    assert machine.state.running is False
    assert machine.state.last_tick is None


def test_tick_counts_down_by_real_delta(machine, clock):
    machine.toggle_running()
    clock.advance(2.5)
    machine.tick()
    assert machine.state.remaining_seconds == pytest.approx(1497.5)
    assert machine.state.last_tick == clock.monotonic()


def test_tick_is_noop_when_paused(machine, clock):
    machine.toggle_running()
    clock.advance(10)
    machine.tick()
    machine.toggle_running()
    before = machine.state.remaining_seconds

    for _ in range(5):
        clock.advance(30)
        machine.tick()

    assert machine.state.remaining_seconds == before


def test_countdown_never_increases_or_goes_negative(machine, clock):
    machine.toggle_running()
    seen = [machine.state.remaining_seconds]
    for step in (0.3, 100, 0.0, 799.7, 250, 1000):
        clock.advance(step)
        machine.tick()
        seen.append(machine.state.remaining_seconds)

    assert all(b <= a for a, b in zip(seen, seen[1:]))
    assert min(seen) == 0


def test_drift_correction_two_uneven_ticks(machine, clock, recorder):
    machine.toggle_running()
    clock.advance(1499.9)
    machine.tick()
    assert machine.state.remaining_seconds > 0
    clock.advance(0.1)
    machine.tick()

    assert machine.state.remaining_seconds == 0
    assert len(recorder.drafts) == 1


def test_drift_correction_one_second_ticks(machine, clock, recorder):
    machine.toggle_running()
    for _ in range(1500):
        clock.advance(1)
        machine.tick()

    assert machine.state.remaining_seconds == 0
    assert len(recorder.drafts) == 1


def test_completion_emits_exactly_one_session(machine, clock, recorder):
    machine.toggle_running()
    clock.advance(2000)
    machine.tick()
    # Further ticks after completion must not produce more sessions
    clock.advance(5)
    machine.tick()
    machine.tick()

    assert len(recorder.drafts) == 1
    draft = recorder.drafts[0]
    assert draft.mode is TimerMode.FOCUS
    assert draft.duration_seconds == 1500
    assert draft.was_completed is True
    assert draft.completed_at == clock.now() - timedelta(seconds=5)
    assert draft.started_at == draft.completed_at - timedelta(seconds=1500)


def test_completion_leaves_idle_then_rearms_on_start(machine, clock):
    machine.toggle_running()
    clock.advance(1500)
    machine.tick()

    assert machine.state.running is False
    assert machine.state.last_tick is None
    assert machine.state.remaining_seconds == 0
    assert machine.state.mode is TimerMode.FOCUS

    machine.toggle_running()
    assert machine.state.remaining_seconds == 1500


def test_focus_completion_increments_counter(machine, clock):
    machine.toggle_running()
    clock.advance(1500)
    machine.tick()
    assert machine.completed_focus_sessions == 1

    machine.switch_mode(TimerMode.SHORT_BREAK)
    machine.toggle_running()
    clock.advance(300)
    machine.tick()
    assert machine.completed_focus_sessions == 1


def test_completion_attaches_active_task(clock, recorder):
    task_id = uuid.uuid4()
    machine = TimerStateMachine(
        clock=clock, recorder=recorder, tasks=StubTasks(task_id)
    )
    machine.complete()
    assert recorder.drafts[0].task_id == task_id


def test_chronometer_counts_up(machine, clock):
    machine.switch_mode(TimerMode.CHRONOMETER)
    assert machine.state.remaining_seconds == 0
    machine.toggle_running()
    clock.advance(42.25)
    machine.tick()
    assert machine.state.elapsed_seconds == pytest.approx(42.25)


def test_chronometer_completion_rounds_duration(clock, recorder):
    machine = TimerStateMachine(
        clock=clock, recorder=recorder, tasks=StubTasks(uuid.uuid4())
    )
    machine.switch_mode(TimerMode.CHRONOMETER)
    machine.toggle_running()
    clock.advance(61.5)
    machine.tick()
    draft = machine.complete()

    assert draft.duration_seconds == 62
    assert draft.task_id is None
    assert machine.state.elapsed_seconds == 0
    assert machine.state.running is False


def test_chronometer_zero_duration_is_suppressed(machine, clock, recorder):
    machine.switch_mode(TimerMode.CHRONOMETER)
    machine.toggle_running()
    clock.advance(0.4)
    machine.tick()

    assert machine.complete() is None
    assert recorder.drafts == []
    assert machine.state.running is False


def test_reset_countdown(machine, clock, recorder):
    machine.toggle_running()
    clock.advance(100)
    machine.tick()
    machine.reset()

    assert machine.state.remaining_seconds == 1500
    assert machine.state.running is False
    assert machine.state.last_tick is None
    assert recorder.drafts == []


def test_reset_chronometer(machine, clock):
    machine.switch_mode(TimerMode.CHRONOMETER)
    machine.toggle_running()
    clock.advance(12)
    machine.tick()
    machine.reset()
    assert machine.state.elapsed_seconds == 0


def test_switch_mode_while_running_discards_progress(machine, clock, recorder):
    machine.toggle_running()
    clock.advance(600)
    machine.tick()
    machine.switch_mode(TimerMode.LONG_BREAK)

    assert machine.state.mode is TimerMode.LONG_BREAK
    assert machine.state.remaining_seconds == 900
    assert machine.state.running is False
    assert recorder.drafts == []


def test_switch_mode_can_record_abandoned_session(clock, recorder):
    machine = TimerStateMachine(clock=clock, recorder=recorder, record_abandoned=True)
    machine.toggle_running()
    clock.advance(600)
    machine.tick()
    machine.switch_mode("shortBreak")

    assert len(recorder.drafts) == 1
    draft = recorder.drafts[0]
    assert draft.was_completed is False
    assert draft.duration_seconds == 600
    assert machine.completed_focus_sessions == 0


def test_switch_mode_untouched_countdown_records_nothing(clock, recorder):
    machine = TimerStateMachine(clock=clock, recorder=recorder, record_abandoned=True)
    machine.switch_mode(TimerMode.SHORT_BREAK)
    assert recorder.drafts == []


def test_durations_are_clamped():
    durations = TimerDurations(focus=0, short_break=-5, long_break=900)
    assert durations.focus == 1
    assert durations.short_break == 1
    assert durations.for_mode(TimerMode.CHRONOMETER) == 0


def test_update_durations_rearms_idle_countdown(machine):
    machine.update_durations(TimerDurations(focus=3000))
    assert machine.state.remaining_seconds == 3000


def test_update_durations_keeps_running_countdown(machine, clock):
    machine.toggle_running()
    clock.advance(10)
    machine.tick()
    machine.update_durations(TimerDurations(focus=3000))
    assert machine.state.remaining_seconds == pytest.approx(1490)


def test_listeners_notified_and_removable(machine):
    calls = []
    remove = machine.add_listener(lambda state: calls.append(state.running))
    machine.toggle_running()
    remove()
    machine.toggle_running()
    assert calls == [True]


def test_apply_snapshot_when_idle(machine):
    snapshot = TimerSnapshot(
        mode=TimerMode.SHORT_BREAK,
        remaining_seconds=120,
        elapsed_seconds=0,
        running=True,
        durations=TimerDurations(),
        completed_focus_sessions=3,
    )
    assert machine.apply_snapshot(snapshot) is True
    assert machine.state.mode is TimerMode.SHORT_BREAK
    assert machine.state.remaining_seconds == 120
    assert machine.state.running is False
    assert machine.state.last_tick is None
    assert machine.completed_focus_sessions == 3


def test_apply_snapshot_ignored_while_running(machine):
    machine.toggle_running()
    snapshot = machine.snapshot().model_copy(update={"remaining_seconds": 5.0})
    assert machine.apply_snapshot(snapshot) is False
    assert machine.state.remaining_seconds == 1500
    assert machine.state.running is True


def test_format_clock():
    assert format_clock(1500) == "25:00"
    assert format_clock(59.9) == "00:59"
    assert format_clock(3725) == "62:05"
    assert format_clock(-3) == "00:00"


def test_format_duration():
    assert format_duration(1500) == "25m"
    assert format_duration(3900) == "1h 5m"
    assert format_duration(0) == "0m"


def test_apply_snapshot_rearms_finished_countdown(machine):
    snapshot = TimerSnapshot(
        mode=TimerMode.FOCUS,
        remaining_seconds=0,
        elapsed_seconds=0,
        running=False,
        durations=TimerDurations(focus=600),
        completed_focus_sessions=1,
    )
    assert machine.apply_snapshot(snapshot) is True
    assert machine.state.remaining_seconds == 600
    assert machine.completed_focus_sessions == 1
