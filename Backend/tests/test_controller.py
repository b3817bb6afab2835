import asyncio

import httpx
import pytest

from focustimer.schemas.settings import TimerSettings
from focustimer.timer.controller import FocusTimer, fetch_timer_settings
from focustimer.timer.ledger import HttpSessionLedger
from focustimer.timer.modes import AutoStartConfig, TimerDurations, TimerMode


@pytest.mark.asyncio
async def test_fetch_timer_settings(client):
    await client.put("/settings/timer", json={"durations": {"focus": 600}})
    timer_settings = await fetch_timer_settings(client)
    assert timer_settings.durations.focus == 600


@pytest.mark.asyncio
async def test_fetch_timer_settings_falls_back_to_defaults():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://store"
    ) as http:
        timer_settings = await fetch_timer_settings(http)
    assert timer_settings == TimerSettings()


@pytest.mark.asyncio
async def test_start_seeds_focus_counter(client, clock):
    for _ in range(3):
        await client.post("/sessions", json={"mode": "focus", "duration_seconds": 1500})
    await client.post("/sessions", json={"mode": "shortBreak", "duration_seconds": 300})

    timer = FocusTimer(HttpSessionLedger(client), clock=clock)
    await timer.start()

    assert timer.machine.completed_focus_sessions == 3
    assert len(timer.history.sessions) == 4
    await timer.close()


@pytest.mark.asyncio
async def test_full_cycle_with_auto_start(client, clock):
    timer_settings = TimerSettings(
        durations=TimerDurations(focus=60, short_break=30),
        auto_start_break=True,
    )
    timer = FocusTimer(
        HttpSessionLedger(client), timer_settings, clock=clock, autostart_delay=0.01
    )
    await timer.start()

    timer.machine.toggle_running()
    clock.advance(60)
    await asyncio.sleep(0.1)

    assert timer.machine.state.mode is TimerMode.SHORT_BREAK
    assert timer.machine.state.running is True
    await timer.close()

    sessions = (await client.get("/sessions")).json()
    assert [s["mode"] for s in sessions] == ["focus"]
    assert sessions[0]["duration_seconds"] == 60


@pytest.mark.asyncio
async def test_apply_settings_updates_machine_and_autostart(client, clock):
    timer = FocusTimer(HttpSessionLedger(client), clock=clock)
    timer.apply_settings(TimerSettings(
        durations=TimerDurations(focus=1200),
        auto_start_focus=True,
        long_break_interval=3,
    ))

    assert timer.machine.state.remaining_seconds == 1200
    assert timer.autostart.config == AutoStartConfig(auto_start_focus=True, long_break_interval=3)
    await timer.close()


@pytest.mark.asyncio
async def test_sync_listener_runs_until_close(client, clock, fake_redis):
    timer = FocusTimer(HttpSessionLedger(client), clock=clock, redis_client=fake_redis)
    await timer.start()
    await asyncio.sleep(0)

    timer.machine.switch_mode(TimerMode.LONG_BREAK)
    await asyncio.sleep(0)
    assert len(fake_redis.published) == 1

    await timer.close()
    assert all(not queues for queues in fake_redis._subscribers.values())
