"""Tests for CleanupScheduler."""

import threading
import time

import pytest

from fix_bot.utils.cleanup_scheduler import CleanupScheduler, remove_directory


@pytest.fixture
def clock():
    now = [0.0]

    def _clock():
        return now[0]

    _clock.advance = lambda seconds: now.__setitem__(0, now[0] + seconds)
    return _clock


def _make_dir(tmp_path, name):
    path = tmp_path / name
    (path / "nested").mkdir(parents=True)
    (path / "nested" / "file.txt").write_text("data")
    return path


def test_run_due_only_runs_expired_entries(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    soon = _make_dir(tmp_path, "soon")
    later = _make_dir(tmp_path, "later")
    scheduler.schedule(soon, 10)
    scheduler.schedule(later, 100)

    assert scheduler.run_due() == 0
    clock.advance(10)
    assert scheduler.run_due() == 1
    assert not soon.exists()
    assert later.exists()
    assert [h.path for h in scheduler.pending()] == [later]


def test_zero_delay_is_due_immediately(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    target = _make_dir(tmp_path, "now")
    handle = scheduler.schedule(target, 0)

    assert scheduler.run_due() == 1
    assert handle.done
    assert not target.exists()


def test_flush_runs_everything(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    paths = [_make_dir(tmp_path, f"d{i}") for i in range(3)]
    for index, path in enumerate(paths):
        scheduler.schedule(path, 1000 * (index + 1))

    assert scheduler.flush() == 3
    assert not any(path.exists() for path in paths)
    assert scheduler.pending() == []


def test_cancel_keeps_directory(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    target = _make_dir(tmp_path, "keep")
    scheduler.schedule(target, 0)

    assert scheduler.cancel(target) is True
    assert scheduler.cancel(target) is False
    assert scheduler.flush() == 0
    assert target.exists()


def test_reschedule_replaces_entry(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    target = _make_dir(tmp_path, "again")
    scheduler.schedule(target, 0)
    scheduler.schedule(str(target), 50)

    assert len(scheduler.pending()) == 1
    assert scheduler.run_due() == 0
    clock.advance(50)
    assert scheduler.run_due() == 1


def test_missing_directory_is_not_an_error(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    scheduler.schedule(tmp_path / "never-created", 0)
    assert scheduler.run_due() == 1


def test_remove_directory_logs_and_swallows_errors(tmp_path, caplog, monkeypatch):
    target = _make_dir(tmp_path, "locked")

    def failing_rmtree(path):
        raise PermissionError("denied")

    monkeypatch.setattr("fix_bot.utils.cleanup_scheduler.shutil.rmtree", failing_rmtree)
    assert remove_directory(target) is False
    assert "Failed to clean up workspace" in caplog.text


def test_shutdown_rejects_new_work(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    target = _make_dir(tmp_path, "left")
    scheduler.schedule(target, 100)
    scheduler.shutdown()

    assert scheduler.pending() == []
    assert target.exists()
    with pytest.raises(RuntimeError):
        scheduler.schedule(target, 0)


def test_shutdown_can_run_pending(tmp_path, clock):
    scheduler = CleanupScheduler(autostart=False, clock=clock)
    target = _make_dir(tmp_path, "flushme")
    scheduler.schedule(target, 100)
    scheduler.shutdown(run_pending=True)
    assert not target.exists()


def test_autostart_timer_removes_directory(tmp_path):
    scheduler = CleanupScheduler()
    target = _make_dir(tmp_path, "timed")
    handle = scheduler.schedule(target, 0)

    deadline = time.monotonic() + 5
    while target.exists() and time.monotonic() < deadline:
        time.sleep(0.01)

    assert not target.exists()
    assert handle.done
    assert isinstance(handle.timer, threading.Timer)
    assert not scheduler.is_pending(target)
    scheduler.shutdown()


def test_autostart_cancel_stops_timer(tmp_path):
    scheduler = CleanupScheduler()
    target = _make_dir(tmp_path, "spared")
    scheduler.schedule(target, 0.2)
    scheduler.cancel(target)
    time.sleep(0.4)
    assert target.exists()
    scheduler.shutdown()
