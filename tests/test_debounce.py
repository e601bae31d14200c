"""Tests for the debounce coalescer."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from fswatcher.watch.debounce import Debouncer
from tests.helpers import Recorder, wait_for

INTERVAL = 0.2


def test_negative_interval_rejected():
    with pytest.raises(ValueError, match="must not be negative"):
        Debouncer(-1.0)


def test_burst_fires_once_after_last_stimulus():
    debouncer = Debouncer(INTERVAL)
    recorder = Recorder()

    for i in range(5):
        debouncer.debounce(lambda i=i: recorder(i))
        last_stimulus = time.monotonic()
        time.sleep(INTERVAL / 4)

    assert wait_for(lambda: len(recorder) == 1)
    time.sleep(INTERVAL * 2)

    # Trailing edge: only the last action runs
    assert recorder.items == [4]
    assert recorder.times[0] - last_stimulus >= INTERVAL * 0.9
    assert debouncer.get_stats()['fired'] == 1


def test_spaced_stimuli_fire_individually():
    debouncer = Debouncer(0.05)
    recorder = Recorder()

    for i in range(3):
        debouncer.debounce(lambda i=i: recorder(i))
        assert wait_for(lambda: len(recorder) == i + 1)
        time.sleep(0.1)

    assert recorder.items == [0, 1, 2]


def test_cancel_discards_pending_action():
    debouncer = Debouncer(INTERVAL)
    recorder = Recorder()

    debouncer.debounce(lambda: recorder("fired"))
    assert debouncer.is_pending
    debouncer.cancel()

    assert not debouncer.is_pending
    time.sleep(INTERVAL * 2)
    assert recorder.items == []


def test_cancel_waits_for_running_action():
    debouncer = Debouncer(0.01)
    started = threading.Event()
    finished = threading.Event()

    def slow_action():
        started.set()
        time.sleep(0.3)
        finished.set()

    debouncer.debounce(slow_action)
    assert started.wait(2)
    debouncer.cancel()

    assert finished.is_set()


def test_cancel_from_inside_action_does_not_deadlock():
    debouncer = Debouncer(0.01)
    done = threading.Event()

    def action():
        debouncer.cancel()
        done.set()

    debouncer.debounce(action)
    assert done.wait(2)


def test_flush_runs_pending_action_immediately():
    debouncer = Debouncer(10.0)
    recorder = Recorder()

    debouncer.debounce(lambda: recorder("now"))
    assert debouncer.flush() is True
    assert recorder.items == ["now"]
    assert debouncer.flush() is False


def test_action_errors_are_contained(caplog):
    debouncer = Debouncer(0.01)
    recorder = Recorder()

    def failing():
        raise RuntimeError("boom")

    debouncer.debounce(failing)
    assert wait_for(lambda: debouncer.get_stats()['errors'] == 1)
    assert "Error in debounced action" in caplog.text

    # Still usable afterwards
    debouncer.debounce(lambda: recorder("ok"))
    assert wait_for(lambda: recorder.items == ["ok"])


def test_action_runs_on_executor():
    recorder = Recorder()
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="debounce-test") as executor:
        debouncer = Debouncer(0.01, executor=executor)
        debouncer.debounce(lambda: recorder(threading.current_thread().name))
        assert wait_for(lambda: len(recorder) == 1)

    assert recorder.items[0].startswith("debounce-test")
