import threading
import time

from core.background import BackgroundTasks
from core.period_controller import PeriodController, PeriodGate
from tests.helpers import wait_until


def _recording(controller):
    events = []
    controller.register_subscriber(events.append)
    return events


def _start_in_thread(controller):
    result = {}

    def run():
        result["started"] = controller.start()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, result


class TestPeriodLifecycle:
    def test_timeout_notifies_true_then_false(self):
        controller = PeriodController("trade", 0.05)
        events = _recording(controller)

        assert controller.start() is True
        assert events == [True, False]
        assert not controller.is_running

    def test_stop_ends_period_early(self):
        controller = PeriodController("trade", None)
        events = _recording(controller)

        thread, result = _start_in_thread(controller)
        assert wait_until(lambda: events == [True])

        controller.stop()
        thread.join(2)

        assert not thread.is_alive()
        assert result["started"] is True
        assert events == [True, False]
        assert not controller.is_running

    def test_stop_without_period_notifies_false_every_time(self):
        controller = PeriodController("trade", 1.0)
        events = _recording(controller)

        controller.stop()
        controller.stop()

        assert events == [False, False]

    def test_second_start_while_running_is_rejected(self):
        controller = PeriodController("trade", None)
        events = _recording(controller)

        thread, _ = _start_in_thread(controller)
        assert wait_until(lambda: controller.is_running and events == [True])

        assert controller.start() is False
        assert events == [True]

        controller.stop()
        thread.join(2)
        assert events == [True, False]

    def test_can_start_again_after_end(self):
        controller = PeriodController("trade", 0.02)
        events = _recording(controller)

        assert controller.start() is True
        assert controller.start() is True
        assert events == [True, False, True, False]

    def test_subscribers_called_in_registration_order(self):
        controller = PeriodController("trade", 0.01)
        calls = []
        controller.register_subscriber(lambda active: calls.append(("first", active)))
        controller.register_subscriber(lambda active: calls.append(("second", active)))

        controller.start()

        assert calls == [("first", True), ("second", True), ("first", False), ("second", False)]


class TestBeginThenWait:
    def test_begin_notifies_without_blocking(self):
        controller = PeriodController("trade", None, stop_grace=0.05)
        events = _recording(controller)

        assert controller.begin() is True

        assert events == [True]
        assert controller.is_running
        controller.stop()

    def test_stop_before_waiter_runs_still_ends_period(self):
        controller = PeriodController("registration", None, stop_grace=0.05)
        events = _recording(controller)

        assert controller.begin() is True
        controller.stop()

        waiter = threading.Thread(target=controller.wait_for_end, daemon=True)
        waiter.start()
        waiter.join(2)

        assert not waiter.is_alive()
        assert events == [True, False]
        assert not controller.is_running

    def test_begin_while_running_rejected(self):
        controller = PeriodController("trade", None, stop_grace=0.05)
        events = _recording(controller)

        assert controller.begin() is True
        assert controller.begin() is False
        assert events == [True]
        controller.stop()


class TestSetDuration:
    def test_applies_to_next_period(self):
        controller = PeriodController("trade", None)
        controller.set_duration(0.05)

        started = time.monotonic()
        assert controller.start() is True

        assert time.monotonic() - started < 2
        assert controller.duration == 0.05

    def test_running_period_keeps_its_duration(self):
        controller = PeriodController("trade", 0.3)
        events = _recording(controller)

        thread, _ = _start_in_thread(controller)
        assert wait_until(lambda: events == [True])
        controller.set_duration(None)

        thread.join(2)
        assert events == [True, False]


class TestStopGrace:
    def test_stop_returns_when_subscriber_is_slow(self):
        controller = PeriodController("trade", None, stop_grace=0.05)
        release = threading.Event()

        def slow_subscriber(active):
            if not active:
                release.wait(2)

        controller.register_subscriber(slow_subscriber)
        thread, _ = _start_in_thread(controller)
        assert wait_until(lambda: controller.is_running)

        started = time.monotonic()
        controller.stop()
        assert time.monotonic() - started < 1

        release.set()
        thread.join(2)
        assert not controller.is_running


class TestPeriodGate:
    def test_flags_default_closed(self):
        gate = PeriodGate()
        assert not gate.is_trade_period
        assert not gate.is_registration_period

    def test_flags_follow_controller(self):
        gate = PeriodGate()
        controller = PeriodController("registration", None)
        controller.register_subscriber(gate.set_registration_period_active)

        thread, _ = _start_in_thread(controller)
        assert wait_until(lambda: gate.is_registration_period)
        assert not gate.is_trade_period

        controller.stop()
        thread.join(2)
        assert not gate.is_registration_period


class TestBackgroundTasks:
    def test_drain_waits_for_threads(self):
        tasks = BackgroundTasks()
        done = threading.Event()
        tasks.spawn("short", lambda: time.sleep(0.05) or done.set())

        assert tasks.drain(2) is True
        assert done.is_set()
        assert wait_until(lambda: tasks.active_count == 0)

    def test_failing_task_is_logged_and_removed(self, caplog):
        tasks = BackgroundTasks()

        def boom():
            raise RuntimeError("boom")

        thread = tasks.spawn("failing", boom)
        thread.join(2)

        assert tasks.active_count == 0
        assert "Background task failing failed" in caplog.text

    def test_drain_reports_stuck_threads(self):
        tasks = BackgroundTasks()
        release = threading.Event()
        tasks.spawn("stuck", lambda: release.wait(5))

        assert tasks.drain(0.05) is False

        release.set()
        assert tasks.drain(2) is True
