import asyncio
import unittest

from fakes import FakeClock, settle

from offline_sync.monitors import FocusMonitor, ManualSignalSource, NetworkEvent, NetworkMonitor
from offline_sync.monitors.focus import is_focused
from offline_sync.monitors.network import is_online


class SignalMappingTests(unittest.TestCase):
    def test_online_requires_connection_and_reachability(self) -> None:
        cases = [
            (NetworkEvent(True, True), True),
            (NetworkEvent(True, False), False),
            (NetworkEvent(False, True), False),
            (NetworkEvent(True, None), False),
            (NetworkEvent(None, None), False),
        ]
        for event, expected in cases:
            with self.subTest(event=event):
                self.assertEqual(is_online(event), expected)

    def test_only_active_app_state_is_focused(self) -> None:
        self.assertTrue(is_focused("active"))
        for state in ("background", "inactive", "unknown", None):
            with self.subTest(state=state):
                self.assertFalse(is_focused(state))


class NetworkMonitorTests(unittest.IsolatedAsyncioTestCase):
    async def test_change_is_committed_after_debounce(self) -> None:
        clock = FakeClock()
        monitor = NetworkMonitor(debounce_seconds=1.0, clock=clock)
        seen: list[bool] = []
        monitor.subscribe(seen.append)

        monitor.report(False)
        self.assertTrue(monitor.online)

        await settle()
        self.assertFalse(monitor.online)
        self.assertEqual(seen, [False])
        self.assertEqual(clock.sleeps, [1.0])
        monitor.close()

    async def test_flap_within_window_is_not_committed(self) -> None:
        clock = FakeClock()
        monitor = NetworkMonitor(debounce_seconds=1.0, clock=clock)
        seen: list[bool] = []
        monitor.subscribe(seen.append)

        monitor.report(False)
        monitor.report(True)
        await settle()

        self.assertTrue(monitor.online)
        self.assertEqual(seen, [])
        monitor.close()

    async def test_repeated_values_notify_once(self) -> None:
        monitor = NetworkMonitor(debounce_seconds=0)
        seen: list[bool] = []
        monitor.subscribe(seen.append)

        monitor.report(False)
        monitor.report(False)
        monitor.report(True)
        monitor.report(True)

        self.assertEqual(seen, [False, True])

    async def test_attached_source_drives_the_monitor(self) -> None:
        source = ManualSignalSource()
        monitor = NetworkMonitor(debounce_seconds=0)
        monitor.attach(source)

        source.emit(NetworkEvent(is_connected=True, is_internet_reachable=False))
        self.assertFalse(monitor.online)

        monitor.detach()
        source.emit(NetworkEvent(is_connected=True, is_internet_reachable=True))
        self.assertFalse(monitor.online)

    async def test_wait_for_resumes_when_online(self) -> None:
        monitor = NetworkMonitor(initial=False, debounce_seconds=0)
        waiter = asyncio.create_task(monitor.wait_for(True))
        await settle()
        self.assertFalse(waiter.done())

        monitor.report(True)
        await asyncio.wait_for(waiter, timeout=1)

    async def test_failing_listener_does_not_block_others(self) -> None:
        monitor = NetworkMonitor(debounce_seconds=0)
        seen: list[bool] = []

        def broken(_value: bool) -> None:
            raise RuntimeError("listener bug")

        monitor.subscribe(broken)
        monitor.subscribe(seen.append)
        with self.assertLogs("offline_sync.monitors.base", level="ERROR"):
            monitor.report(False)
        self.assertEqual(seen, [False])


class FocusMonitorTests(unittest.IsolatedAsyncioTestCase):
    async def test_app_state_events_update_focus(self) -> None:
        source = ManualSignalSource()
        monitor = FocusMonitor()
        seen: list[bool] = []
        monitor.subscribe(seen.append)
        monitor.attach(source)

        source.emit("background")
        source.emit("inactive")
        source.emit("active")

        self.assertTrue(monitor.focused)
        self.assertEqual(seen, [False, True])


if __name__ == "__main__":
    unittest.main()
