"""Tests for BusEventCache and the message bus."""

import logging
import threading
import time

import pytest

from utils.gateway_state import BusEventCache, TelemetrySnapshot
from utils.message_bus import MessageBus
from utils.messages import (
    PowerChannelState,
    Pressure,
    RelativeHumidity,
    SmsStatus,
    SmsStatusCode,
    Temperature,
    TextMessage,
)


@pytest.fixture
def bus():
    return MessageBus()


@pytest.fixture
def cache(bus):
    c = BusEventCache()
    c.attach(bus)
    return c


class TestTelemetry:

    def test_defaults(self):
        assert BusEventCache().get_telemetry() == TelemetrySnapshot(0.0, 0.0, 0.0)

    def test_updates_from_bus(self, bus, cache):
        bus.publish(Temperature(21.5))
        bus.publish(Pressure(101.3))
        bus.publish(RelativeHumidity(40.0))
        bus.dispatch_pending()
        assert cache.get_telemetry() == TelemetrySnapshot(21.5, 101.3, 40.0)

    def test_last_write_wins(self, bus, cache):
        bus.publish(Temperature(10.0))
        bus.publish(Temperature(12.0))
        bus.dispatch_pending()
        assert cache.get_telemetry().temperature == 12.0

    def test_snapshot_is_a_copy(self, cache):
        snap = cache.get_telemetry()
        snap.temperature = 99.0
        assert cache.get_telemetry().temperature == 0.0


class TestChannelRegistry:

    def test_unknown_until_observed(self, bus, cache):
        assert not cache.is_known_channel("fan")
        bus.publish(PowerChannelState("fan", 1))
        bus.dispatch_pending()
        assert cache.is_known_channel("fan")
        assert cache.get_channel_states() == {"fan": True}

    def test_first_state_queues_notice(self, bus, cache):
        bus.publish(PowerChannelState("fan", 1))
        bus.dispatch_pending()
        assert cache.take_broadcasts() == ["+PSTATE,fan,1"]

    def test_repeated_state_not_rebroadcast(self, bus, cache):
        bus.publish(PowerChannelState("fan", 1))
        bus.publish(PowerChannelState("fan", 1))
        bus.dispatch_pending()
        assert cache.take_broadcasts() == ["+PSTATE,fan,1"]

    def test_change_queues_notice(self, bus, cache):
        bus.publish(PowerChannelState("fan", 1))
        bus.publish(PowerChannelState("fan", 0))
        bus.dispatch_pending()
        assert cache.take_broadcasts() == ["+PSTATE,fan,1", "+PSTATE,fan,0"]

    def test_update_reports_change(self, cache):
        assert cache.update_channel_state("pump", False) is True
        assert cache.update_channel_state("pump", False) is False
        assert cache.update_channel_state("pump", True) is True


class TestSmsNotices:

    def test_sms_status_without_info(self, bus, cache):
        bus.publish(SmsStatus(req_id=7, status=SmsStatusCode.SENT))
        bus.dispatch_pending()
        assert cache.take_broadcasts() == ["+SMSSTATE,7,1"]

    def test_sms_status_with_info(self, bus, cache):
        bus.publish(SmsStatus(req_id=8, status=SmsStatusCode.ERROR, info="timeout"))
        bus.dispatch_pending()
        assert cache.take_broadcasts() == ["+SMSSTATE,8,102,timeout"]

    def test_sms_status_logged_by_name(self, bus, cache, caplog):
        with caplog.at_level(logging.INFO, logger="utils.gateway_state"):
            bus.publish(SmsStatus(req_id=9, status=SmsStatusCode.INPUT_FAILURE))
            bus.dispatch_pending()
        assert "SMS request 9: INPUT_FAILURE" in caplog.text

    def test_unlisted_sms_status_still_forwarded(self, bus, cache, caplog):
        with caplog.at_level(logging.INFO, logger="utils.gateway_state"):
            bus.publish(SmsStatus(req_id=4, status=55))
            bus.dispatch_pending()
        assert cache.take_broadcasts() == ["+SMSSTATE,4,55"]
        assert "SMS request 4: 55" in caplog.text

    def test_text_message(self, bus, cache):
        bus.publish(TextMessage(origin="+351911111", text="hello"))
        bus.dispatch_pending()
        assert cache.take_broadcasts() == ["+SMSRECV,+351911111,hello"]

    def test_take_clears_queue(self, cache):
        cache.queue_broadcast("a")
        assert cache.take_broadcasts() == ["a"]
        assert cache.take_broadcasts() == []


class TestMessageBus:

    def test_delivers_to_matching_type_only(self, bus):
        temps, pressures = [], []
        bus.subscribe(Temperature, temps.append)
        bus.subscribe(Pressure, pressures.append)
        bus.publish(Temperature(1.0))
        assert bus.dispatch_pending() == 1
        assert temps == [Temperature(1.0)]
        assert pressures == []

    def test_handler_error_does_not_stop_delivery(self, bus):
        received = []

        def broken(msg):
            raise RuntimeError("boom")

        bus.subscribe(Temperature, broken)
        bus.subscribe(Temperature, received.append)
        bus.publish(Temperature(5.0))
        bus.publish(Temperature(6.0))
        bus.dispatch_pending()
        assert received == [Temperature(5.0), Temperature(6.0)]

    def test_unsubscribe(self, bus):
        received = []
        bus.subscribe(Temperature, received.append)
        assert bus.unsubscribe(Temperature, received.append)
        bus.publish(Temperature(1.0))
        bus.dispatch_pending()
        assert received == []

    def test_full_queue_rejects(self):
        bus = MessageBus(max_size=1)
        assert bus.publish(Temperature(1.0))
        assert bus.publish(Temperature(2.0)) is False

    def test_dispatch_thread(self, bus):
        got = threading.Event()
        bus.subscribe(Temperature, lambda msg: got.set())
        bus.start()
        try:
            bus.publish(Temperature(3.0))
            assert got.wait(2.0)
        finally:
            bus.stop()

    def test_concurrent_updates_are_consistent(self, bus, cache):
        """Loop-side reads never fail while the dispatch thread writes."""
        bus.start()
        try:
            for i in range(200):
                bus.publish(Temperature(float(i)))
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline:
                if cache.get_telemetry().temperature == 199.0:
                    break
                time.sleep(0.01)
            assert cache.get_telemetry().temperature == 199.0
        finally:
            bus.stop()
