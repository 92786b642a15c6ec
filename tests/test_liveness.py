"""
Tests for the liveness monitor (pure step function and engine wiring).
"""
from pledge.codec import Accept, Ping, Pong
from pledge.liveness import LivenessMonitor, LivenessRecord
from pledge.protocol import (
    Connected,
    Disconnected,
    HeartbeatTick,
    MessageReceived,
    SendMessage,
    StartHeartbeat,
    StopHeartbeat,
    AppNotify,
    PeerState,
)


NOW = 5_000_000


def running(now=NOW, interval=30_000, timeout=120_000):
    record, _ = LivenessMonitor.step(
        LivenessRecord(heartbeat_interval_ms=interval, heartbeat_timeout_ms=timeout),
        Connected(now_ms=now),
    )
    return record


class TestLivenessStep:

    def test_connect_starts_heartbeat(self):
        record, actions = LivenessMonitor.step(LivenessRecord(), Connected(now_ms=NOW))
        assert record.running
        assert record.last_heartbeat_observed_at_ms == NOW
        assert StartHeartbeat(30_000) in actions

    def test_tick_sends_ping_and_records_it(self):
        record, actions = LivenessMonitor.step(running(), HeartbeatTick(now_ms=NOW + 30_000))
        assert [a.message for a in actions if isinstance(a, SendMessage)] == [Ping(NOW + 30_000)]
        assert record.last_heartbeat_observed_at_ms == NOW + 30_000
        assert not record.stale

    def test_ping_gets_pong(self):
        record, actions = LivenessMonitor.step(running(), MessageReceived(now_ms=NOW + 10, message=Ping(1)))
        assert [a.message for a in actions if isinstance(a, SendMessage)] == [Pong(NOW + 10)]
        assert record.last_peer_heartbeat_at_ms == NOW + 10

    def test_pong_is_recorded_without_reply(self):
        record, actions = LivenessMonitor.step(running(), MessageReceived(now_ms=NOW + 10, message=Pong(1)))
        assert actions == []
        assert record.last_heartbeat_observed_at_ms == NOW + 10
        assert record.last_peer_heartbeat_at_ms == NOW + 10

    def test_other_messages_ignored(self):
        record = running()
        assert LivenessMonitor.step(record, MessageReceived(now_ms=NOW, message=Accept())) == (record, [])

    def test_stale_reported_once(self):
        record = running()
        record, actions = LivenessMonitor.step(record, HeartbeatTick(now_ms=NOW + 120_001))
        assert record.stale
        stale = [a for a in actions if isinstance(a, AppNotify)]
        assert stale == [AppNotify("connection_stale", {"silent_ms": 120_001})]

        record, actions = LivenessMonitor.step(record, HeartbeatTick(now_ms=NOW + 150_001))
        assert record.stale
        assert not any(isinstance(a, AppNotify) for a in actions)

    def test_recovery_after_stale(self):
        record, _ = LivenessMonitor.step(running(), HeartbeatTick(now_ms=NOW + 200_000))
        record, actions = LivenessMonitor.step(record, MessageReceived(now_ms=NOW + 200_001, message=Pong(1)))
        assert not record.stale
        assert AppNotify("connection_recovered", {}) in actions

    def test_disconnect_clears_record(self):
        record, actions = LivenessMonitor.step(running(), Disconnected(now_ms=NOW))
        assert actions == [StopHeartbeat()]
        assert record == LivenessRecord()

    def test_ignores_events_when_not_running(self):
        record = LivenessRecord()
        assert LivenessMonitor.step(record, HeartbeatTick(now_ms=NOW)) == (record, [])
        assert LivenessMonitor.step(record, MessageReceived(now_ms=NOW, message=Ping(1))) == (record, [])


class TestLivenessInEngine:

    def test_heartbeat_pings_periodically(self, engine, channel, timers):
        timers.advance(90_000)
        assert [m for m in channel.messages if isinstance(m, Ping)] == [
            Ping(engine.liveness.last_heartbeat_observed_at_ms - 60_000),
            Ping(engine.liveness.last_heartbeat_observed_at_ms - 30_000),
            Ping(engine.liveness.last_heartbeat_observed_at_ms),
        ]

    def test_staleness_is_advisory(self, engine, channel, timers, clock):
        stale = []
        engine.on_connection_stale = stale.append
        engine.initiate(60 * 60_000)

        timers.advance(150_000)

        assert stale == [150_000]
        assert engine.is_connected
        assert engine.peer_state == PeerState.PENDING_OUTGOING

    def test_peer_pings_keep_connection_fresh(self, engine, channel, timers, clock):
        stale = []
        engine.on_connection_stale = stale.append
        for _ in range(10):
            timers.advance(30_000)
            engine.on_receive(b'{"type":"PING","ts":1}')
        assert stale == []
        assert Pong(clock()) in channel.messages

    def test_disconnect_stops_heartbeat(self, engine, channel, timers):
        engine.on_disconnected("gone")
        channel.clear()
        timers.advance(300_000)
        assert channel.sent == []
        assert timers.pending == []
