import threading

from pohw.api.models import HumanThresholds, ProcessMetrics
from pohw.process.tracker import (
    MAX_EVENTS,
    RETAIN_EVENTS,
    ProcessTracker,
    intervals,
    process_digest,
    shannon_entropy,
    temporal_coherence,
)
from pohw.receipts.digest import hash_bytes

HUMAN_GAPS = [120, 340, 560, 210, 900, 450, 130, 700]


class FakeClock:
    def __init__(self, t=0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, ms):
        self.t += ms


def _replay(gaps, start=1_700_000_000_000):
    clock = FakeClock(start)
    tracker = ProcessTracker(clock=clock)
    tracker.start_session()
    for gap in gaps:
        clock.advance(gap)
        tracker.record_event("keydown")
    return tracker, clock


def test_human_paced_session_meets_thresholds():
    tracker, _ = _replay(HUMAN_GAPS * 12)
    m = tracker.metrics()
    assert m.duration_ms == sum(HUMAN_GAPS) * 12
    assert m.event_count == 96
    assert 0.0 <= m.entropy <= 1.0
    assert m.entropy >= 0.3
    assert m.temporal_coherence >= 0.2
    assert m.min_interval_ms == 120
    assert m.max_interval_ms == 900
    assert m.meets_thresholds


def test_machine_speed_input_fails_thresholds():
    tracker, _ = _replay([10] * 4000)
    m = tracker.metrics()
    assert m.duration_ms >= 30_000
    assert m.min_interval_ms == 10
    assert m.entropy == 0.0
    assert not m.meets_thresholds


def test_short_session_fails_thresholds():
    tracker, _ = _replay(HUMAN_GAPS)
    assert not tracker.metrics().meets_thresholds


def test_custom_thresholds():
    clock = FakeClock()
    tracker = ProcessTracker(thresholds=HumanThresholds(min_duration_ms=1000), clock=clock)
    tracker.start_session()
    for gap in HUMAN_GAPS:
        clock.advance(gap)
        tracker.record_event()
    assert tracker.metrics().meets_thresholds


def test_fewer_than_two_events():
    tracker, _ = _replay([500])
    m = tracker.metrics()
    assert m.event_count == 1
    assert m.entropy == 0.0
    assert m.temporal_coherence == 0.0
    assert m.min_interval_ms == 0


def test_duration_is_monotone():
    tracker, clock = _replay([200, 300])
    first = tracker.session_duration_ms()
    clock.advance(50)
    assert tracker.session_duration_ms() >= first
    assert tracker.metrics().duration_ms == first + 50


def test_metrics_only_while_tracking():
    clock = FakeClock()
    tracker = ProcessTracker(clock=clock)
    assert tracker.metrics() is None
    assert tracker.evidence() is None
    tracker.record_event()  # starts a session implicitly
    assert tracker.is_tracking
    assert tracker.event_count() == 1
    tracker.stop()
    assert tracker.metrics() is None
    tracker.reset()
    assert tracker.session is None
    assert tracker.event_count() == 0
    assert tracker.session_duration_ms() == 0


def test_stop_waits_for_in_flight_record():
    clock = FakeClock()
    tracker = ProcessTracker(clock=clock)
    tracker.start_session()
    # a writer holding the session lock keeps stop() from flipping the flag mid-update
    tracker._lock.acquire()
    stopper = threading.Thread(target=tracker.stop)
    stopper.start()
    stopper.join(timeout=0.2)
    assert stopper.is_alive()
    assert tracker.is_tracking
    tracker._lock.release()
    stopper.join(timeout=5)
    assert not stopper.is_alive()
    assert not tracker.is_tracking


def test_event_buffer_is_trimmed():
    clock = FakeClock()
    tracker = ProcessTracker(clock=clock)
    for _ in range(MAX_EVENTS + 1):
        clock.advance(100)
        tracker.record_event()
    assert tracker.event_count() == RETAIN_EVENTS
    assert tracker.session.events[-1].timestamp == clock.t


def test_zero_gaps_are_dropped():
    assert intervals([0, 0, 100, 100, 250]) == [100, 150]


def test_entropy_and_coherence_bounds():
    assert shannon_entropy([]) == 0.0
    assert shannon_entropy([50] * 20) == 0.0
    wide = [i * 100 for i in range(1, 200)]
    assert shannon_entropy(wide) == 1.0  # capped
    assert temporal_coherence([100] * 10) == 0.3
    assert temporal_coherence([1, 1, 1, 1000]) == 0.2


def _metrics(**kw):
    base = dict(
        duration_ms=40000,
        entropy=0.45678,
        temporal_coherence=0.5,
        event_count=100,
        timing_variance_ms=263.4,
        avg_interval_ms=426.5,
        min_interval_ms=120,
        max_interval_ms=900,
    )
    base.update(kw)
    return ProcessMetrics(**base)


def test_process_digest_contents():
    expected = (
        b'{"averageInterval":427,"duration":40000,"entropy":0.457,"inputEvents":100,'
        b'"maxInterval":900,"minInterval":120,"temporalCoherence":0.5,"timingVariance":263}'
    )
    assert process_digest(_metrics()) == hash_bytes(expected)


def test_process_digest_ignores_timestamps():
    a = _metrics(session_start="2024-01-01T00:00:00.000Z")
    b = _metrics(session_start="2025-06-01T12:00:00.000Z")
    assert process_digest(a) == process_digest(b)
    assert process_digest(a) != process_digest(_metrics(event_count=101))


def test_evidence_digest_matches_metrics():
    tracker, _ = _replay(HUMAN_GAPS * 12)
    ev = tracker.evidence()
    assert ev.digest == process_digest(ev.metrics)
    assert ev.digest.startswith("0x") and len(ev.digest) == 66
