"""Behavioral fingerprint engine.

Turns a stream of interaction timestamps into timing statistics that separate
human-paced authoring from automation, then into a privacy-minimized process digest.
Only event kinds and millisecond timestamps are held; never text or keystrokes.

Two statistics drive the decision:
  * entropy: Shannon entropy of inter-event intervals bucketed into 100 ms bins,
    normalized by a 6-bit ceiling;
  * temporal coherence: the coefficient of variation of the intervals mapped onto a
    human-likeness score. Very regular timing (cv < 0.3) and very erratic timing
    (cv > 1.0) both score low.
"""
from __future__ import annotations

import logging
import math
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ..api.models import HumanThresholds, ProcessMetrics
from ..clock import iso_from_ms, now_ms
from ..receipts.digest import hash_bytes
from ..receipts.jcs import canonicalize_json

MAX_EVENTS = 10_000
RETAIN_EVENTS = 5_000  # kept (most recent) once MAX_EVENTS is exceeded
BUCKET_MS = 100
ENTROPY_CEILING_BITS = 6.0

DEFAULT_THRESHOLDS = HumanThresholds()


@dataclass(frozen=True)
class ProcessEvent:
    kind: str
    timestamp: int


@dataclass
class ProcessSession:
    started_at: int
    events: list[ProcessEvent] = field(default_factory=list)

    def timestamps(self) -> list[int]:
        return [e.timestamp for e in self.events]


@dataclass(frozen=True)
class ProcessEvidence:
    digest: str
    metrics: ProcessMetrics


def _round_half_up(x: float, ndigits: int = 0) -> float:
    scale = 10 ** ndigits
    return math.floor(x * scale + 0.5) / scale


def intervals(timestamps: Sequence[int]) -> list[int]:
    """Positive gaps between consecutive timestamps; zero/negative gaps are dropped."""
    out = []
    for prev, cur in zip(timestamps, timestamps[1:]):
        gap = cur - prev
        if gap > 0:
            out.append(gap)
    return out


def shannon_entropy(gaps: Sequence[int]) -> float:
    if not gaps:
        return 0.0
    buckets = Counter(g // BUCKET_MS for g in gaps)
    total = len(gaps)
    h = 0.0
    for count in buckets.values():
        p = count / total
        h -= p * math.log2(p)
    return min(max(h / ENTROPY_CEILING_BITS, 0.0), 1.0)


def _mean_stddev(gaps: Sequence[int]) -> tuple[float, float]:
    mean = sum(gaps) / len(gaps)
    variance = sum((g - mean) ** 2 for g in gaps) / len(gaps)
    return mean, math.sqrt(variance)


def temporal_coherence(gaps: Sequence[int]) -> float:
    if not gaps:
        return 0.0
    mean, stddev = _mean_stddev(gaps)
    if mean == 0:
        return 0.0
    cv = stddev / mean
    if cv < 0.3:
        return 0.3
    if cv > 1.0:
        return 0.2
    return 0.3 + (cv - 0.3) * 0.4 / 0.7


def meets_thresholds(metrics: ProcessMetrics, thresholds: HumanThresholds = DEFAULT_THRESHOLDS) -> bool:
    duration = metrics.duration_ms
    input_rate = metrics.event_count / (duration / 1000) if duration > 0 else 0.0
    return (
        duration >= thresholds.min_duration_ms
        and metrics.entropy >= thresholds.min_entropy
        and metrics.temporal_coherence >= thresholds.min_temporal_coherence
        and input_rate <= thresholds.max_input_rate
        and metrics.min_interval_ms >= thresholds.min_event_interval_ms
    )


def compute_metrics(
    session: ProcessSession,
    now: int,
    thresholds: HumanThresholds = DEFAULT_THRESHOLDS,
) -> ProcessMetrics:
    gaps = intervals(session.timestamps())
    avg = stddev = 0.0
    if gaps:
        avg, stddev = _mean_stddev(gaps)
    metrics = ProcessMetrics(
        session_start=iso_from_ms(session.started_at),
        session_end=iso_from_ms(now),
        duration_ms=max(now - session.started_at, 0),
        entropy=shannon_entropy(gaps),
        temporal_coherence=temporal_coherence(gaps),
        event_count=len(session.events),
        timing_variance_ms=stddev,
        avg_interval_ms=avg,
        min_interval_ms=min(gaps) if gaps else 0,
        max_interval_ms=max(gaps) if gaps else 0,
    )
    return metrics.model_copy(update={"meets_thresholds": meets_thresholds(metrics, thresholds)})


def process_digest(metrics: ProcessMetrics) -> str:
    """Hash the privacy-minimized subset of the metrics (no timestamps, no content)."""
    digest_data = {
        "duration": metrics.duration_ms,
        "entropy": _round_half_up(metrics.entropy, 3),
        "temporalCoherence": _round_half_up(metrics.temporal_coherence, 3),
        "inputEvents": metrics.event_count,
        "timingVariance": int(_round_half_up(metrics.timing_variance_ms)),
        "averageInterval": int(_round_half_up(metrics.avg_interval_ms)),
        "minInterval": metrics.min_interval_ms,
        "maxInterval": metrics.max_interval_ms,
    }
    return hash_bytes(canonicalize_json(digest_data))


class ProcessTracker:
    """Single-writer capture of one authoring session."""

    def __init__(
        self,
        thresholds: Optional[HumanThresholds] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self._clock = clock or now_ms
        self._lock = threading.Lock()
        self.session: Optional[ProcessSession] = None
        self.is_tracking = False

    def start_session(self) -> None:
        with self._lock:
            self._start_locked()

    def _start_locked(self) -> None:
        if self.is_tracking:
            return
        self.session = ProcessSession(started_at=self._clock())
        self.is_tracking = True
        logging.debug("Process session started at %s", self.session.started_at)

    def record_event(self, kind: str = "input") -> None:
        with self._lock:
            if not self.is_tracking:
                self._start_locked()
            events = self.session.events
            events.append(ProcessEvent(kind=kind, timestamp=self._clock()))
            if len(events) > MAX_EVENTS:
                del events[:-RETAIN_EVENTS]

    def stop(self) -> None:
        with self._lock:
            self.is_tracking = False

    def reset(self) -> None:
        with self._lock:
            self.session = None
            self.is_tracking = False

    def session_duration_ms(self) -> int:
        if self.session is None:
            return 0
        return self._clock() - self.session.started_at

    def event_count(self) -> int:
        return len(self.session.events) if self.session else 0

    def metrics(self) -> Optional[ProcessMetrics]:
        if not self.is_tracking or self.session is None:
            return None
        return compute_metrics(self.session, self._clock(), self.thresholds)

    def evidence(self) -> Optional[ProcessEvidence]:
        m = self.metrics()
        if m is None:
            return None
        return ProcessEvidence(digest=process_digest(m), metrics=m)
