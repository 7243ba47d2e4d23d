import datetime as dt
import time


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(ms: int) -> str:
    # Millisecond precision, trailing Z (same shape as JavaScript's toISOString)
    d = dt.datetime.fromtimestamp(ms / 1000, tz=dt.timezone.utc)
    return d.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return iso_from_ms(now_ms())
