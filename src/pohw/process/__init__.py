from .tracker import (  # noqa: F401
    ProcessEvidence,
    ProcessTracker,
    compute_metrics,
    meets_thresholds,
    process_digest,
)
