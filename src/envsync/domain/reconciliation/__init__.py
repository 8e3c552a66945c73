"""Reconciliation core for declared environment entries.

Layered flow of one cycle:
1) validate declared entries (and the team's sensitivity policy)
2) correlate recorded entries with the live snapshot
3) diff declared/recorded/live into an operation plan, using stored
   fingerprints for write-only values
4) apply the plan: deletions, settling, one batched create
5) persist the new recorded state and fingerprint updates
"""

from __future__ import annotations

from .correlate import Correlation, CorrelationNote, correlate_live, refresh_recorded_state
from .drift import DriftDetector, fingerprint
from .engine import CycleResult, ReconciliationEngine, apply_fingerprint_updates
from .errors import (
    EntryValidationError,
    ReconciliationCancelled,
    ReconciliationError,
    RemoteCallFailure,
    RemoteEntryNotFoundError,
    SettlingTimeout,
    SubjectNotFoundError,
)
from .plan import OperationPlan, reconcile
from .sequence import (
    ChangeSequencer,
    ConsistencyProbeSettling,
    FixedDelaySettling,
    SettlingPolicy,
)
from .validate import check_sensitive_policy, validate_declared

__all__ = [
    "ChangeSequencer",
    "ConsistencyProbeSettling",
    "Correlation",
    "CorrelationNote",
    "CycleResult",
    "DriftDetector",
    "EntryValidationError",
    "FixedDelaySettling",
    "OperationPlan",
    "ReconciliationCancelled",
    "ReconciliationEngine",
    "ReconciliationError",
    "RemoteCallFailure",
    "RemoteEntryNotFoundError",
    "SettlingPolicy",
    "SettlingTimeout",
    "SubjectNotFoundError",
    "apply_fingerprint_updates",
    "check_sensitive_policy",
    "correlate_live",
    "fingerprint",
    "reconcile",
    "refresh_recorded_state",
    "validate_declared",
]
