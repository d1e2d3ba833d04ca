"""
reconciler.py
- Reconcile decision procedure for a single node:
    fetch -> short-circuit -> inventory lookup -> diff -> conditional write.
- Every path ends in a ReconcileOutcome that tells the driver when to look again.
- Holds no per-node state, so one instance serves all worker threads.
"""

import threading
import time
from dataclasses import dataclass, fields, replace
from typing import Optional

from loguru import logger

from node_labeler.core import constants
from node_labeler.core.errors import (
    InventoryLookupError,
    InvocationCancelled,
    NodeReadError,
    NodeWriteError,
    WriteConflictError,
)
from node_labeler.lib import metrics
from node_labeler.lib.sync.label_policy import diff_labels, has_all_labels, merge_labels


@dataclass(frozen=True)
class RequeueIntervals:
    """Seconds until the next reconcile, per terminal state."""

    synced: float = constants.SYNCED_REQUEUE
    unchanged: float = constants.UNCHANGED_REQUEUE
    updated: float = constants.UPDATED_REQUEUE
    lookup_error: float = constants.LOOKUP_ERROR_REQUEUE
    write_error: float = constants.WRITE_ERROR_REQUEUE

    @classmethod
    def from_config(cls, config):
        """
        Build intervals from the `requeue` section of labeler.yml.

        Unknown keys and non-positive values are ignored with a warning so a
        typo never disables requeueing.
        """
        section = (config or {}).get("requeue") or {}
        if not isinstance(section, dict):
            logger.warning(f"[config] 'requeue' must be a mapping, got {type(section).__name__}; using defaults.")
            return cls()

        known = {f.name for f in fields(cls)}
        overrides = {}
        for key, value in section.items():
            if key not in known:
                logger.warning(f"[config] Unknown requeue interval '{key}' ignored.")
                continue
            try:
                seconds = float(value)
            except (TypeError, ValueError):
                logger.warning(f"[config] requeue.{key}={value!r} is not a number; keeping default.")
                continue
            if seconds <= 0:
                logger.warning(f"[config] requeue.{key} must be positive; keeping default.")
                continue
            overrides[key] = seconds
        return replace(cls(), **overrides)


@dataclass(frozen=True)
class ReconcileOutcome:
    updated: bool = False
    requeue_after: Optional[float] = None
    error: Optional[Exception] = None


class ReconcileContext:
    """Cancellation and deadline for one reconcile invocation."""

    def __init__(self, stop_event=None, timeout=None):
        self.stop_event = stop_event or threading.Event()
        self.deadline = None if timeout is None else time.monotonic() + timeout

    def cancelled(self):
        if self.stop_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self):
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)


class Reconciler:
    """
    Labels one node from its Nautobot device record.

    Args:
        store: NodeStore-like object with get(name) and update(node).
        inventory: NautobotClient-like object with get_device_data(name, timeout=None).
        intervals (RequeueIntervals): Requeue cadence; may be swapped at runtime.
        dry_run (bool): Log the labels that would be written instead of writing.
    """

    def __init__(self, store, inventory, intervals=None, dry_run=False):
        self.store = store
        self.inventory = inventory
        self.intervals = intervals or RequeueIntervals()
        self.dry_run = dry_run

    def reconcile(self, name, ctx=None):
        ctx = ctx or ReconcileContext()
        start = time.monotonic()
        try:
            outcome, result = self._reconcile(name, ctx)
        finally:
            metrics.reconcile_duration_seconds.observe(time.monotonic() - start)
        metrics.reconcile_total.labels(result=result).inc()
        return outcome

    def _reconcile(self, name, ctx):
        # Read once so a config reload mid-invocation cannot mix cadences
        intervals = self.intervals
        logger.info(f"[reconcile] Reconciling node {name}")

        if ctx.cancelled():
            return self._cancelled(name, "before fetch"), "cancelled"

        # 1. Fetch
        try:
            node = self.store.get(name)
        except NodeReadError as e:
            logger.error(f"[reconcile] {e}")
            return ReconcileOutcome(requeue_after=intervals.write_error, error=e), "read_error"
        if node is None:
            logger.info(f"[reconcile] Node {name} no longer exists, nothing to do.")
            return ReconcileOutcome(), "not_found"

        labels = node.metadata.labels or {}

        # 2. Short-circuit
        if has_all_labels(labels):
            logger.info(f"[reconcile] Node {name} already has all required labels.")
            return ReconcileOutcome(requeue_after=intervals.synced), "synced"

        if ctx.cancelled():
            return self._cancelled(name, "before lookup"), "cancelled"

        # 3. Lookup
        try:
            record = self.inventory.get_device_data(name, timeout=ctx.remaining())
        except InventoryLookupError as e:
            logger.error(f"[reconcile] Failed to get device data from Nautobot for {name}: {e}")
            return ReconcileOutcome(requeue_after=intervals.lookup_error, error=e), "lookup_error"

        # 4. Diff
        diff = diff_labels(labels, record)
        if not diff:
            logger.info(f"[reconcile] No label updates needed for {name}.")
            return ReconcileOutcome(requeue_after=intervals.unchanged), "unchanged"

        # 5. Write
        merged = merge_labels(labels, diff)
        if self.dry_run:
            logger.info(f"[reconcile] (Dry Run) Would update {name} → {diff}")
            return ReconcileOutcome(requeue_after=intervals.updated), "dry_run"

        if ctx.cancelled():
            return self._cancelled(name, "before write"), "cancelled"

        node.metadata.labels = merged
        logger.info(
            f"[reconcile] Updating node labels for {name}: "
            f"site='{record.site_name}' rack='{record.rack_name}' changes={diff}"
        )
        try:
            self.store.update(node)
        except WriteConflictError as e:
            logger.warning(f"[reconcile] Node {name} changed since it was read; retrying later.")
            return ReconcileOutcome(requeue_after=intervals.write_error, error=e), "write_conflict"
        except NodeWriteError as e:
            logger.error(f"[reconcile] Failed to update node labels: {e}")
            return ReconcileOutcome(requeue_after=intervals.write_error, error=e), "write_error"

        metrics.label_updates_total.inc()
        logger.info(f"[reconcile] ✅ Labeled {name}")
        return ReconcileOutcome(updated=True, requeue_after=intervals.updated), "updated"

    @staticmethod
    def _cancelled(name, stage):
        logger.warning(f"[reconcile] Invocation for {name} cancelled {stage}.")
        return ReconcileOutcome(error=InvocationCancelled(f"reconcile of {name} cancelled {stage}"))
