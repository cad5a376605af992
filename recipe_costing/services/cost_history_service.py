"""
Cost History Service - per-recipe log of cost snapshots.

A CostSnapshotLog is an ordered, newest-first list of CostPoint entries for
one recipe, capped at Config.history_limit (60 by default). Consecutive
snapshots with identical totals are skipped so repeated saves of an
unchanged recipe do not flood the log.

Logs are persisted through a CostHistoryStore, a key-value interface keyed
by recipe id. The stored value is the interop payload:

    {"v": 1, "points": [{"id", "createdAt", "totalCost", "costPerPortion",
                         "portions", "currency"}, ...]}

with createdAt in epoch milliseconds. Reading also accepts the legacy form
(a bare list of points, "cpp" instead of "costPerPortion").

Read-modify-write cycles are serialized per recipe through a module-level
lock registry keyed by (store scope, recipe id). Every CostHistoryService
over the same backing storage shares those locks; different recipes never
wait on each other. Idle locks drop out of the registry.
"""

import json
import logging
import threading
import uuid
import weakref
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipe_costing.models.cost_history import CostHistoryEntry
from recipe_costing.services.database import session_scope
from recipe_costing.services.dto import CostPoint, CostResult, RecipeRecord, RecordId
from recipe_costing.services.exceptions import CostHistoryError
from recipe_costing.services.logging_utils import get_service_logger, log_operation
from recipe_costing.services.pricing_service import PricingResult, price_recipe
from recipe_costing.utils.config import get_config, get_database_url
from recipe_costing.utils.constants import COST_HISTORY_PAYLOAD_VERSION, MONEY_TOLERANCE
from recipe_costing.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)


class _RecipeLock:
    """Mutex for one (store scope, recipe id) pair."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()


_recipe_locks: "weakref.WeakValueDictionary" = weakref.WeakValueDictionary()
_recipe_locks_guard = threading.Lock()


def recipe_lock(store: "CostHistoryStore", recipe_id: RecordId) -> _RecipeLock:
    """
    Lock guarding one recipe's history in one backing storage.

    The entry lives as long as some caller holds the returned lock.
    """
    key = (store.lock_scope, str(recipe_id))
    with _recipe_locks_guard:
        lock = _recipe_locks.get(key)
        if lock is None:
            lock = _RecipeLock()
            _recipe_locks[key] = lock
        return lock


class CostSnapshotLog:
    """
    Newest-first cost history of one recipe.

    Example:
        >>> log = CostSnapshotLog("bread", max_points=60)
        >>> log.add(point)
        True
        >>> log.add(point_with_same_totals)
        False
    """

    def __init__(
        self,
        recipe_id: RecordId,
        points: Iterable[CostPoint] = (),
        max_points: Optional[int] = None,
    ):
        self.recipe_id = recipe_id
        self.max_points = max_points if max_points is not None else get_config().history_limit
        self._points: List[CostPoint] = sorted(points, key=lambda p: p.created_at, reverse=True)
        del self._points[self.max_points :]

    @property
    def points(self) -> List[CostPoint]:
        """Points sorted by created_at, newest first."""
        return list(self._points)

    @property
    def newest(self) -> Optional[CostPoint]:
        return self._points[0] if self._points else None

    def add(self, point: CostPoint) -> bool:
        """
        Add a point unless it repeats the newest point's totals.

        Args:
            point: Snapshot to add

        Returns:
            True if the point is in the log afterwards; False if it was skipped
            as a duplicate or is older than every entry of a full log
        """
        newest = self.newest
        if newest is not None and point.same_totals(newest, MONEY_TOLERANCE):
            return False

        self._points.insert(0, point)
        self._points.sort(key=lambda p: p.created_at, reverse=True)
        del self._points[self.max_points :]
        return any(p is point for p in self._points)

    def remove(self, point_id: str) -> bool:
        """Remove one point. Returns False if no point has that id."""
        for i, point in enumerate(self._points):
            if point.id == point_id:
                del self._points[i]
                return True
        return False

    def clear(self) -> None:
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the interop payload."""
        return {
            "v": COST_HISTORY_PAYLOAD_VERSION,
            "points": [point.to_payload() for point in self._points],
        }

    @classmethod
    def from_payload(
        cls, recipe_id: RecordId, payload: Any, max_points: Optional[int] = None
    ) -> "CostSnapshotLog":
        """
        Parse a stored payload.

        Accepts {"v": 1, "points": [...]}, a legacy bare list, or None (empty
        log). Entries without an id or a valid createdAt are dropped.
        """
        if isinstance(payload, dict):
            raw_points = payload.get("points") or []
        elif isinstance(payload, list):
            raw_points = payload
        else:
            raw_points = []

        points = []
        for raw in raw_points:
            if not isinstance(raw, dict):
                continue
            point = CostPoint.from_payload(raw, recipe_id=recipe_id)
            if point is not None:
                points.append(point)
        return cls(recipe_id, points, max_points=max_points)


# ============================================================================
# Stores
# ============================================================================


class CostHistoryStore:
    """Key-value persistence for cost history payloads, keyed by recipe id."""

    def load(self, recipe_id: RecordId) -> Any:
        """Return the stored payload, or None if nothing is stored."""
        raise NotImplementedError

    def save(self, recipe_id: RecordId, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, recipe_id: RecordId) -> None:
        raise NotImplementedError

    @property
    def lock_scope(self) -> Any:
        """Identity of the backing storage; stores sharing storage share locks."""
        return self


class InMemoryCostHistoryStore(CostHistoryStore):
    """Process-local store; payloads are kept as JSON text like the SQL store."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, recipe_id: RecordId) -> Any:
        with self._lock:
            text = self._data.get(str(recipe_id))
        return json.loads(text) if text is not None else None

    def save(self, recipe_id: RecordId, payload: Dict[str, Any]) -> None:
        text = json.dumps(payload)
        with self._lock:
            self._data[str(recipe_id)] = text

    def delete(self, recipe_id: RecordId) -> None:
        with self._lock:
            self._data.pop(str(recipe_id), None)


class SqlCostHistoryStore(CostHistoryStore):
    """
    Store backed by the cost_history table (one row per recipe).

    Every method accepts an optional session for transaction sharing; without
    one it opens its own session_scope().
    """

    @property
    def lock_scope(self) -> Any:
        return ("sql", get_database_url())

    def load(self, recipe_id: RecordId, session: Session = None) -> Any:
        if session is not None:
            return self._load_impl(recipe_id, session)
        try:
            with session_scope() as session:
                return self._load_impl(recipe_id, session)
        except SQLAlchemyError as e:
            raise CostHistoryError(recipe_id, "failed to load history", original_error=e)

    def _load_impl(self, recipe_id: RecordId, session: Session) -> Any:
        entry = session.query(CostHistoryEntry).filter_by(recipe_key=str(recipe_id)).first()
        if entry is None:
            return None
        payload = entry.get_payload()
        if payload is None:
            logger.warning(f"Cost history for recipe {recipe_id} is not valid JSON, starting empty")
        return payload

    def save(self, recipe_id: RecordId, payload: Dict[str, Any], session: Session = None) -> None:
        if session is not None:
            self._save_impl(recipe_id, payload, session)
            return
        try:
            with session_scope() as session:
                self._save_impl(recipe_id, payload, session)
        except SQLAlchemyError as e:
            raise CostHistoryError(recipe_id, "failed to save history", original_error=e)

    def _save_impl(self, recipe_id: RecordId, payload: Dict[str, Any], session: Session) -> None:
        text = json.dumps(payload)
        entry = session.query(CostHistoryEntry).filter_by(recipe_key=str(recipe_id)).first()
        if entry is None:
            session.add(CostHistoryEntry(recipe_key=str(recipe_id), payload=text))
        else:
            entry.payload = text
            entry.updated_at = utc_now()
        session.flush()

    def delete(self, recipe_id: RecordId, session: Session = None) -> None:
        if session is not None:
            self._delete_impl(recipe_id, session)
            return
        try:
            with session_scope() as session:
                self._delete_impl(recipe_id, session)
        except SQLAlchemyError as e:
            raise CostHistoryError(recipe_id, "failed to delete history", original_error=e)

    def _delete_impl(self, recipe_id: RecordId, session: Session) -> None:
        session.query(CostHistoryEntry).filter_by(recipe_key=str(recipe_id)).delete()


# ============================================================================
# Service
# ============================================================================


class CostHistoryService:
    """
    Records and reads cost snapshots through a CostHistoryStore.

    Args:
        store: Payload store (default: SqlCostHistoryStore)
        max_points: Points kept per recipe (default: Config.history_limit)
    """

    def __init__(self, store: Optional[CostHistoryStore] = None, max_points: Optional[int] = None):
        self.store = store if store is not None else SqlCostHistoryStore()
        self.max_points = max_points if max_points is not None else get_config().history_limit

    def _lock_for(self, recipe_id: RecordId) -> _RecipeLock:
        return recipe_lock(self.store, recipe_id)

    def _read_log(self, recipe_id: RecordId) -> CostSnapshotLog:
        return CostSnapshotLog.from_payload(
            recipe_id, self.store.load(recipe_id), max_points=self.max_points
        )

    def get_log(self, recipe_id: RecordId) -> CostSnapshotLog:
        """Load the current history of a recipe."""
        with self._lock_for(recipe_id):
            return self._read_log(recipe_id)

    def list_points(self, recipe_id: RecordId) -> List[CostPoint]:
        """Cost points of a recipe, newest first."""
        return self.get_log(recipe_id).points

    def add_point(self, recipe_id: RecordId, point: CostPoint) -> bool:
        """
        Append a point to a recipe's history.

        Returns:
            True if stored, False if the totals did not change or the point is
            older than every entry of a full history
        """
        with self._lock_for(recipe_id):
            log = self._read_log(recipe_id)
            added = log.add(point)
            if added:
                self.store.save(recipe_id, log.to_payload())

        log_operation(
            logger,
            operation="record_snapshot",
            outcome="success" if added else "skipped",
            level=logging.INFO if added else logging.DEBUG,
            recipe_id=recipe_id,
            point_id=point.id,
            total_cost=point.total_cost,
        )
        return added

    def record_snapshot(
        self,
        recipe: RecipeRecord,
        cost_result: CostResult,
        pricing: Optional[PricingResult] = None,
        created_at: Optional[datetime] = None,
    ) -> Tuple[CostPoint, bool]:
        """
        Build a CostPoint from a fresh computation and add it to the history.

        Args:
            recipe: Recipe the cost belongs to
            cost_result: Aggregated cost of the recipe
            pricing: Pricing metrics (computed from recipe and cost_result if omitted)
            created_at: Snapshot time (default: now, UTC)

        Returns:
            Tuple of (point, added)
        """
        if pricing is None:
            pricing = price_recipe(recipe, cost_result)

        portions = pricing.portions
        if float(portions).is_integer():
            portions = int(portions)

        point = CostPoint(
            id=str(uuid.uuid4()),
            recipe_id=recipe.id,
            created_at=created_at or utc_now(),
            total_cost=cost_result.total_cost,
            cost_per_portion=pricing.cost_per_portion,
            portions=portions,
            currency=pricing.currency,
        )
        return point, self.add_point(recipe.id, point)

    def delete_point(self, recipe_id: RecordId, point_id: str) -> bool:
        """Delete one point. Returns False if it did not exist."""
        with self._lock_for(recipe_id):
            log = self._read_log(recipe_id)
            removed = log.remove(point_id)
            if removed:
                self.store.save(recipe_id, log.to_payload())

        log_operation(
            logger,
            operation="delete_point",
            outcome="success" if removed else "not_found",
            recipe_id=recipe_id,
            point_id=point_id,
        )
        return removed

    def clear_history(self, recipe_id: RecordId) -> None:
        """Remove every point of a recipe."""
        with self._lock_for(recipe_id):
            self.store.delete(recipe_id)
        log_operation(logger, operation="clear_history", outcome="success", recipe_id=recipe_id)
