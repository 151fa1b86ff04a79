"""
Ranking Engine - stack positions for backlog items

Keeps the PBIs of every client in a dense 1-based order (1..N, no gaps, no
duplicates) across append, delete, single-item move and bulk reorder.

Transaction model:
- Each operation runs in one database transaction and either commits fully
  or rolls back; a partial shift is never committed.
- The owning client row is locked (SELECT ... FOR UPDATE) before positions
  are read, so ranking operations on one client serialize on PostgreSQL.
  SQLite ignores the lock clause and serializes writers on its own.
- (client_id, stack_position) is unique and checked row by row. A moved
  item is parked at SENTINEL_POSITION and every shifted range is first
  negated, so no intermediate row state ever collides.
- IntegrityError and serialization/deadlock failures roll back and retry the
  whole operation (RANKING_MAX_RETRIES); once retries run out the caller
  gets a Conflict.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, TypeVar

from flask import current_app, has_app_context
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from models import db, Client, Pbi
from services.backlog_errors import (
    BacklogError,
    Conflict,
    EmptyInput,
    InvalidArgument,
    NotFound,
    StorageError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SENTINEL_POSITION = 0
DEFAULT_MAX_RETRIES = 3

# PostgreSQL SQLSTATEs for serialization_failure and deadlock_detected
_RETRYABLE_PGCODES = {"40001", "40P01"}
_RETRYABLE_MESSAGES = ("could not serialize", "deadlock detected", "database is locked")


@dataclass
class MoveResult:
    """Outcome of a single-item reorder."""
    pbi_id: str
    client_id: str
    old_position: int
    new_position: int

    @property
    def moved(self) -> bool:
        return self.old_position != self.new_position


@dataclass
class DensityReport:
    """Gaps and duplicates found in one client's stack positions."""
    client_id: str
    count: int
    missing: List[int] = field(default_factory=list)
    duplicates: List[int] = field(default_factory=list)
    out_of_range: List[int] = field(default_factory=list)

    @property
    def is_dense(self) -> bool:
        return not (self.missing or self.duplicates or self.out_of_range)

    def to_dict(self):
        return {
            'client_id': self.client_id,
            'count': self.count,
            'is_dense': self.is_dense,
            'missing': self.missing,
            'duplicates': self.duplicates,
            'out_of_range': self.out_of_range,
        }


def _max_retries() -> int:
    if has_app_context():
        return max(1, int(current_app.config.get('RANKING_MAX_RETRIES', DEFAULT_MAX_RETRIES)))
    return DEFAULT_MAX_RETRIES


def _is_retryable(error: SQLAlchemyError) -> bool:
    """Uniqueness violations and transient serialization failures are worth another attempt."""
    if isinstance(error, IntegrityError):
        return True
    if isinstance(error, OperationalError):
        orig = getattr(error, 'orig', None)
        if getattr(orig, 'pgcode', None) in _RETRYABLE_PGCODES:
            return True
        message = str(orig or error).lower()
        return any(marker in message for marker in _RETRYABLE_MESSAGES)
    return False


def run_ranking_transaction(operation: Callable[[], T], label: str) -> T:
    """
    Run `operation` and commit, retrying the whole unit on conflicts.

    The operation must re-read everything it needs on every call; nothing
    computed in a failed attempt is reused.
    """
    attempts = _max_retries()
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.session.commit()
            return result
        except BacklogError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            if not _is_retryable(e):
                logger.error(f"[RANKING] {label} failed: {e}", exc_info=True)
                raise StorageError(f"Failed to {label}") from e
            if attempt < attempts:
                logger.warning(f"[RANKING] {label} conflicted (attempt {attempt}/{attempts}), retrying: {e}")
                continue
            logger.error(f"[RANKING] {label} still conflicting after {attempts} attempts: {e}")
            raise Conflict(
                f"Could not {label} because of concurrent changes, please retry",
                context={'attempts': attempts},
            ) from e

    raise Conflict(f"Could not {label}")  # pragma: no cover


def _lock_client(client_id: str) -> None:
    locked = db.session.execute(
        select(Client.id).where(Client.id == client_id).with_for_update()
    ).scalar_one_or_none()
    if locked is None:
        raise NotFound("Client not found", context={'client_id': client_id})


def _locate_pbi(pbi_id: str, client_id: Optional[str] = None) -> Pbi:
    """Lock the owning client, then load the PBI fresh from the store."""
    owner_id = db.session.scalar(select(Pbi.client_id).where(Pbi.id == pbi_id))
    # A PBI of another client is reported exactly like a missing one
    if owner_id is None or (client_id is not None and owner_id != client_id):
        raise NotFound("PBI not found", context={'pbi_id': pbi_id})

    _lock_client(owner_id)

    pbi = db.session.execute(
        select(Pbi).where(Pbi.id == pbi_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if pbi is None:
        raise NotFound("PBI not found", context={'pbi_id': pbi_id})
    return pbi


def max_position(client_id: str) -> int:
    """Highest stack position of a client, 0 for an empty backlog."""
    return db.session.scalar(
        select(func.max(Pbi.stack_position)).where(Pbi.client_id == client_id)
    ) or 0


def _set_position(pbi_id: str, position: int) -> None:
    db.session.execute(
        update(Pbi)
        .where(Pbi.id == pbi_id)
        .values(stack_position=position)
        .execution_options(synchronize_session=False)
    )


def _shift_range(client_id: str, lower: int, upper: int, delta: int) -> None:
    """
    Add `delta` to every position in [lower, upper] of one client.

    Runs in two statements: negate the range, then write back `delta - value`.
    Negative values never collide with live positions, and the written-back
    targets are free because the slot they move into was vacated first.
    """
    if lower > upper:
        return

    db.session.execute(
        update(Pbi)
        .where(
            Pbi.client_id == client_id,
            Pbi.stack_position >= lower,
            Pbi.stack_position <= upper,
        )
        .values(stack_position=-Pbi.stack_position)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(
        update(Pbi)
        .where(
            Pbi.client_id == client_id,
            Pbi.stack_position <= -lower,
            Pbi.stack_position >= -upper,
        )
        .values(stack_position=delta - Pbi.stack_position)
        .execution_options(synchronize_session=False)
    )


def _quarantine_client(client_id: str) -> None:
    """Negate every position of a client so 1..N are free to be reassigned."""
    db.session.execute(
        update(Pbi)
        .where(Pbi.client_id == client_id, Pbi.stack_position > 0)
        .values(stack_position=-Pbi.stack_position)
        .execution_options(synchronize_session=False)
    )


def clamp_position(requested: int, current_max: int) -> int:
    """Clamp a requested (possibly out-of-range) position into 1..current_max."""
    return max(1, min(requested, max(current_max, 1)))


def append_pbi(client_id: str, **fields) -> Pbi:
    """
    Insert a PBI at the bottom of its client's backlog.

    The max+1 aggregate and the INSERT share one transaction. Two concurrent
    appends computing the same position are caught by the unique constraint
    and the loser retries against fresh state.
    """
    def _insert() -> Pbi:
        _lock_client(client_id)
        pbi = Pbi(client_id=client_id, stack_position=max_position(client_id) + 1, **fields)
        db.session.add(pbi)
        db.session.flush()
        return pbi

    pbi = run_ranking_transaction(_insert, "create PBI")
    logger.info(f"[RANKING] Appended PBI {pbi.id} to client {client_id} at position {pbi.stack_position}")
    return pbi


def delete_pbi(pbi_id: str, client_id: Optional[str] = None) -> int:
    """
    Delete a PBI and close the gap it leaves.

    Returns the position the PBI held. Every item below it moves up by one;
    items above it are untouched. Deleting the bottom item shifts nothing.
    """
    def _delete():
        pbi = _locate_pbi(pbi_id, client_id)
        owner_id = pbi.client_id
        deleted_position = pbi.stack_position

        db.session.delete(pbi)
        db.session.flush()

        _shift_range(owner_id, deleted_position + 1, max_position(owner_id), -1)
        return owner_id, deleted_position

    owner_id, deleted_position = run_ranking_transaction(_delete, "delete PBI")
    logger.info(f"[RANKING] Deleted PBI {pbi_id} from client {owner_id} (was position {deleted_position})")
    return deleted_position


def reorder_pbi(pbi_id: str, requested_position: int, client_id: Optional[str] = None) -> MoveResult:
    """
    Move one PBI to `requested_position`, shifting the items in between.

    The request is clamped to 1..N. Moving down pulls (old, target] up by
    one; moving up pushes [target, old) down by one. When the clamped target
    equals the current position nothing is written, and no lock is taken.
    """
    current = db.session.execute(
        select(Pbi.client_id, Pbi.stack_position).where(Pbi.id == pbi_id)
    ).one_or_none()
    if current is None or (client_id is not None and current.client_id != client_id):
        raise NotFound("PBI not found", context={'pbi_id': pbi_id})
    if clamp_position(requested_position, max_position(current.client_id)) == current.stack_position:
        return MoveResult(pbi_id=pbi_id, client_id=current.client_id,
                          old_position=current.stack_position, new_position=current.stack_position)

    def _move() -> MoveResult:
        pbi = _locate_pbi(pbi_id, client_id)
        owner_id = pbi.client_id
        old_position = pbi.stack_position
        target = clamp_position(requested_position, max_position(owner_id))

        result = MoveResult(pbi_id=pbi.id, client_id=owner_id, old_position=old_position, new_position=target)
        if not result.moved:
            return result

        _set_position(pbi.id, SENTINEL_POSITION)
        if old_position < target:
            _shift_range(owner_id, old_position + 1, target, -1)
        else:
            _shift_range(owner_id, target, old_position - 1, 1)
        _set_position(pbi.id, target)
        return result

    result = run_ranking_transaction(_move, "reorder PBI")
    if result.moved:
        logger.info(
            f"[REORDER] Moved PBI {pbi_id} in client {result.client_id} "
            f"from {result.old_position} to {result.new_position} (requested {requested_position})"
        )
    return result


def validate_ordered_ids(ordered_ids: Sequence[str]) -> List[str]:
    """Shape checks that need no database access."""
    if ordered_ids is None or isinstance(ordered_ids, (str, bytes)):
        raise InvalidArgument("ordered_ids must be a list of PBI ids")

    ids = list(ordered_ids)
    if not ids:
        raise EmptyInput("ordered_ids cannot be empty")

    if any(not isinstance(pbi_id, str) or not pbi_id for pbi_id in ids):
        raise InvalidArgument("ordered_ids must contain only non-empty string ids")

    seen = set()
    duplicates = []
    for pbi_id in ids:
        if pbi_id in seen and pbi_id not in duplicates:
            duplicates.append(pbi_id)
        seen.add(pbi_id)
    if duplicates:
        raise InvalidArgument(
            f"ordered_ids contains duplicates: {', '.join(duplicates)}",
            context={'duplicate_ids': duplicates},
        )
    return ids


def bulk_reorder(client_id: str, ordered_ids: Sequence[str]) -> int:
    """
    Replace a client's whole order: ordered_ids[i] ends up at position i+1.

    The list must name every PBI of the client exactly once. Ids of other
    clients, unknown ids and omissions are rejected before anything is
    written. Returns the number of PBIs reordered.
    """
    ids = validate_ordered_ids(ordered_ids)

    def _reorder() -> int:
        _lock_client(client_id)
        current_ids = set(db.session.scalars(select(Pbi.id).where(Pbi.client_id == client_id)))

        invalid_ids = [pbi_id for pbi_id in ids if pbi_id not in current_ids]
        if invalid_ids:
            raise InvalidArgument(
                f"PBIs not found or don't belong to this client: {', '.join(invalid_ids)}",
                context={'invalid_ids': invalid_ids},
            )

        missing_ids = sorted(current_ids.difference(ids))
        if missing_ids:
            raise InvalidArgument(
                f"ordered_ids must list every PBI of the client; missing: {', '.join(missing_ids)}",
                context={'missing_ids': missing_ids},
            )

        _quarantine_client(client_id)
        for index, pbi_id in enumerate(ids, start=1):
            db.session.execute(
                update(Pbi)
                .where(Pbi.id == pbi_id, Pbi.client_id == client_id)
                .values(stack_position=index)
                .execution_options(synchronize_session=False)
            )
        return len(ids)

    count = run_ranking_transaction(_reorder, "reorder PBIs")
    logger.info(f"[REORDER] Bulk reordered {count} PBIs for client {client_id}")
    return count


def check_density(client_id: str) -> DensityReport:
    """Report gaps, duplicates and out-of-range values in a client's positions."""
    positions = list(db.session.scalars(
        select(Pbi.stack_position).where(Pbi.client_id == client_id).order_by(Pbi.stack_position)
    ))
    count = len(positions)
    present = set(positions)

    report = DensityReport(client_id=client_id, count=count)
    report.missing = [p for p in range(1, count + 1) if p not in present]
    report.duplicates = sorted(p for p, seen in Counter(positions).items() if seen > 1)
    report.out_of_range = sorted({p for p in positions if p < 1 or p > count})
    return report


def compact_positions(client_id: str) -> int:
    """
    Renumber a client's PBIs to 1..N keeping their current relative order
    (ties broken by creation time, then id). Returns how many rows changed.
    """
    def _compact() -> int:
        _lock_client(client_id)
        rows = db.session.execute(
            select(Pbi.id, Pbi.stack_position)
            .where(Pbi.client_id == client_id)
            .order_by(Pbi.stack_position, Pbi.created_at, Pbi.id)
        ).all()

        changed = sum(1 for index, row in enumerate(rows, start=1) if row.stack_position != index)
        if not changed:
            return 0

        # Park every row below the lowest value present (strays may be 0 or negative)
        floor = min(min(row.stack_position for row in rows), 0)
        for index, row in enumerate(rows, start=1):
            _set_position(row.id, floor - index)
        for index, row in enumerate(rows, start=1):
            _set_position(row.id, index)
        return changed

    changed = run_ranking_transaction(_compact, "compact PBI positions")
    if changed:
        logger.warning(f"[RANKING] Compacted {changed} positions for client {client_id}")
    return changed
