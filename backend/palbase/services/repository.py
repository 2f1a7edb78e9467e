"""Repository over the relational store.

All reads and writes of pets, shelters, run logs and run errors go through
PetRepository. It never commits; the caller owns the transaction.

Upserts use INSERT ... ON CONFLICT DO UPDATE keyed on (source, source_id)
for both PostgreSQL and SQLite.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from palbase.models.enums import ErrorType, PetStatus, RunStatus
from palbase.models.pet import Pet
from palbase.models.run_error import RunError
from palbase.models.run_log import RunLog
from palbase.models.shelter import Shelter

logger = structlog.get_logger(__name__)

# Columns a re-ingestion must never overwrite
_PET_IMMUTABLE = {"id", "source", "source_id", "first_seen_at", "created_at"}
_SHELTER_IMMUTABLE = {"id", "source", "source_id", "created_at"}
_IN_CLAUSE_CHUNK = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PetRepository:
    """Narrow data-access layer used by the sync service and the API."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="pet_repository")

    def _insert(self, model):
        """Dialect-specific INSERT supporting on_conflict_do_update()."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise NotImplementedError(f"Upsert not supported for dialect: {dialect}")

    # ------------------------------------------------------------------
    # Shelters
    # ------------------------------------------------------------------

    async def upsert_shelter(self, source: str, shelter: Dict[str, Any]) -> uuid.UUID:
        """Insert or update a shelter by (source, source_id). Returns its id."""
        values = {**shelter, "id": uuid.uuid4(), "source": source}
        stmt = self._insert(Shelter).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["source", "source_id"],
            set_={
                **{
                    col: stmt.excluded[col]
                    for col in values
                    if col not in _SHELTER_IMMUTABLE
                },
                "updated_at": func.now(),
            },
        ).returning(Shelter.id)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    # ------------------------------------------------------------------
    # Pets
    # ------------------------------------------------------------------

    async def get_existing_source_ids(self, source: str, source_ids: Iterable[str]) -> Set[str]:
        """Return the subset of ``source_ids`` already stored for ``source``."""
        ids = list(dict.fromkeys(source_ids))
        existing: Set[str] = set()
        for i in range(0, len(ids), _IN_CLAUSE_CHUNK):
            chunk = ids[i:i + _IN_CLAUSE_CHUNK]
            result = await self.db.execute(
                select(Pet.source_id).where(Pet.source == source, Pet.source_id.in_(chunk))
            )
            existing.update(result.scalars().all())
        return existing

    async def bulk_upsert_pets(
        self,
        source: str,
        pets: Sequence[Dict[str, Any]],
        seen_at: Optional[datetime] = None,
    ) -> int:
        """Insert or update a batch of pets keyed on (source, source_id).

        New rows get first_seen_at = last_seen_at = seen_at. Existing rows
        keep id, first_seen_at and created_at, get last_seen_at bumped, and
        keep the adopted status if they had it; any other status becomes
        active again.

        Returns:
            Number of rows written
        """
        if not pets:
            return 0
        seen_at = seen_at or _utcnow()

        # A single statement must not touch the same key twice; last one wins
        by_key: Dict[str, Dict[str, Any]] = {}
        for pet in pets:
            by_key[pet["source_id"]] = pet

        rows = [
            {
                **pet,
                "id": uuid.uuid4(),
                "source": source,
                "status": PetStatus.ACTIVE.value,
                "first_seen_at": seen_at,
                "last_seen_at": seen_at,
            }
            for pet in by_key.values()
        ]

        stmt = self._insert(Pet).values(rows)
        columns = set(rows[0])
        set_ = {
            col: stmt.excluded[col]
            for col in columns
            if col not in _PET_IMMUTABLE and col != "status"
        }
        set_["status"] = case(
            (Pet.__table__.c.status == PetStatus.ADOPTED.value, PetStatus.ADOPTED.value),
            else_=PetStatus.ACTIVE.value,
        )
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=["source", "source_id"], set_=set_)

        await self.db.execute(stmt)
        self.logger.debug("pets_upserted", source=source, count=len(rows))
        return len(rows)

    async def mark_stale_as_removed(
        self,
        source: str,
        hours: int,
        now: Optional[datetime] = None,
    ) -> int:
        """Mark active pets of ``source`` not seen for ``hours`` as removed.

        Only the given source is touched; adopted and already removed pets
        are left alone.

        Returns:
            Number of pets marked removed
        """
        cutoff = (now or _utcnow()) - timedelta(hours=hours)
        result = await self.db.execute(
            update(Pet)
            .where(
                Pet.source == source,
                Pet.status == PetStatus.ACTIVE.value,
                Pet.last_seen_at < cutoff,
            )
            .values(status=PetStatus.REMOVED.value, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Run logs
    # ------------------------------------------------------------------

    async def create_run_log(
        self,
        source: str,
        trigger: str,
        status: RunStatus = RunStatus.RUNNING,
    ) -> RunLog:
        run_log = RunLog(
            source=source,
            trigger=trigger,
            status=status.value,
            started_at=_utcnow() if status == RunStatus.RUNNING else None,
        )
        self.db.add(run_log)
        await self.db.flush()
        return run_log

    async def update_run_log(self, run_log_id: uuid.UUID, **fields: Any) -> None:
        """Update a run log.

        Raises:
            ValueError: If the run log is already terminal
        """
        run_log = await self.db.get(RunLog, run_log_id)
        if run_log is None:
            raise ValueError(f"Run log not found: {run_log_id}")
        if run_log.is_terminal:
            raise ValueError(f"Run log {run_log_id} is already {run_log.status}")
        for key, value in fields.items():
            setattr(run_log, key, value.value if isinstance(value, RunStatus) else value)
        await self.db.flush()

    async def get_latest_run_log(self, source: str) -> Optional[RunLog]:
        result = await self.db.execute(
            select(RunLog)
            .where(RunLog.source == source)
            .order_by(RunLog.created_at.desc(), RunLog.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_running_run_log(self, source: str, max_age_hours: int) -> Optional[RunLog]:
        """Most recent run log still marked running and younger than ``max_age_hours``.

        Older running rows are treated as abandoned by a crashed process.
        """
        cutoff = _utcnow() - timedelta(hours=max_age_hours)
        result = await self.db.execute(
            select(RunLog)
            .where(
                RunLog.source == source,
                RunLog.status == RunStatus.RUNNING.value,
                RunLog.started_at >= cutoff,
            )
            .order_by(RunLog.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Run errors
    # ------------------------------------------------------------------

    async def create_run_error(
        self,
        source: str,
        error_type: ErrorType,
        error_message: str,
        run_log_id: Optional[uuid.UUID] = None,
        url: Optional[str] = None,
        stack_trace: Optional[str] = None,
    ) -> RunError:
        run_error = RunError(
            run_log_id=run_log_id,
            source=source,
            error_type=error_type.value,
            error_message=error_message,
            url=url,
            stack_trace=stack_trace,
        )
        self.db.add(run_error)
        await self.db.flush()
        return run_error

    async def bulk_create_run_errors(
        self,
        run_log_id: Optional[uuid.UUID],
        source: str,
        errors: Sequence[Any],
    ) -> int:
        """Append StructuredError-like objects (error_type, message, url, stack_trace)."""
        if not errors:
            return 0
        self.db.add_all(
            [
                RunError(
                    run_log_id=run_log_id,
                    source=source,
                    error_type=error.error_type,
                    error_message=error.message,
                    url=error.url,
                    stack_trace=error.stack_trace,
                )
                for error in errors
            ]
        )
        await self.db.flush()
        return len(errors)
