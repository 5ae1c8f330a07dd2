"""Chunked Applier: writes reconciled rows in bounded batches.

Tables are written one after another in dependency order, chunks one after
another within a table.  The first failing chunk of a table skips the rest
of that table; the next table is still attempted.  Already-written tables
are never rolled back.
"""

import enum
import logging

from pydantic import BaseModel, Field

from gestock.config import settings
from gestock.snapshots.reconciler import ReconciledSnapshot
from gestock.snapshots.tables import TABLES
from gestock.store import MissingTableError, ScopeStore, StoreError

logger = logging.getLogger(__name__)


class ApplyStatus(str, enum.Enum):
    SUCCESS = "success"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


class ApplyReport(BaseModel):
    status: ApplyStatus = ApplyStatus.SUCCESS
    diagnostics: list[str] = Field(default_factory=list)
    written: dict[str, int] = Field(default_factory=dict)

    @property
    def report(self) -> str:
        """All diagnostics as one multi-line block, ready to copy."""
        return "\n".join(self.diagnostics)

    @property
    def ok(self) -> bool:
        return self.status == ApplyStatus.SUCCESS

    @classmethod
    def from_diagnostics(cls, diagnostics: list[str], written: dict[str, int]) -> "ApplyReport":
        status = ApplyStatus.COMPLETED_WITH_ERRORS if diagnostics else ApplyStatus.SUCCESS
        return cls(status=status, diagnostics=diagnostics, written=written)

    @classmethod
    def failed(cls, message: str) -> "ApplyReport":
        return cls(status=ApplyStatus.FAILED, diagnostics=[message])


def chunked(rows: list, size: int) -> list[list]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [rows[i:i + size] for i in range(0, len(rows), size)]


async def apply_snapshot(
    store: ScopeStore,
    reconciled: ReconciledSnapshot,
    chunk_size: int | None = None,
) -> tuple[list[str], dict[str, int]]:
    """Upsert every reconciled table.  Returns (diagnostics, written counts)."""
    size = chunk_size or settings.snapshot_chunk_size
    diagnostics: list[str] = []
    written: dict[str, int] = {}

    for spec in TABLES:
        rows = reconciled.rows(spec.name)
        written[spec.name] = 0
        if not rows:
            continue

        chunks = chunked(rows, size)
        for number, chunk in enumerate(chunks, start=1):
            try:
                await store.upsert(spec.name, chunk, spec.conflict_key)
            except MissingTableError:
                logger.debug(f"apply {spec.name}: table missing, skipped")
                break
            except StoreError as exc:
                skipped = len(rows) - written[spec.name]
                message = (
                    f"apply {spec.name}: chunk {number}/{len(chunks)} failed "
                    f"({exc.message}); skipped {skipped} rows"
                )
                logger.warning(message)
                diagnostics.append(message)
                break
            written[spec.name] += len(chunk)

        logger.debug(f"apply {spec.name}: {written[spec.name]}/{len(rows)} rows written")

    return diagnostics, written
