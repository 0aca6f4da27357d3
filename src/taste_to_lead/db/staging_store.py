"""SQLite storage for staging jobs and their accepted assets."""

import json
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Final, Protocol

import aiosqlite

from taste_to_lead.logging import get_logger
from taste_to_lead.models import StagingAsset, StagingJob

logger = get_logger(__name__)

# Columns update_job may patch; id, batch and input fields are immutable
_UPDATABLE_COLUMNS: Final = frozenset(
    {
        "status",
        "output_image_url",
        "prompt_used",
        "negative_prompt_used",
        "quality_flags",
        "error",
    }
)

_JOB_COLUMNS: Final = (
    "id",
    "batch_id",
    "agent_id",
    "buyer_id",
    "listing_id",
    "vibe_id",
    "room_type",
    "input_image_url",
    "status",
    "output_image_url",
    "prompt_used",
    "negative_prompt_used",
    "quality_flags",
    "error",
    "created_at",
    "updated_at",
)


class JobStore(Protocol):
    """Persistence the staging queue and batch service depend on."""

    async def create_job(self, job: StagingJob) -> None: ...

    async def get_job(self, job_id: str) -> StagingJob | None: ...

    async def get_jobs_by_batch(self, batch_id: str) -> list[StagingJob]: ...

    async def update_job(self, job_id: str, **patch: Any) -> bool: ...

    async def create_asset(self, asset: StagingAsset) -> None: ...

    async def get_asset_for_job(self, job_id: str) -> StagingAsset | None: ...


def _to_db_value(column: str, value: Any) -> Any:
    if column == "quality_flags":
        return json.dumps(list(value or []))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _row_to_job(row: aiosqlite.Row) -> StagingJob:
    data = dict(row)
    data["quality_flags"] = json.loads(data["quality_flags"]) if data["quality_flags"] else []
    return StagingJob.model_validate(data)


class StagingStorage:
    """SQLite-backed job store."""

    def __init__(self, db_path: str) -> None:
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA busy_timeout=5000")
            await self._conn.execute("PRAGMA foreign_keys=ON")
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def initialize(self) -> None:
        """Initialize the database schema."""
        conn = await self._get_connection()
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS staging_jobs (
                id TEXT PRIMARY KEY,
                batch_id TEXT NOT NULL,
                agent_id TEXT,
                buyer_id TEXT,
                listing_id INTEGER,
                vibe_id TEXT NOT NULL,
                room_type TEXT NOT NULL,
                input_image_url TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'queued',
                output_image_url TEXT,
                prompt_used TEXT NOT NULL,
                negative_prompt_used TEXT NOT NULL,
                quality_flags TEXT NOT NULL DEFAULT '[]',
                error TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_staging_jobs_batch
            ON staging_jobs(batch_id)
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS staging_assets (
                id TEXT PRIMARY KEY,
                staging_job_id TEXT NOT NULL,
                vibe_id TEXT NOT NULL,
                image_url TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (staging_job_id) REFERENCES staging_jobs(id)
            )
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_staging_assets_job
            ON staging_assets(staging_job_id)
        """)
        await conn.commit()
        logger.debug("staging_schema_initialized", db_path=self.db_path)

    async def create_job(self, job: StagingJob) -> None:
        conn = await self._get_connection()
        data = job.model_dump()
        placeholders = ", ".join("?" for _ in _JOB_COLUMNS)
        await conn.execute(
            f"INSERT INTO staging_jobs ({', '.join(_JOB_COLUMNS)}) VALUES ({placeholders})",
            [_to_db_value(col, data[col]) for col in _JOB_COLUMNS],
        )
        await conn.commit()

    async def get_job(self, job_id: str) -> StagingJob | None:
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM staging_jobs WHERE id = ?", (job_id,))
        row = await cursor.fetchone()
        return _row_to_job(row) if row else None

    async def get_jobs_by_batch(self, batch_id: str) -> list[StagingJob]:
        """All jobs of a batch, in creation order."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM staging_jobs WHERE batch_id = ? ORDER BY rowid",
            (batch_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_job(row) for row in rows]

    async def update_job(self, job_id: str, **patch: Any) -> bool:
        """Apply a partial update to a job and bump its updated_at.

        Returns:
            True if the job exists.

        Raises:
            ValueError: If the patch names a column that can't be updated.
        """
        unknown = set(patch) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update staging job columns: {sorted(unknown)}")

        values = {col: _to_db_value(col, value) for col, value in patch.items()}
        values["updated_at"] = datetime.now(UTC).isoformat()
        assignments = ", ".join(f"{col} = ?" for col in values)

        conn = await self._get_connection()
        cursor = await conn.execute(
            f"UPDATE staging_jobs SET {assignments} WHERE id = ?",
            [*values.values(), job_id],
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def create_asset(self, asset: StagingAsset) -> None:
        conn = await self._get_connection()
        await conn.execute(
            """
            INSERT INTO staging_assets (id, staging_job_id, vibe_id, image_url, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                asset.id,
                asset.staging_job_id,
                asset.vibe_id.value,
                asset.image_url,
                asset.created_at.isoformat(),
            ),
        )
        await conn.commit()

    async def get_asset_for_job(self, job_id: str) -> StagingAsset | None:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM staging_assets WHERE staging_job_id = ? ORDER BY rowid LIMIT 1",
            (job_id,),
        )
        row = await cursor.fetchone()
        return StagingAsset.model_validate(dict(row)) if row else None
