"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database. Each
collection of the document model is one table; list-valued fields are stored
as JSON text and timestamps as ISO-8601 strings.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any, Iterable, Optional

from core.models import Category, Channel, Job, RunProgress

_PROGRESS_COLUMNS = {
    "status",
    "processed_channels",
    "current_channel",
    "total_jobs_extracted",
    "total_messages_processed",
    "completed_at",
    "errors",
}


def _dump_list(values: Iterable[str]) -> str:
    return json.dumps(list(values), ensure_ascii=False)


def _load_list(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return list(json.loads(raw))


def _dump_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _load_dt(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - channels: configured Telegram channels and their scrape counters
        - categories: two-level category tree with job counters
        - jobs: write-once extracted job records
        - run_progress: one live/historic progress record per run
        """

        with self._connect() as conn:
            # channels is edited by the admin surface; the pipeline only bumps
            # total_jobs_scraped and sets last_scraped.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS channels (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    image_url TEXT,
                    category TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    scraping_enabled INTEGER NOT NULL DEFAULT 1,
                    total_jobs_scraped INTEGER NOT NULL DEFAULT 0,
                    last_scraped TIMESTAMP
                )
                """
            )
            # categories: level 0 rows are main categories, level 1 rows point
            # at their parent through parent_path.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    path TEXT NOT NULL,
                    full_path TEXT,
                    parent_path TEXT,
                    level INTEGER NOT NULL DEFAULT 0,
                    job_count INTEGER NOT NULL DEFAULT 0,
                    tags TEXT NOT NULL DEFAULT '[]',
                    keywords TEXT NOT NULL DEFAULT '[]'
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_categories_name ON categories(name)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_categories_path ON categories(path)")
            # jobs keeps the category hierarchy denormalized; it is a snapshot
            # taken at write time and not kept in sync with category edits.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    company TEXT,
                    location TEXT,
                    salary TEXT,
                    currency TEXT,
                    contract_type TEXT NOT NULL,
                    experience_level TEXT,
                    description TEXT NOT NULL,
                    is_remote INTEGER NOT NULL,
                    apply_link TEXT,
                    tags TEXT NOT NULL,
                    skills_required TEXT NOT NULL,
                    search_keywords TEXT NOT NULL,
                    related_urls TEXT NOT NULL,
                    expiration_date TIMESTAMP,
                    category TEXT NOT NULL,
                    category_id TEXT NOT NULL,
                    category_path TEXT NOT NULL,
                    main_category TEXT NOT NULL,
                    main_category_id TEXT NOT NULL,
                    category_hierarchy TEXT NOT NULL,
                    category_confidence REAL NOT NULL,
                    alternative_categories TEXT NOT NULL,
                    job_source TEXT NOT NULL,
                    raw_post TEXT NOT NULL,
                    posted_at TIMESTAMP NOT NULL,
                    extracted_at TIMESTAMP NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    source_message_id TEXT NOT NULL,
                    source_message_url TEXT,
                    channel_id TEXT NOT NULL,
                    channel_name TEXT NOT NULL,
                    notification_sent INTEGER NOT NULL DEFAULT 0,
                    view_count INTEGER NOT NULL DEFAULT 0,
                    application_count INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1
                )
                """
            )
            # Backstop for the dedup gate: one job per (title, company, message).
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_jobs_dedup
                ON jobs(title, IFNULL(company, ''), source_message_id)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS run_progress (
                    run_id TEXT PRIMARY KEY,
                    run_trigger TEXT NOT NULL,
                    status TEXT NOT NULL,
                    total_channels INTEGER NOT NULL,
                    processed_channels INTEGER NOT NULL DEFAULT 0,
                    current_channel TEXT,
                    total_jobs_extracted INTEGER NOT NULL DEFAULT 0,
                    total_messages_processed INTEGER NOT NULL DEFAULT 0,
                    started_at TIMESTAMP NOT NULL,
                    completed_at TIMESTAMP,
                    errors TEXT NOT NULL DEFAULT '[]'
                )
                """
            )

    # Channels

    def upsert_channel(self, channel: Channel) -> None:
        """Insert or update a channel without touching its scrape counters."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO channels (id, username, name, image_url, category, is_active, scraping_enabled)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    name = excluded.name,
                    image_url = excluded.image_url,
                    category = excluded.category,
                    is_active = excluded.is_active,
                    scraping_enabled = excluded.scraping_enabled
                """,
                (
                    channel.id,
                    channel.username,
                    channel.name,
                    channel.image_url,
                    channel.category,
                    int(channel.is_active),
                    int(channel.scraping_enabled),
                ),
            )

    def list_channels(self, active_only: bool = False) -> list[Channel]:
        query = "SELECT * FROM channels"
        if active_only:
            query += " WHERE is_active = 1 AND scraping_enabled = 1"
        query += " ORDER BY username"
        with self._connect() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_channel(row) for row in rows]

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM channels WHERE id = ?", (channel_id,)).fetchone()
        return self._row_to_channel(row) if row else None

    def record_channel_scrape(self, channel_id: str, new_jobs: int, scraped_at: datetime) -> None:
        """Atomically add new_jobs to the counter and stamp last_scraped."""

        with self._connect() as conn:
            conn.execute(
                """
                UPDATE channels
                SET total_jobs_scraped = total_jobs_scraped + ?, last_scraped = ?
                WHERE id = ?
                """,
                (new_jobs, scraped_at.isoformat(), channel_id),
            )

    @staticmethod
    def _row_to_channel(row: sqlite3.Row) -> Channel:
        return Channel(
            id=row["id"],
            username=row["username"],
            name=row["name"],
            image_url=row["image_url"],
            category=row["category"],
            is_active=bool(row["is_active"]),
            scraping_enabled=bool(row["scraping_enabled"]),
            total_jobs_scraped=int(row["total_jobs_scraped"]),
            last_scraped=_load_dt(row["last_scraped"]),
        )

    # Categories

    def upsert_category(self, category: Category) -> None:
        """Insert or update a category without touching its job count."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO categories (id, name, path, full_path, parent_path, level, tags, keywords)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    path = excluded.path,
                    full_path = excluded.full_path,
                    parent_path = excluded.parent_path,
                    level = excluded.level,
                    tags = excluded.tags,
                    keywords = excluded.keywords
                """,
                (
                    category.id,
                    category.name,
                    category.path,
                    category.full_path,
                    category.parent_path,
                    category.level,
                    _dump_list(category.tags),
                    _dump_list(category.keywords),
                ),
            )

    def list_category_names(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT name FROM categories ORDER BY level, name").fetchall()
        return [row["name"] for row in rows]

    def find_category_by_name(self, name: str) -> Optional[Category]:
        return self._find_category("name", name)

    def find_category_by_path(self, path: str) -> Optional[Category]:
        return self._find_category("path", path)

    def get_category(self, category_id: str) -> Optional[Category]:
        return self._find_category("id", category_id)

    def _find_category(self, column: str, value: str) -> Optional[Category]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT * FROM categories WHERE {column} = ? LIMIT 1",
                (value,),
            ).fetchone()
        if row is None:
            return None
        return Category(
            id=row["id"],
            name=row["name"],
            path=row["path"],
            level=int(row["level"]),
            full_path=row["full_path"],
            parent_path=row["parent_path"],
            job_count=int(row["job_count"]),
            tags=tuple(_load_list(row["tags"])),
            keywords=tuple(_load_list(row["keywords"])),
        )

    def increment_category_job_count(self, category_id: str, amount: int = 1) -> bool:
        """Atomic increment; returns False when the category does not exist."""

        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE categories SET job_count = job_count + ? WHERE id = ?",
                (amount, category_id),
            )
            return cur.rowcount > 0

    # Jobs

    def job_exists(self, title: str, company: str, source_message_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM jobs
                WHERE title = ? AND IFNULL(company, '') = ? AND source_message_id = ?
                LIMIT 1
                """,
                (title, company, source_message_id),
            ).fetchone()
        return row is not None

    def insert_job(self, job: Job) -> Optional[str]:
        """Insert a job; returns None if the dedup triple already exists."""

        placement = job.placement
        record: dict[str, Any] = {
            "id": job.id,
            "title": job.title,
            "company": job.company,
            "location": job.location,
            "salary": job.salary,
            "currency": job.currency,
            "contract_type": job.contract_type,
            "experience_level": job.experience_level,
            "description": job.description,
            "is_remote": int(job.is_remote),
            "apply_link": job.apply_link,
            "tags": _dump_list(job.tags),
            "skills_required": _dump_list(job.skills_required),
            "search_keywords": _dump_list(job.search_keywords),
            "related_urls": _dump_list(job.related_urls),
            "expiration_date": _dump_dt(job.expiration_date),
            "category": job.category,
            "category_id": placement.category_id,
            "category_path": placement.category_path,
            "main_category": placement.main_category,
            "main_category_id": placement.main_category_id,
            "category_hierarchy": _dump_list(placement.category_hierarchy),
            "category_confidence": job.category_confidence,
            "alternative_categories": _dump_list(job.alternative_categories),
            "job_source": job.job_source,
            "raw_post": job.raw_post,
            "posted_at": _dump_dt(job.posted_at),
            "extracted_at": _dump_dt(job.extracted_at),
            "created_at": _dump_dt(job.created_at),
            "source_message_id": job.source_message_id,
            "source_message_url": job.source_message_url,
            "channel_id": job.channel_id,
            "channel_name": job.channel_name,
            "notification_sent": int(job.notification_sent),
            "view_count": job.view_count,
            "application_count": job.application_count,
            "is_active": int(job.is_active),
        }
        columns = ", ".join(record)
        placeholders = ", ".join("?" for _ in record)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO jobs ({columns}) VALUES ({placeholders})",
                    tuple(record.values()),
                )
        except sqlite3.IntegrityError:
            return None
        return job.id

    def list_jobs(self, limit: int = 500) -> list[dict[str, Any]]:
        """Return recent jobs as plain dicts, newest first."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM jobs ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        jobs = []
        for row in rows:
            job = dict(row)
            for key in (
                "tags",
                "skills_required",
                "search_keywords",
                "related_urls",
                "category_hierarchy",
                "alternative_categories",
            ):
                job[key] = _load_list(job[key])
            job["is_remote"] = bool(job["is_remote"])
            jobs.append(job)
        return jobs

    # Run progress

    def create_progress(self, progress: RunProgress) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO run_progress (
                    run_id,
                    run_trigger,
                    status,
                    total_channels,
                    processed_channels,
                    current_channel,
                    total_jobs_extracted,
                    total_messages_processed,
                    started_at,
                    completed_at,
                    errors
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    progress.run_id,
                    progress.trigger,
                    progress.status,
                    progress.total_channels,
                    progress.processed_channels,
                    progress.current_channel,
                    progress.total_jobs_extracted,
                    progress.total_messages_processed,
                    _dump_dt(progress.started_at),
                    _dump_dt(progress.completed_at),
                    _dump_list(progress.errors),
                ),
            )

    def update_progress(self, run_id: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - _PROGRESS_COLUMNS
        if unknown:
            raise ValueError(f"Unknown progress columns: {', '.join(sorted(unknown))}")
        if not fields:
            return

        values: list[Any] = []
        for key, value in fields.items():
            if key == "errors":
                value = _dump_list(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            values.append(value)

        assignments = ", ".join(f"{key} = ?" for key in fields)
        with self._connect() as conn:
            conn.execute(
                f"UPDATE run_progress SET {assignments} WHERE run_id = ?",
                (*values, run_id),
            )

    def get_progress(self, run_id: str) -> Optional[RunProgress]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM run_progress WHERE run_id = ?", (run_id,)).fetchone()
        return self._row_to_progress(row) if row else None

    def list_progress(self, limit: int = 50) -> list[RunProgress]:
        """Return the most recent runs, newest first."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM run_progress ORDER BY started_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_progress(row) for row in rows]

    @staticmethod
    def _row_to_progress(row: sqlite3.Row) -> RunProgress:
        return RunProgress(
            run_id=row["run_id"],
            trigger=row["run_trigger"],
            status=row["status"],
            total_channels=int(row["total_channels"]),
            processed_channels=int(row["processed_channels"]),
            current_channel=row["current_channel"],
            total_jobs_extracted=int(row["total_jobs_extracted"]),
            total_messages_processed=int(row["total_messages_processed"]),
            started_at=_load_dt(row["started_at"]),
            completed_at=_load_dt(row["completed_at"]),
            errors=_load_list(row["errors"]),
        )
