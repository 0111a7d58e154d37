"""
Database module for company, job and investor storage

SQLite is the only shared mutable resource. Every write that can collide
goes through INSERT ... ON CONFLICT so the store, not the pipeline,
resolves concurrent writes to the same natural key.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# Rows per statement for bulk writes; has no effect on semantics
WRITE_CHUNK_SIZE = 500

DEFAULT_JOB_FUNCTIONS = [
    "Engineering",
    "Product",
    "Design",
    "Data",
    "Sales",
    "Marketing",
    "Customer Success",
    "Operations",
    "Finance",
    "People",
    "Legal",
    "Other",
]

# Columns a job upsert may write; anything else in a payload is ignored
JOB_COLUMNS = (
    "title",
    "ats_url",
    "apply_url",
    "location",
    "country",
    "remote_status",
    "function",
    "description",
    "salary",
    "posted_date",
    "raw_json",
    "status",
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def chunked(items: list, size: int = WRITE_CHUNK_SIZE):
    """Yield successive slices of at most size items"""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class JobFeedDatabase:
    """Manages the SQLite schema and job-level reads and writes"""

    def __init__(self, db_path: str = "data/jobfeed.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_database()

    def connect(self) -> sqlite3.Connection:
        """Open a connection with row access by name and foreign keys enforced"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def init_database(self):
        """Create database schema if it doesn't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS companies (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                website TEXT,
                logo_url TEXT,
                description TEXT,
                location TEXT,
                stage TEXT,
                size TEXT,
                ats_platform TEXT,
                ats_url TEXT,
                careers_url TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                company_id INTEGER NOT NULL REFERENCES companies(id),
                title TEXT NOT NULL,
                ats_job_id TEXT,
                ats_url TEXT,
                apply_url TEXT,
                location TEXT,
                country TEXT,
                remote_status TEXT,
                function TEXT,
                description TEXT,
                salary TEXT,
                posted_date TEXT,
                raw_json TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                last_seen_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(company_id, ats_job_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS job_functions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS investors (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                type TEXT,
                logo_url TEXT,
                website TEXT,
                bio TEXT,
                location TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS company_investors (
                company_id INTEGER NOT NULL REFERENCES companies(id),
                investor_id INTEGER NOT NULL REFERENCES investors(id),
                relationship TEXT NOT NULL DEFAULT 'investor',
                UNIQUE(company_id, investor_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS fundraises (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                company_id INTEGER NOT NULL REFERENCES companies(id),
                round_type TEXT,
                amount REAL,
                date_announced TEXT,
                source_url TEXT,
                source_name TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS fundraise_investors (
                fundraise_id INTEGER NOT NULL REFERENCES fundraises(id),
                investor_id INTEGER NOT NULL REFERENCES investors(id),
                role TEXT NOT NULL,
                UNIQUE(fundraise_id, investor_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS company_daily_metrics (
                company_id INTEGER NOT NULL REFERENCES companies(id),
                date TEXT NOT NULL,
                active_roles INTEGER NOT NULL DEFAULT 0,
                new_roles INTEGER NOT NULL DEFAULT 0,
                closed_roles INTEGER NOT NULL DEFAULT 0,
                roles_by_function TEXT,
                UNIQUE(company_id, date)
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_company_status ON jobs(company_id, status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_function ON jobs(function)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_companies_ats_url ON companies(ats_url)")
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_fundraises_key "
            "ON fundraises(company_id, round_type, date_announced)"
        )

        cursor.executemany(
            "INSERT OR IGNORE INTO job_functions (name) VALUES (?)",
            [(name,) for name in DEFAULT_JOB_FUNCTIONS],
        )

        conn.commit()
        conn.close()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def job_exists(self, company_id: int, ats_job_id: str) -> bool:
        """Advisory existence check used only for created/updated counts"""
        conn = self.connect()
        row = conn.execute(
            "SELECT 1 FROM jobs WHERE company_id = ? AND ats_job_id = ?",
            (company_id, ats_job_id),
        ).fetchone()
        conn.close()
        return row is not None

    def upsert_job(self, company_id: int, ats_job_id: str | None, fields: dict) -> None:
        """
        Insert a job or update it in place by (company_id, ats_job_id)

        Only the columns present in fields are written on conflict, so a
        partial payload never nulls out stored values. Rows without an
        ats_job_id never conflict (NULLs are distinct in a UNIQUE index)
        and are always inserted.

        Args:
            company_id: Owning company
            ats_job_id: Provider job id, or None
            fields: Column values to write (subset of JOB_COLUMNS; title required on insert)

        Raises:
            sqlite3.Error: Constraint violations (e.g. unknown company_id)
        """
        values = {k: v for k, v in fields.items() if k in JOB_COLUMNS}
        now = utc_now()
        values["last_seen_at"] = now
        values["updated_at"] = now

        columns = ["company_id", "ats_job_id", *values.keys(), "created_at"]
        params = [company_id, ats_job_id, *values.values(), now]
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{col} = excluded.{col}" for col in values)

        sql = (
            f"INSERT INTO jobs ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT(company_id, ats_job_id) DO UPDATE SET {updates}"
        )

        conn = self.connect()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def get_active_keyed_jobs(self, company_id: int) -> list[dict]:
        """Active jobs for a company that carry a provider job id"""
        conn = self.connect()
        rows = conn.execute(
            """
            SELECT id, ats_job_id FROM jobs
            WHERE company_id = ? AND status = 'active' AND ats_job_id IS NOT NULL
            ORDER BY id
            """,
            (company_id,),
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def close_jobs(self, job_ids: list[int]) -> int:
        """
        Mark jobs closed, chunked by WRITE_CHUNK_SIZE

        Returns:
            Number of rows updated
        """
        if not job_ids:
            return 0

        conn = self.connect()
        now = utc_now()
        closed = 0
        try:
            for chunk in chunked(job_ids):
                placeholders = ", ".join("?" for _ in chunk)
                cursor = conn.execute(
                    f"UPDATE jobs SET status = 'closed', updated_at = ? WHERE id IN ({placeholders})",
                    (now, *chunk),
                )
                closed += cursor.rowcount
            conn.commit()
        finally:
            conn.close()
        return closed

    def get_jobs_for_company(self, company_id: int, status: str | None = None) -> list[dict]:
        """All jobs for a company, optionally filtered by status"""
        conn = self.connect()
        if status:
            rows = conn.execute(
                "SELECT * FROM jobs WHERE company_id = ? AND status = ? ORDER BY id",
                (company_id, status),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM jobs WHERE company_id = ? ORDER BY id", (company_id,)
            ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def get_job(self, job_id: int) -> dict | None:
        conn = self.connect()
        row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        conn.close()
        return dict(row) if row else None

    def get_jobs_missing_function(self, limit: int, after_id: int = 0) -> list[dict]:
        """Jobs with a title but no function, in id order after after_id"""
        conn = self.connect()
        rows = conn.execute(
            """
            SELECT id, title FROM jobs
            WHERE (function IS NULL OR function = '')
              AND title IS NOT NULL AND title != ''
              AND id > ?
            ORDER BY id
            LIMIT ?
            """,
            (after_id, limit),
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def get_jobs_missing_posted_date(self, limit: int, after_id: int = 0) -> list[dict]:
        """Jobs that kept their raw feed JSON but have no posted date"""
        conn = self.connect()
        rows = conn.execute(
            """
            SELECT id, raw_json, created_at FROM jobs
            WHERE (posted_date IS NULL OR posted_date = '')
              AND raw_json IS NOT NULL AND raw_json != ''
              AND id > ?
            ORDER BY id
            LIMIT ?
            """,
            (after_id, limit),
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def fill_job_field(self, job_id: int, column: str, value: str) -> bool:
        """
        Write a value into an empty job column

        The emptiness check is part of the UPDATE so a concurrent writer
        that filled the field first wins.

        Returns:
            True if the row was updated
        """
        if column not in ("function", "posted_date"):
            raise ValueError(f"Column not fillable: {column}")

        conn = self.connect()
        try:
            cursor = conn.execute(
                f"""
                UPDATE jobs SET {column} = ?, updated_at = ?
                WHERE id = ? AND ({column} IS NULL OR {column} = '')
                """,
                (value, utc_now(), job_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get_job_functions(self) -> list[str]:
        """Function vocabulary used by classification"""
        conn = self.connect()
        rows = conn.execute("SELECT name FROM job_functions ORDER BY id").fetchall()
        conn.close()
        return [row["name"] for row in rows]

    def count_jobs(self, company_id: int | None = None) -> int:
        conn = self.connect()
        if company_id is None:
            count = conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]
        else:
            count = conn.execute(
                "SELECT COUNT(*) FROM jobs WHERE company_id = ?", (company_id,)
            ).fetchone()[0]
        conn.close()
        return count
