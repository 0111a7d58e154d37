"""
Company service - database operations for companies

Companies are upserted by slug from the ingestion API, picked up by the
onboarding batch while their ats_url is empty, and enriched additively.
"""

import logging
import sqlite3

from pydantic import ValidationError

from jobfeed.database import JobFeedDatabase, utc_now
from jobfeed.models import NO_ATS_SENTINEL, CompanyPayload, IngestResult, Provider
from jobfeed.models.records import validation_message
from jobfeed.utils.text import to_slug

logger = logging.getLogger(__name__)

COMPANY_COLUMNS = (
    "name",
    "website",
    "logo_url",
    "description",
    "location",
    "stage",
    "size",
    "ats_platform",
    "ats_url",
    "careers_url",
    "status",
)

# Columns the enrichment agents may fill when empty
ENRICHABLE_COLUMNS = ("stage", "size", "description", "location", "website", "careers_url")


class CompanyService:
    """Manages company database operations"""

    def __init__(self, db_path: str = "data/jobfeed.db"):
        self.db = JobFeedDatabase(db_path)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_companies(self, items: list) -> IngestResult:
        """
        Upsert a batch of companies by slug

        name is required; slug is derived from name when not supplied.
        Only the fields present in each item are written on update.

        Returns:
            IngestResult with created/updated counts and per-item errors
        """
        result = IngestResult()

        for index, item in enumerate(items):
            try:
                payload = CompanyPayload.model_validate(item)
            except ValidationError as e:
                result.add_error(index, validation_message(e))
                continue

            if not payload.name or not payload.name.strip():
                result.add_error(index, "name is required")
                continue

            slug = to_slug(payload.slug or payload.name)
            if not slug:
                result.add_error(index, "slug could not be derived from name")
                continue

            fields = payload.model_dump(include=payload.model_fields_set - {"slug"})
            fields["name"] = payload.name.strip()
            if fields.get("status") is None:
                fields.pop("status", None)

            try:
                created = self.upsert_company(slug, fields)
            except sqlite3.Error as e:
                logger.error(f"Company upsert failed for {slug}: {e}")
                result.add_error(index, str(e))
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            f"Ingested companies: {result.created} created, {result.updated} updated, "
            f"{len(result.errors)} errors"
        )
        return result

    def upsert_company(self, slug: str, fields: dict) -> bool:
        """
        Insert or update a company by slug

        Returns:
            True if a new row was created

        Raises:
            sqlite3.Error: On constraint violations
        """
        values = {k: v for k, v in fields.items() if k in COMPANY_COLUMNS}
        now = utc_now()
        values["updated_at"] = now

        conn = self.db.connect()
        try:
            existed = (
                conn.execute("SELECT 1 FROM companies WHERE slug = ?", (slug,)).fetchone()
                is not None
            )

            columns = ["slug", *values.keys(), "created_at"]
            params = [slug, *values.values(), now]
            placeholders = ", ".join("?" for _ in columns)
            updates = ", ".join(f"{col} = excluded.{col}" for col in values)
            conn.execute(
                f"INSERT INTO companies ({', '.join(columns)}) VALUES ({placeholders}) "
                f"ON CONFLICT(slug) DO UPDATE SET {updates}",
                params,
            )
            conn.commit()
        finally:
            conn.close()

        return not existed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_company(self, company_id: int) -> dict | None:
        conn = self.db.connect()
        row = conn.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
        conn.close()
        return dict(row) if row else None

    def get_company_by_slug(self, slug: str) -> dict | None:
        conn = self.db.connect()
        row = conn.execute("SELECT * FROM companies WHERE slug = ?", (slug,)).fetchone()
        conn.close()
        return dict(row) if row else None

    def find_next_unprocessed_company(self) -> tuple[dict | None, bool]:
        """
        Next company with a name and no ats_url yet

        Reads two rows so the caller learns whether more work remains.

        Returns:
            (company or None, has_more)
        """
        conn = self.db.connect()
        rows = conn.execute(
            """
            SELECT * FROM companies
            WHERE (ats_url IS NULL OR ats_url = '')
              AND name IS NOT NULL AND name != ''
            ORDER BY id
            LIMIT 2
            """
        ).fetchall()
        conn.close()

        if not rows:
            return None, False
        return dict(rows[0]), len(rows) > 1

    def get_companies_missing_ats_url(self, limit: int, after_id: int = 0) -> list[dict]:
        conn = self.db.connect()
        rows = conn.execute(
            """
            SELECT id, name, website, careers_url FROM companies
            WHERE (ats_url IS NULL OR ats_url = '')
              AND name IS NOT NULL AND name != ''
              AND id > ?
            ORDER BY id
            LIMIT ?
            """,
            (after_id, limit),
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def get_companies_missing_profile(self, limit: int, after_id: int = 0) -> list[dict]:
        """Companies missing stage or size"""
        conn = self.db.connect()
        rows = conn.execute(
            """
            SELECT id, name, stage, size FROM companies
            WHERE (stage IS NULL OR stage = '' OR size IS NULL OR size = '')
              AND name IS NOT NULL AND name != ''
              AND id > ?
            ORDER BY id
            LIMIT ?
            """,
            (after_id, limit),
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def get_companies_with_feeds(self, offset: int = 0, limit: int = 5) -> list[dict]:
        """Companies whose ats_url is a concrete feed URL (not empty, not "none")"""
        conn = self.db.connect()
        rows = conn.execute(
            """
            SELECT id, name, ats_url, ats_platform FROM companies
            WHERE ats_url IS NOT NULL AND ats_url != '' AND ats_url != ?
            ORDER BY id
            LIMIT ? OFFSET ?
            """,
            (NO_ATS_SENTINEL, limit, offset),
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def count_companies_with_feeds(self) -> int:
        conn = self.db.connect()
        count = conn.execute(
            "SELECT COUNT(*) FROM companies WHERE ats_url IS NOT NULL AND ats_url != '' "
            "AND ats_url != ?",
            (NO_ATS_SENTINEL,),
        ).fetchone()[0]
        conn.close()
        return count

    # ------------------------------------------------------------------
    # Enrichment writes
    # ------------------------------------------------------------------

    def set_ats_url_if_unset(self, company_id: int, ats_url: str, ats_platform: str) -> bool:
        """
        Record a company's feed URL unless one (or the "none" sentinel) is already stored

        Returns:
            True if the row was updated
        """
        conn = self.db.connect()
        try:
            cursor = conn.execute(
                """
                UPDATE companies SET ats_url = ?, ats_platform = ?, updated_at = ?
                WHERE id = ? AND (ats_url IS NULL OR ats_url = '')
                """,
                (ats_url, ats_platform, utc_now(), company_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def mark_no_ats(self, company_id: int) -> bool:
        """Store the "none" sentinel so the batch driver stops retrying this company"""
        updated = self.set_ats_url_if_unset(company_id, NO_ATS_SENTINEL, Provider.NONE.value)
        if updated:
            logger.info(f"Company {company_id}: no supported ATS, marked '{NO_ATS_SENTINEL}'")
        return updated

    def fill_empty_fields(self, company_id: int, fields: dict) -> list[str]:
        """
        Write each value only where the stored column is empty

        Returns:
            Names of the columns actually written
        """
        written = []
        conn = self.db.connect()
        try:
            for column, value in fields.items():
                if column not in ENRICHABLE_COLUMNS or not value:
                    continue
                cursor = conn.execute(
                    f"""
                    UPDATE companies SET {column} = ?, updated_at = ?
                    WHERE id = ? AND ({column} IS NULL OR {column} = '')
                    """,
                    (value, utc_now(), company_id),
                )
                if cursor.rowcount > 0:
                    written.append(column)
            conn.commit()
        finally:
            conn.close()
        return written

