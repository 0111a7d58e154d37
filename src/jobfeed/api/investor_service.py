"""
Investor service - investors, their portfolio links and profile enrichment
"""

import logging
import sqlite3

from pydantic import ValidationError

from jobfeed.database import JobFeedDatabase, utc_now
from jobfeed.models import IngestResult, InvestorPayload
from jobfeed.models.records import validation_message
from jobfeed.utils.text import to_slug

logger = logging.getLogger(__name__)

INVESTOR_COLUMNS = ("name", "type", "logo_url", "website", "bio", "location")


class InvestorService:
    """Manages investor database operations"""

    def __init__(self, db_path: str = "data/jobfeed.db"):
        self.db = JobFeedDatabase(db_path)

    def ingest_investors(self, items: list) -> IngestResult:
        """
        Upsert investors by slug and link them to their portfolio companies

        A failed portfolio link is reported against the item but does not
        undo the investor upsert.
        """
        result = IngestResult()

        for index, item in enumerate(items):
            try:
                payload = InvestorPayload.model_validate(item)
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

            fields = payload.model_dump(
                include=payload.model_fields_set - {"slug", "portfolio_company_ids"}
            )
            fields["name"] = payload.name.strip()

            try:
                investor_id, created = self.upsert_investor(slug, fields)
            except sqlite3.Error as e:
                logger.error(f"Investor upsert failed for {slug}: {e}")
                result.add_error(index, str(e))
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

            if payload.portfolio_company_ids:
                try:
                    self.link_portfolio(investor_id, payload.portfolio_company_ids)
                except sqlite3.Error as e:
                    logger.warning(f"Portfolio link failed for investor {slug}: {e}")
                    result.add_error(index, f"portfolio: {e}")

        return result

    def upsert_investor(self, slug: str, fields: dict) -> tuple[int, bool]:
        """
        Insert or update an investor by slug

        Returns:
            (investor id, created)
        """
        values = {k: v for k, v in fields.items() if k in INVESTOR_COLUMNS}
        now = utc_now()
        values["updated_at"] = now

        conn = self.db.connect()
        try:
            existed = (
                conn.execute("SELECT 1 FROM investors WHERE slug = ?", (slug,)).fetchone()
                is not None
            )
            columns = ["slug", *values.keys(), "created_at"]
            placeholders = ", ".join("?" for _ in columns)
            updates = ", ".join(f"{col} = excluded.{col}" for col in values)
            conn.execute(
                f"INSERT INTO investors ({', '.join(columns)}) VALUES ({placeholders}) "
                f"ON CONFLICT(slug) DO UPDATE SET {updates}",
                [slug, *values.values(), now],
            )
            investor_id = conn.execute(
                "SELECT id FROM investors WHERE slug = ?", (slug,)
            ).fetchone()[0]
            conn.commit()
        finally:
            conn.close()

        return investor_id, not existed

    def link_portfolio(self, investor_id: int, company_ids: list[int]) -> None:
        """Insert company_investors rows; existing links are left as they are"""
        conn = self.db.connect()
        try:
            conn.executemany(
                """
                INSERT INTO company_investors (company_id, investor_id, relationship)
                VALUES (?, ?, 'investor')
                ON CONFLICT(company_id, investor_id) DO NOTHING
                """,
                [(company_id, investor_id) for company_id in dict.fromkeys(company_ids)],
            )
            conn.commit()
        finally:
            conn.close()

    def get_investor(self, investor_id: int) -> dict | None:
        conn = self.db.connect()
        row = conn.execute("SELECT * FROM investors WHERE id = ?", (investor_id,)).fetchone()
        conn.close()
        return dict(row) if row else None

    def get_investor_by_slug(self, slug: str) -> dict | None:
        conn = self.db.connect()
        row = conn.execute("SELECT * FROM investors WHERE slug = ?", (slug,)).fetchone()
        conn.close()
        return dict(row) if row else None

    def get_portfolio(self, investor_id: int) -> list[int]:
        conn = self.db.connect()
        rows = conn.execute(
            "SELECT company_id FROM company_investors WHERE investor_id = ? ORDER BY company_id",
            (investor_id,),
        ).fetchall()
        conn.close()
        return [row["company_id"] for row in rows]

    def get_investors_missing_profile(self, limit: int, after_id: int = 0) -> list[dict]:
        """Named investors with an empty bio or location"""
        conn = self.db.connect()
        rows = conn.execute(
            """
            SELECT id, name, bio, location FROM investors
            WHERE name IS NOT NULL AND name != ''
              AND (bio IS NULL OR bio = '' OR location IS NULL OR location = '')
              AND id > ?
            ORDER BY id
            LIMIT ?
            """,
            (after_id, limit),
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def fill_empty_fields(self, investor_id: int, fields: dict) -> list[str]:
        """
        Write bio/location only where the stored value is empty

        Returns:
            Names of the columns actually written
        """
        written = []
        conn = self.db.connect()
        try:
            for column in ("bio", "location"):
                value = fields.get(column)
                if not value:
                    continue
                cursor = conn.execute(
                    f"""
                    UPDATE investors SET {column} = ?, updated_at = ?
                    WHERE id = ? AND ({column} IS NULL OR {column} = '')
                    """,
                    (value, utc_now(), investor_id),
                )
                if cursor.rowcount > 0:
                    written.append(column)
            conn.commit()
        finally:
            conn.close()
        return written
