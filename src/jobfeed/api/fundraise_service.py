"""
Fundraise service - funding rounds and the investors who took part

A fundraise is identified by (company_id, round_type, date_announced).
A second record with the same key updates the first rather than adding a
round; missing round_type/date_announced are part of the key as NULLs.
"""

import logging
import sqlite3

from pydantic import ValidationError

from jobfeed.database import JobFeedDatabase, utc_now
from jobfeed.models import FundraisePayload, IngestResult
from jobfeed.models.records import validation_message

logger = logging.getLogger(__name__)

FUNDRAISE_COLUMNS = ("round_type", "amount", "date_announced", "source_url", "source_name")


class FundraiseService:
    """Manages fundraise database operations"""

    def __init__(self, db_path: str = "data/jobfeed.db"):
        self.db = JobFeedDatabase(db_path)

    def ingest_fundraises(self, items: list) -> IngestResult:
        result = IngestResult()

        for index, item in enumerate(items):
            try:
                payload = FundraisePayload.model_validate(item)
            except ValidationError as e:
                result.add_error(index, validation_message(e))
                continue

            if payload.company_id is None:
                result.add_error(index, "company_id is required")
                continue

            fields = payload.model_dump(include=payload.model_fields_set & set(FUNDRAISE_COLUMNS))

            try:
                fundraise_id, created = self.upsert_fundraise(payload.company_id, fields)
            except sqlite3.Error as e:
                logger.warning(f"Fundraise {index} for company {payload.company_id} failed: {e}")
                result.add_error(index, str(e))
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

            if payload.lead_investor_ids or payload.co_investor_ids:
                try:
                    self.link_investors(
                        fundraise_id, payload.lead_investor_ids, payload.co_investor_ids
                    )
                except sqlite3.Error as e:
                    logger.warning(f"Investor links failed for fundraise {fundraise_id}: {e}")
                    result.add_error(index, f"investors: {e}")

        return result

    def upsert_fundraise(self, company_id: int, fields: dict) -> tuple[int, bool]:
        """
        Update the fundraise with this natural key, or insert it

        The lookup and write share one transaction.

        Returns:
            (fundraise id, created)
        """
        round_type = fields.get("round_type")
        date_announced = fields.get("date_announced")
        now = utc_now()

        conn = self.db.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                """
                SELECT id FROM fundraises
                WHERE company_id = ? AND round_type IS ? AND date_announced IS ?
                ORDER BY id LIMIT 1
                """,
                (company_id, round_type, date_announced),
            ).fetchone()

            if row:
                fundraise_id = row["id"]
                updates = {k: v for k, v in fields.items() if k in FUNDRAISE_COLUMNS}
                updates["updated_at"] = now
                assignments = ", ".join(f"{col} = ?" for col in updates)
                conn.execute(
                    f"UPDATE fundraises SET {assignments} WHERE id = ?",
                    [*updates.values(), fundraise_id],
                )
                created = False
            else:
                values = {k: v for k, v in fields.items() if k in FUNDRAISE_COLUMNS}
                columns = ["company_id", *values.keys(), "created_at", "updated_at"]
                placeholders = ", ".join("?" for _ in columns)
                cursor = conn.execute(
                    f"INSERT INTO fundraises ({', '.join(columns)}) VALUES ({placeholders})",
                    [company_id, *values.values(), now, now],
                )
                fundraise_id = cursor.lastrowid
                created = True

            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        return fundraise_id, created

    def link_investors(
        self, fundraise_id: int, lead_ids: list[int], co_investor_ids: list[int]
    ) -> None:
        """Upsert fundraise_investors rows; an investor listed as both is a lead"""
        roles = {investor_id: "participant" for investor_id in co_investor_ids}
        roles.update({investor_id: "lead" for investor_id in lead_ids})

        conn = self.db.connect()
        try:
            conn.executemany(
                """
                INSERT INTO fundraise_investors (fundraise_id, investor_id, role)
                VALUES (?, ?, ?)
                ON CONFLICT(fundraise_id, investor_id) DO UPDATE SET role = excluded.role
                """,
                [(fundraise_id, investor_id, role) for investor_id, role in roles.items()],
            )
            conn.commit()
        finally:
            conn.close()

    def get_fundraises(self, company_id: int) -> list[dict]:
        conn = self.db.connect()
        rows = conn.execute(
            "SELECT * FROM fundraises WHERE company_id = ? ORDER BY id", (company_id,)
        ).fetchall()
        conn.close()
        return [dict(row) for row in rows]

    def get_fundraise_investors(self, fundraise_id: int) -> dict[int, str]:
        """investor_id -> role"""
        conn = self.db.connect()
        rows = conn.execute(
            "SELECT investor_id, role FROM fundraise_investors WHERE fundraise_id = ?",
            (fundraise_id,),
        ).fetchall()
        conn.close()
        return {row["investor_id"]: row["role"] for row in rows}
