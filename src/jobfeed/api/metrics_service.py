"""
Daily hiring metrics per company, upserted by (company_id, date)
"""

import json
import logging
import re
import sqlite3
from datetime import date as date_type

from pydantic import ValidationError

from jobfeed.database import WRITE_CHUNK_SIZE, JobFeedDatabase, chunked
from jobfeed.models import IngestError, MetricPayload
from jobfeed.models.records import validation_message

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_metric_date(value) -> bool:
    """True for a real calendar date written as YYYY-MM-DD"""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return False
    try:
        date_type.fromisoformat(value)
    except ValueError:
        return False
    return True


class MetricsService:
    """Manages company_daily_metrics writes"""

    def __init__(self, db_path: str = "data/jobfeed.db"):
        self.db = JobFeedDatabase(db_path)

    def ingest_metrics(self, metric_date: str, items: list) -> dict:
        """
        Upsert one day's metrics for many companies

        Rows are written in chunks of WRITE_CHUNK_SIZE; a failing chunk is
        reported once, at the index of its first row.

        Args:
            metric_date: YYYY-MM-DD (validated by the caller)
            items: Metric records

        Returns:
            {"inserted": int, "errors": [{index, message}]}
        """
        errors: list[IngestError] = []
        rows: list[tuple[int, tuple]] = []

        for index, item in enumerate(items):
            try:
                payload = MetricPayload.model_validate(item)
            except ValidationError as e:
                errors.append(IngestError(index=index, message=validation_message(e)))
                continue

            if payload.company_id is None:
                errors.append(IngestError(index=index, message="company_id is required"))
                continue

            rows.append(
                (
                    index,
                    (
                        payload.company_id,
                        metric_date,
                        payload.active_roles or 0,
                        payload.new_roles or 0,
                        payload.closed_roles or 0,
                        json.dumps(payload.roles_by_function)
                        if payload.roles_by_function is not None
                        else None,
                    ),
                )
            )

        inserted = 0
        conn = self.db.connect()
        try:
            for batch in chunked(rows, WRITE_CHUNK_SIZE):
                try:
                    conn.executemany(
                        """
                        INSERT INTO company_daily_metrics (
                            company_id, date, active_roles, new_roles, closed_roles,
                            roles_by_function
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        ON CONFLICT(company_id, date) DO UPDATE SET
                            active_roles = excluded.active_roles,
                            new_roles = excluded.new_roles,
                            closed_roles = excluded.closed_roles,
                            roles_by_function = excluded.roles_by_function
                        """,
                        [values for _, values in batch],
                    )
                    conn.commit()
                    inserted += len(batch)
                except sqlite3.Error as e:
                    conn.rollback()
                    logger.error(f"Metrics chunk starting at item {batch[0][0]} failed: {e}")
                    errors.append(IngestError(index=batch[0][0], message=str(e)))
        finally:
            conn.close()

        logger.info(f"Ingested metrics for {metric_date}: {inserted} rows, {len(errors)} errors")
        return {"inserted": inserted, "errors": [e.model_dump() for e in errors]}

    def get_metrics(self, company_id: int) -> list[dict]:
        conn = self.db.connect()
        rows = conn.execute(
            "SELECT * FROM company_daily_metrics WHERE company_id = ? ORDER BY date",
            (company_id,),
        ).fetchall()
        conn.close()
        result = []
        for row in rows:
            record = dict(row)
            if record["roles_by_function"]:
                record["roles_by_function"] = json.loads(record["roles_by_function"])
            result.append(record)
        return result
