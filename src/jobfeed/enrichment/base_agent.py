"""
Base Enrichment Agent
Shared batch loop for agents that fill empty fields

Every agent follows the same shape:
    select   - next batch of records with something missing
    process  - classify one record and write what was found
    report   - counts, per-record details, hasMore

Writes are additive: agents only fill empty fields and never overwrite a
stored value. Records are visited in id order and a run reports the last
id it touched, so a caller that keeps passing it back walks the whole
backlog once even when some records can't be enriched.

Subclasses implement select() and process().
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from jobfeed.exceptions import ClassifierError, ClassifierParseError
from jobfeed.utils.budget import Budget

logger = logging.getLogger(__name__)


@dataclass
class ItemOutcome:
    """Result of processing one record"""

    status: str
    updated: bool = False
    fields: dict = field(default_factory=dict)


@dataclass
class AgentRunResult:
    """Summary of one batch run"""

    agent: str
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    has_more: bool = False
    next_after: int = 0
    runtime: str = "0ms"
    details: list[dict] = field(default_factory=list)
    message: str | None = None

    def to_dict(self) -> dict:
        body = {
            "success": True,
            "agent": self.agent,
            "processed": self.processed,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "hasMore": self.has_more,
            "nextAfter": self.next_after,
            "runtime": self.runtime,
            "details": self.details,
        }
        if self.message:
            body["message"] = self.message
        return body


class EnrichmentAgent:
    """
    Abstract batch enrichment agent

    Class attributes (fixed per agent, not per call):
        name: Agent name used in logs and responses
        batch_size: Records selected per run
        delay_seconds: Pause between external calls
        ceiling_seconds: Default wall-clock budget for a run
    """

    name = "enrichment"
    batch_size = 50
    delay_seconds = 0.3
    ceiling_seconds = 9.0

    def __init__(self, sleep: Callable[[float], None] | None = None):
        self.sleep = sleep or time.sleep

    def select(self, limit: int, after_id: int) -> list[dict]:
        """
        Next records needing enrichment, in id order after after_id

        Raises:
            NotImplementedError: If subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement select()")

    def process(self, record: dict) -> ItemOutcome:
        """
        Enrich one record

        May raise ClassifierError or ClassifierParseError; the run loop
        records those against the item and moves on.

        Raises:
            NotImplementedError: If subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement process()")

    def describe(self, record: dict) -> str:
        return str(record.get("name") or record.get("title") or record.get("id"))

    def run(self, after_id: int = 0, budget: Budget | None = None) -> AgentRunResult:
        """
        Process one batch within the time budget

        Args:
            after_id: Only consider records with a greater id
            budget: Time box (default: Budget(ceiling_seconds))

        Returns:
            AgentRunResult; has_more is True when the batch was full or the
            budget ran out before every selected record was processed
        """
        budget = budget or Budget(self.ceiling_seconds)
        result = AgentRunResult(agent=self.name, next_after=after_id)

        records = self.select(self.batch_size, after_id)
        if not records:
            result.message = "Nothing to do"
            result.runtime = budget.runtime_ms()
            logger.info(f"[{self.name}] nothing to enrich")
            return result

        stopped_early = False
        for position, record in enumerate(records):
            if budget.exhausted():
                stopped_early = True
                logger.info(f"[{self.name}] time budget reached after {result.processed} records")
                break

            if position > 0 and self.delay_seconds:
                self.sleep(self.delay_seconds)

            result.processed += 1
            result.next_after = record["id"]
            label = self.describe(record)

            try:
                outcome = self.process(record)
            except ClassifierParseError as e:
                logger.warning(f"[{self.name}] could not parse response for {label}: {e}")
                result.skipped += 1
                result.details.append({"id": record["id"], "name": label, "status": f"parse: {e}"})
                continue
            except ClassifierError as e:
                logger.error(f"[{self.name}] classifier failed for {label}: {e}")
                result.errors += 1
                result.details.append({"id": record["id"], "name": label, "status": f"error: {e}"})
                continue

            if outcome.updated:
                result.updated += 1
            else:
                result.skipped += 1
            result.details.append(
                {"id": record["id"], "name": label, "status": outcome.status, **outcome.fields}
            )

        result.has_more = stopped_early or len(records) == self.batch_size
        result.runtime = budget.runtime_ms()
        logger.info(
            f"[{self.name}] processed {result.processed}, updated {result.updated}, "
            f"skipped {result.skipped}, errors {result.errors}, hasMore={result.has_more}"
        )
        return result
