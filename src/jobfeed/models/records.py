"""
Ingestion payload models

Producers POST batches of these to /api/ingest/*. Required fields are
declared optional here and checked by the services, so that a missing
field becomes an itemized error instead of a rejected batch. Fields the
producer leaves out stay unset (model_fields_set) and are not written,
which keeps partial updates from erasing stored values.
"""

from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

JobStatus = Literal["active", "closed"]


class CompanyPayload(BaseModel):
    """Company record from a data producer"""

    name: str | None = None
    slug: str | None = None
    website: str | None = None
    logo_url: str | None = None
    description: str | None = None
    location: str | None = None
    stage: str | None = None
    size: str | None = None
    ats_platform: str | None = None
    ats_url: str | None = None
    careers_url: str | None = None
    status: str | None = None


class JobPayload(BaseModel):
    """Job record; (company_id, ats_job_id) is the natural key when ats_job_id is set"""

    company_id: int | None = None
    title: str | None = None
    ats_job_id: str | None = None
    ats_url: str | None = None
    apply_url: str | None = None
    location: str | None = None
    country: str | None = None
    remote_status: str | None = None
    function: str | None = None
    description: str | None = None
    salary: str | None = None
    posted_date: str | None = None
    raw_json: str | None = None
    status: JobStatus | None = None

    @field_validator("ats_job_id", mode="before")
    @classmethod
    def coerce_job_id(cls, v):
        """Greenhouse ids arrive as integers; the key column is text"""
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class InvestorPayload(BaseModel):
    """Investor record with optional portfolio company ids"""

    name: str | None = None
    slug: str | None = None
    type: str | None = None
    logo_url: str | None = None
    website: str | None = None
    bio: str | None = None
    location: str | None = None
    portfolio_company_ids: list[int] = Field(default_factory=list)


class FundraisePayload(BaseModel):
    """Fundraise keyed by (company_id, round_type, date_announced)"""

    company_id: int | None = None
    round_type: str | None = None
    amount: float | None = None
    date_announced: str | None = None
    source_url: str | None = None
    source_name: str | None = None
    lead_investor_ids: list[int] = Field(default_factory=list)
    co_investor_ids: list[int] = Field(default_factory=list)


class MetricPayload(BaseModel):
    """Daily hiring metrics for one company"""

    company_id: int | None = None
    active_roles: int | None = None
    new_roles: int | None = None
    closed_roles: int | None = None
    roles_by_function: dict[str, int] | None = None


class IngestError(BaseModel):
    """One failed item; index -1 means a batch-level step (e.g. close-missing)"""

    index: int
    message: str


class IngestResult(BaseModel):
    """Standard ingest response body"""

    created: int = 0
    updated: int = 0
    closed: int | None = None
    errors: list[IngestError] = Field(default_factory=list)

    def add_error(self, index: int, message: str) -> None:
        self.errors.append(IngestError(index=index, message=message))

    def to_response(self) -> dict:
        body = self.model_dump(exclude_none=True)
        body["errors"] = [e.model_dump() for e in self.errors]
        return body


def validation_message(error: ValidationError) -> str:
    """First pydantic error as 'field: message'"""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "item"
    return f"{location}: {first.get('msg', 'invalid value')}"
