"""
Flask API for ingestion and scheduled batch work

Data producers POST batches to /api/ingest/* with a bearer token.
A scheduler calls the GET batch endpoints repeatedly until hasMore is false.
"""

import hmac
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from jobfeed import __version__
from jobfeed.api.company_service import CompanyService
from jobfeed.api.fundraise_service import FundraiseService
from jobfeed.api.investor_service import InvestorService
from jobfeed.api.job_service import JobReconciler
from jobfeed.api.metrics_service import MetricsService, is_valid_metric_date
from jobfeed.config import Settings
from jobfeed.enrichment import (
    AtsDetector,
    AtsUrlAgent,
    CompanyProfileAgent,
    FunctionClassifierAgent,
    InvestorProfileAgent,
    PostedDateBackfill,
)
from jobfeed.exceptions import ConfigurationError, JobFeedError
from jobfeed.extractors.llm_client import PerplexityClient
from jobfeed.jobs import FeedSync, OnboardPipeline
from jobfeed.utils.rate_limiter import InMemoryRateLimiter, RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Database-backed services shared by all requests"""

    companies: CompanyService
    jobs: JobReconciler
    investors: InvestorService
    fundraises: FundraiseService
    metrics: MetricsService

    @classmethod
    def from_path(cls, db_path: str) -> "Services":
        return cls(
            companies=CompanyService(db_path),
            jobs=JobReconciler(db_path),
            investors=InvestorService(db_path),
            fundraises=FundraiseService(db_path),
            metrics=MetricsService(db_path),
        )


def _services() -> Services:
    return current_app.extensions["jobfeed.services"]


def _settings() -> Settings:
    return current_app.extensions["jobfeed.settings"]


def _client() -> PerplexityClient:
    """
    Raises:
        ConfigurationError: If no classifier key is configured
    """
    return current_app.extensions["jobfeed.client_factory"](_settings())


def _client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


# ----------------------------------------------------------------------
# Request guards
# ----------------------------------------------------------------------


def _matches(given: str, expected: str) -> bool:
    """Constant-time secret comparison"""
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def require_ingest_auth(view):
    """Bearer INGEST_API_KEY check, then per-client rate limit"""

    @wraps(view)
    def wrapper(*args, **kwargs):
        key = _settings().ingest_api_key
        if not key:
            logger.error("INGEST_API_KEY is not configured")
            return jsonify({"error": "Server misconfigured"}), 500

        auth_header = request.headers.get("Authorization", "")
        token = auth_header[7:] if auth_header.startswith("Bearer ") else ""
        if not token or not _matches(token, key):
            return jsonify({"error": "Unauthorized"}), 401

        limiter: RateLimiter = current_app.extensions["jobfeed.rate_limiter"]
        client_key = f"ingest:{_client_ip()}"
        if not limiter.allow(client_key):
            response = jsonify({"error": "Too many requests"})
            reset_in = getattr(limiter, "reset_in", None)
            if reset_in:
                response.headers["Retry-After"] = str(int(reset_in(client_key)) + 1)
            return response, 429

        return view(*args, **kwargs)

    return wrapper


def require_sync_secret(view):
    """When SYNC_SECRET is set, batch endpoints need ?secret=<value>"""

    @wraps(view)
    def wrapper(*args, **kwargs):
        secret = _settings().sync_secret
        if secret and not _matches(request.args.get("secret", ""), secret):
            return jsonify({"success": False, "error": "Unauthorized"}), 401
        return view(*args, **kwargs)

    return wrapper


def parse_body() -> dict | None:
    """Request JSON as a dict, or None when the body isn't valid JSON"""
    return request.get_json(silent=True)


def require_array(body, key: str):
    """Return body[key] if it is a list, else a 400 response tuple"""
    items = body.get(key) if isinstance(body, dict) else None
    if not isinstance(items, list):
        return None, (jsonify({"error": f'"{key}" must be an array'}), 400)
    return items, None


def ingest_handler(key: str, handle: Callable[[dict, list], dict]):
    """Shared body parsing for the ingest endpoints"""
    body = parse_body()
    if body is None:
        return jsonify({"error": "Invalid JSON body"}), 400

    items, error_response = require_array(body, key)
    if error_response:
        return error_response

    return jsonify(handle(body, items)), 200


def _after_param() -> int:
    try:
        return max(0, int(request.args.get("after", 0)))
    except ValueError:
        return 0


# ----------------------------------------------------------------------
# App factory
# ----------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    services: Services | None = None,
    rate_limiter: RateLimiter | None = None,
    client_factory: Callable[[Settings], PerplexityClient] | None = None,
) -> Flask:
    """
    Build the Flask app

    Args:
        settings: Runtime settings (default: Settings.from_env())
        services: Database services (default: built from settings.database_path)
        rate_limiter: Ingest rate limiter (default: in-memory sliding window)
        client_factory: Builds the classifier client; raises ConfigurationError
            when no key is configured (default: PerplexityClient.from_settings)
    """
    settings = settings or Settings.from_env()

    # CSRF protection not needed: stateless API with bearer-token auth only
    app = Flask(__name__)  # NOSONAR
    CORS(
        app,
        resources={
            r"/*": {"origins": [o.strip() for o in settings.cors_origins.split(",") if o.strip()]}
        },
    )

    app.extensions["jobfeed.settings"] = settings
    app.extensions["jobfeed.services"] = services or Services.from_path(settings.database_path)
    app.extensions["jobfeed.rate_limiter"] = rate_limiter or InMemoryRateLimiter(
        settings.ingest_rate_limit, settings.ingest_rate_window_seconds
    )
    app.extensions["jobfeed.client_factory"] = client_factory or PerplexityClient.from_settings

    @app.errorhandler(ConfigurationError)
    def handle_configuration_error(e):
        logger.error(f"Configuration error: {e}")
        return jsonify({"success": False, "error": str(e)}), 500

    @app.errorhandler(JobFeedError)
    def handle_jobfeed_error(e):
        logger.error(f"Request failed: {e}")
        return jsonify({"success": False, "error": str(e)}), 500

    @app.errorhandler(sqlite3.Error)
    def handle_database_error(e):
        logger.error(f"Database error: {e}")
        return jsonify({"success": False, "error": str(e)}), 500

    register_routes(app)
    return app


def register_routes(app: Flask) -> None:
    @app.route("/")
    def home():
        """API health check"""
        return jsonify(
            {
                "status": "ok",
                "message": "jobfeed ingestion API",
                "version": __version__,
                "endpoints": {
                    "POST /api/ingest/companies": "Upsert companies by slug",
                    "POST /api/ingest/jobs": "Reconcile jobs, optionally closing missing ones",
                    "POST /api/ingest/investors": "Upsert investors and portfolio links",
                    "POST /api/ingest/fundraises": "Upsert funding rounds and participants",
                    "POST /api/ingest/metrics": "Upsert daily hiring metrics",
                    "GET /api/onboard-batch": "Onboard the next company without an ATS URL",
                    "GET /api/onboard-company?id=": "Onboard one company",
                    "GET /api/sync-jobs": "Refresh jobs from known feeds",
                    "GET /api/enrich-ats-urls": "Find feed URLs for companies",
                    "GET /api/enrich-investors": "Fill investor bio and location",
                    "GET /api/enrich-companies": "Fill company stage and size",
                    "GET /api/backfill-functions": "Classify jobs without a function",
                    "GET /api/backfill-dates": "Recover posted dates from raw feed JSON",
                },
            }
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    @app.route("/api/ingest/companies", methods=["POST"])
    @require_ingest_auth
    def ingest_companies():
        """
        Expected JSON body:
        {"companies": [{"name": "Acme Corp", "slug": "acme-corp", "website": "...", ...}]}
        """
        return ingest_handler(
            "companies",
            lambda body, items: _services().companies.ingest_companies(items).to_response(),
        )

    @app.route("/api/ingest/jobs", methods=["POST"])
    @require_ingest_auth
    def ingest_jobs():
        """
        Expected JSON body:
        {
            "jobs": [{"company_id": 1, "title": "...", "ats_job_id": "...", ...}],
            "close_missing_for_companies": [1]
        }
        """

        def handle(body, items):
            close_for = body.get("close_missing_for_companies") or []
            if not isinstance(close_for, list):
                close_for = []
            company_ids = []
            for value in close_for:
                try:
                    company_ids.append(int(value))
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring invalid close_missing company id: {value!r}")
            return _services().jobs.reconcile(items, close_missing_for=company_ids).to_response()

        return ingest_handler("jobs", handle)

    @app.route("/api/ingest/investors", methods=["POST"])
    @require_ingest_auth
    def ingest_investors():
        return ingest_handler(
            "investors",
            lambda body, items: _services().investors.ingest_investors(items).to_response(),
        )

    @app.route("/api/ingest/fundraises", methods=["POST"])
    @require_ingest_auth
    def ingest_fundraises():
        return ingest_handler(
            "fundraises",
            lambda body, items: _services().fundraises.ingest_fundraises(items).to_response(),
        )

    @app.route("/api/ingest/metrics", methods=["POST"])
    @require_ingest_auth
    def ingest_metrics():
        """
        Expected JSON body:
        {"date": "2025-01-31", "metrics": [{"company_id": 1, "active_roles": 12, ...}]}
        """
        body = parse_body()
        if body is None:
            return jsonify({"error": "Invalid JSON body"}), 400

        metric_date = body.get("date") if isinstance(body, dict) else None
        if not is_valid_metric_date(metric_date):
            return (
                jsonify(
                    {
                        "inserted": 0,
                        "errors": [{"index": -1, "message": '"date" must be YYYY-MM-DD'}],
                    }
                ),
                400,
            )

        items, error_response = require_array(body, "metrics")
        if error_response:
            return error_response

        return jsonify(_services().metrics.ingest_metrics(metric_date, items)), 200

    # ------------------------------------------------------------------
    # Scheduled batch work
    # ------------------------------------------------------------------

    @app.route("/api/onboard-batch", methods=["GET"])
    @require_sync_secret
    def onboard_batch():
        services = _services()
        client = _client()
        pipeline = OnboardPipeline(
            services.companies, services.jobs, AtsDetector(client), client
        )
        return jsonify(pipeline.onboard_next())

    @app.route("/api/onboard-company", methods=["GET"])
    @require_sync_secret
    def onboard_company():
        try:
            company_id = int(request.args.get("id", ""))
        except ValueError:
            return jsonify({"success": False, "error": "Missing or invalid ?id="}), 400

        services = _services()
        client = _client()
        pipeline = OnboardPipeline(
            services.companies, services.jobs, AtsDetector(client), client
        )
        result = pipeline.onboard_company(company_id)
        status = 200 if result.success else (result.status_code or 500)
        return jsonify(result.to_dict()), status

    @app.route("/api/sync-jobs", methods=["GET"])
    @require_sync_secret
    def sync_jobs():
        try:
            offset = max(0, int(request.args.get("offset", 0)))
        except ValueError:
            offset = 0
        services = _services()
        return jsonify(FeedSync(services.companies, services.jobs).sync_feeds(offset=offset))

    @app.route("/api/enrich-ats-urls", methods=["GET"])
    @require_sync_secret
    def enrich_ats_urls():
        agent = AtsUrlAgent(_services().companies, AtsDetector(_client()))
        return jsonify(agent.run(after_id=_after_param()).to_dict())

    @app.route("/api/enrich-investors", methods=["GET"])
    @require_sync_secret
    def enrich_investors():
        agent = InvestorProfileAgent(_services().investors, _client())
        return jsonify(agent.run(after_id=_after_param()).to_dict())

    @app.route("/api/enrich-companies", methods=["GET"])
    @require_sync_secret
    def enrich_companies():
        agent = CompanyProfileAgent(_services().companies, _client())
        return jsonify(agent.run(after_id=_after_param()).to_dict())

    @app.route("/api/backfill-functions", methods=["GET"])
    @require_sync_secret
    def backfill_functions():
        agent = FunctionClassifierAgent(_services().jobs.db, _client())
        return jsonify(agent.run(after_id=_after_param()).to_dict())

    @app.route("/api/backfill-dates", methods=["GET"])
    @require_sync_secret
    def backfill_dates():
        agent = PostedDateBackfill(_services().jobs.db)
        return jsonify(agent.run(after_id=_after_param()).to_dict())
