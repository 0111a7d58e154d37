#!/usr/bin/env python3
"""
Command line entry point

Runs the same batch work the scheduler triggers over HTTP, either once or
in a loop until there is nothing left to do.

Usage:
    jobfeed init-db
    jobfeed onboard [--loop]
    jobfeed onboard-company 42
    jobfeed sync [--loop]
    jobfeed enrich functions|investors|companies|ats-urls|dates [--loop]
    jobfeed serve [--host 127.0.0.1] [--port 5000]
"""

import argparse
import logging
import time

from rich import box
from rich.console import Console
from rich.table import Table

from jobfeed.api.company_service import CompanyService
from jobfeed.api.investor_service import InvestorService
from jobfeed.api.job_service import JobReconciler
from jobfeed.config import Settings
from jobfeed.database import JobFeedDatabase
from jobfeed.enrichment import (
    AtsDetector,
    AtsUrlAgent,
    CompanyProfileAgent,
    EnrichmentAgent,
    FunctionClassifierAgent,
    InvestorProfileAgent,
    PostedDateBackfill,
)
from jobfeed.exceptions import ConfigurationError
from jobfeed.extractors.llm_client import PerplexityClient
from jobfeed.jobs import FeedSync, OnboardPipeline

logger = logging.getLogger(__name__)

console = Console()

AGENT_NAMES = ["functions", "investors", "companies", "ats-urls", "dates"]


def build_agent(name: str, settings: Settings) -> EnrichmentAgent:
    """
    Raises:
        ConfigurationError: If the agent needs a classifier and no key is set
    """
    db_path = settings.database_path
    if name == "dates":
        return PostedDateBackfill(JobFeedDatabase(db_path))

    client = PerplexityClient.from_settings(settings)
    if name == "functions":
        return FunctionClassifierAgent(JobFeedDatabase(db_path), client)
    if name == "investors":
        return InvestorProfileAgent(InvestorService(db_path), client)
    if name == "companies":
        return CompanyProfileAgent(CompanyService(db_path), client)
    if name == "ats-urls":
        return AtsUrlAgent(CompanyService(db_path), AtsDetector(client))
    raise ValueError(f"Unknown agent: {name}")


def print_summary(title: str, summary: dict, keys: list[str]) -> None:
    table = Table(title=title, box=box.ROUNDED, show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key in keys:
        if key in summary:
            value = summary[key]
            table.add_row(key, str(len(value) if isinstance(value, list) else value))
    console.print(table)


def cmd_init_db(args, settings: Settings) -> int:
    JobFeedDatabase(settings.database_path)
    console.print(f"[green]Database ready:[/green] {settings.database_path}")
    return 0


def cmd_onboard(args, settings: Settings) -> int:
    client = PerplexityClient.from_settings(settings)
    pipeline = OnboardPipeline(
        CompanyService(settings.database_path),
        JobReconciler(settings.database_path),
        AtsDetector(client),
        client,
    )

    while True:
        body = pipeline.onboard_next()
        print_summary(
            body.get("company_name") or "Onboarding",
            body,
            ["ats_platform", "ats_url", "jobs_fetched", "jobs_created", "jobs_closed",
             "ats_not_found", "hasMore", "runtime"],
        )  # fmt: skip
        for step in body.get("steps", []):
            console.print(f"  • {step}")

        if not (args.loop and body.get("hasMore")):
            return 0
        time.sleep(args.pause)


def cmd_onboard_company(args, settings: Settings) -> int:
    client = PerplexityClient.from_settings(settings)
    pipeline = OnboardPipeline(
        CompanyService(settings.database_path),
        JobReconciler(settings.database_path),
        AtsDetector(client),
        client,
    )
    result = pipeline.onboard_company(args.company_id)
    print_summary(
        result.company_name or f"Company {args.company_id}",
        result.to_dict(),
        ["success", "ats_platform", "ats_url", "jobs_fetched", "jobs_created", "jobs_updated",
         "jobs_closed", "company_enriched", "error", "runtime"],
    )  # fmt: skip
    for step in result.steps:
        console.print(f"  • {step}")
    return 0 if result.success else 1


def cmd_sync(args, settings: Settings) -> int:
    sync = FeedSync(CompanyService(settings.database_path), JobReconciler(settings.database_path))
    offset = args.offset

    while True:
        summary = sync.sync_feeds(offset=offset)
        print_summary(
            f"Feed sync (offset {offset})",
            summary,
            ["processed", "created", "updated", "closed", "errors", "hasMore", "runtime"],
        )
        for error in summary["errors"]:
            console.print(f"  [red]✗[/red] {error.get('name')}: {error.get('message')}")

        if not (args.loop and summary["hasMore"]):
            return 0
        offset = summary["nextOffset"]
        time.sleep(args.pause)


def cmd_enrich(args, settings: Settings) -> int:
    agent = build_agent(args.agent, settings)
    after_id = 0

    while True:
        result = agent.run(after_id=after_id).to_dict()
        print_summary(
            f"Enrich {args.agent}",
            result,
            ["processed", "updated", "skipped", "errors", "hasMore", "runtime"],
        )

        if not (args.loop and result["hasMore"]):
            return 0
        after_id = result["nextAfter"]
        time.sleep(args.pause)


def cmd_serve(args, settings: Settings) -> int:
    from jobfeed.api.app import create_app

    app = create_app(settings)
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobfeed", description="Job board ingestion pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database schema")

    onboard = sub.add_parser("onboard", help="Onboard the next company without an ATS URL")
    onboard.add_argument("--loop", action="store_true", help="Repeat until nothing is left")
    onboard.add_argument("--pause", type=float, default=2.0, help="Seconds between runs")

    onboard_one = sub.add_parser("onboard-company", help="Onboard one company by id")
    onboard_one.add_argument("company_id", type=int)

    sync = sub.add_parser("sync", help="Refresh jobs from known feeds")
    sync.add_argument("--loop", action="store_true", help="Repeat until every feed is synced")
    sync.add_argument("--offset", type=int, default=0, help="Companies to skip")
    sync.add_argument("--pause", type=float, default=1.0, help="Seconds between runs")

    enrich = sub.add_parser("enrich", help="Run an enrichment agent")
    enrich.add_argument("agent", choices=AGENT_NAMES)
    enrich.add_argument("--loop", action="store_true", help="Walk the whole backlog once")
    enrich.add_argument("--pause", type=float, default=1.0, help="Seconds between runs")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--debug", action="store_true")

    return parser


COMMANDS = {
    "init-db": cmd_init_db,
    "onboard": cmd_onboard,
    "onboard-company": cmd_onboard_company,
    "sync": cmd_sync,
    "enrich": cmd_enrich,
    "serve": cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args, settings)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
