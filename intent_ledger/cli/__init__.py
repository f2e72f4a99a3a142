"""
Command Line Interface for the Intent Ledger.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..logging_config import configure_logging
from ..records.monitor import AssumptionMonitor
from ..records.proposals import ProposalService
from ..records.services import DecisionService, IntentService

app = typer.Typer(help="Intent Ledger - project memory for intents and decisions")
console = Console()


@contextmanager
def _session() -> Iterator[Session]:
    db = get_session_local()()
    try:
        yield db
    finally:
        db.close()


def _short(text: Optional[str], width: int = 60) -> str:
    text = text or ""
    return text[:width] + "..." if len(text) > width else text


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
):
    settings = get_settings()
    configure_logging(log_level or settings.log_level, settings.log_format)


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the Intent Ledger API server."""
    from ..main import run

    rprint(Panel.fit("Starting Intent Ledger", style="bold blue"))
    run(host=host, port=port, reload=reload)


@app.command()
def init_db():
    """Create the ledger tables if they do not exist."""
    init_database()
    console.print("✅ Database initialized")


@app.command()
def intents(
    tenant: Optional[str] = typer.Option(None, help="Tenant id (defaults to the dev tenant)"),
    state: Optional[str] = typer.Option(None, help="Filter by lifecycle state"),
):
    """List intents for a tenant."""
    tenant_id = tenant or get_settings().dev_tenant_id
    with _session() as db:
        rows = IntentService(db).list(tenant_id, state=state)

        table = Table(title=f"Intents ({tenant_id})", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("State", style="green")
        table.add_column("Title")
        table.add_column("Created")
        for intent in rows:
            table.add_row(
                intent.id,
                intent.current_state,
                _short(intent.title),
                intent.to_dict()["created_at"] or "",
            )
    console.print(table)


@app.command()
def ledger(
    intent_id: str = typer.Argument(..., help="Intent whose decision ledger to show"),
):
    """Show an intent's decisions in commit order."""
    with _session() as db:
        decisions = DecisionService(db).get_ledger(intent_id)
        if not decisions:
            console.print("No decisions recorded")
            return

        table = Table(title=f"Decision ledger: {intent_id}", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="yellow")
        table.add_column("Status", style="green")
        table.add_column("Decision")
        table.add_column("Choice", style="blue")
        table.add_column("Approver")
        for decision in decisions:
            table.add_row(
                decision.id,
                "🟢 active" if decision.status == "active" else "⏹️ superseded",
                _short(decision.decision_statement),
                _short(decision.final_choice, 30),
                decision.human_approver,
            )
    console.print(table)


@app.command()
def pending(
    intent_id: Optional[str] = typer.Option(None, help="Only proposals for this intent"),
):
    """List proposals awaiting review."""
    with _session() as db:
        proposals = ProposalService(db).list_pending(intent_id=intent_id)
        if not proposals:
            console.print("No pending proposals")
            return

        table = Table(title="Pending proposals", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="yellow")
        table.add_column("Type", style="magenta")
        table.add_column("Statement")
        table.add_column("Confidence", style="blue")
        for proposal in proposals:
            confidence = proposal.confidence
            table.add_row(
                proposal.id,
                proposal.proposal_type,
                _short((proposal.content or {}).get("statement")),
                "" if confidence is None else f"{confidence:.2f}",
            )
    console.print(table)


@app.command()
def decay_check(
    intent_id: Optional[str] = typer.Option(None, help="Only check this intent"),
):
    """Report active assumptions that are expired, low-confidence or stale."""
    settings = get_settings()
    with _session() as db:
        result = AssumptionMonitor(
            db,
            stale_days=settings.assumption_stale_days,
            low_confidence=settings.assumption_low_confidence,
        ).check_for_decay(intent_id=intent_id)

    if not result.alerts:
        console.print(f"✅ {result.total_checked} assumptions checked, all healthy")
        return

    table = Table(title="Assumption decay", show_header=True, header_style="bold magenta")
    table.add_column("Assumption", style="cyan")
    table.add_column("Intent")
    table.add_column("Reason", style="red")
    table.add_column("Age (days)", style="blue")
    table.add_column("Suggested action")
    for alert in result.alerts:
        table.add_row(
            _short(alert.assumption_statement, 40),
            _short(alert.intent_title, 30),
            alert.reason,
            str(alert.days_since_created),
            alert.suggested_action,
        )
    console.print(table)
    console.print(
        f"{len(result.alerts)} of {result.total_checked} assumptions need attention"
    )


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Intent Ledger v{__version__}", style="bold green"))


if __name__ == "__main__":
    app()
