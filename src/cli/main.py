"""
Typer CLI for the studio homework engine.

Commands:
    homework db init              - Initialize database tables
    homework db seed              - Insert demo curriculum and flows
    homework serve                - Run the REST API
    homework flows list TEACHER   - Show a teacher's automation flows
    homework submissions TEACHER  - Show a teacher's homework submissions
    homework tracking stats CODE  - Show clicks/conversions for a tracking code

Usage:
    homework --help
    homework db init
    homework submissions teacher-demo
"""

from __future__ import annotations

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import configure_logging, get_settings

app = typer.Typer(help="Studio homework engine: teacher homework and social attribution")
db_app = typer.Typer(help="Database management (init, seed)")
flows_app = typer.Typer(help="Automation flows")
tracking_app = typer.Typer(help="Tracking links and attribution")
app.add_typer(db_app, name="db")
app.add_typer(flows_app, name="flows")
app.add_typer(tracking_app, name="tracking")

console = Console()


@app.callback()
def main_callback() -> None:
    configure_logging()


# ========================================
# Database
# ========================================


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from src.db.database import init_db

    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


@db_app.command("seed")
def db_seed(
    teacher_id: str = typer.Option("teacher-demo", "--teacher", "-t", help="Teacher owning the demo flows"),
) -> None:
    """Insert demo curriculum, a social account and two flows."""
    from src.db.database import init_db, session_scope
    from src.db.seed import seed_demo_data

    init_db()
    with session_scope() as session:
        created = seed_demo_data(session, teacher_id=teacher_id)
    if created:
        rprint(f"[green]✓[/green] Demo data seeded for {teacher_id}")
    else:
        rprint("[yellow]Demo data already present[/yellow]")


# ========================================
# Server
# ========================================


@app.command("serve")
def serve(
    host: str = typer.Option(None, help="Bind host (defaults to API_HOST)"),
    port: int = typer.Option(None, help="Bind port (defaults to API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the REST API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


# ========================================
# Reporting
# ========================================


@flows_app.command("list")
def flows_list(teacher_id: str = typer.Argument(..., help="Teacher id")) -> None:
    """Show a teacher's flows with trigger and booking counters."""
    from src.db.database import session_scope
    from src.homework.flows import FlowRegistry, flow_stats

    with session_scope() as session:
        flows = FlowRegistry(session).list_for_teacher(teacher_id)
        table = Table(title=f"Flows for {teacher_id}")
        table.add_column("Name")
        table.add_column("Trigger")
        table.add_column("Active")
        table.add_column("Triggered", justify="right")
        table.add_column("Booked", justify="right")
        table.add_column("Booking rate", justify="right")
        for flow in flows:
            stats = flow_stats(flow)
            table.add_row(
                flow.name,
                flow.trigger_type.value,
                "yes" if flow.is_active else "no",
                str(stats.total_triggered),
                str(stats.total_booked),
                f"{stats.booking_rate:.1f}%",
            )
    console.print(table)


@app.command("submissions")
def submissions_list(teacher_id: str = typer.Argument(..., help="Teacher id")) -> None:
    """Show a teacher's homework submissions, newest first."""
    from src.db.database import session_scope
    from src.homework.engine import HomeworkSubmissionEngine

    with session_scope() as session:
        engine = HomeworkSubmissionEngine(session)
        listing = engine.list_for_teacher(teacher_id)
        table = Table(title=f"Homework for {teacher_id}")
        table.add_column("Homework")
        table.add_column("Status")
        table.add_column("Progress", justify="right")
        table.add_column("Tracking code")
        table.add_column("Conversions", justify="right")
        for submission in listing.submissions:
            report = engine.progress_report(submission)
            table.add_row(
                submission.homework.title,
                submission.status.value,
                f"{report.overall_percent:.0f}%",
                submission.tracking_code or "-",
                str(submission.conversions),
            )
    console.print(table)
    if not listing.has_active_homework:
        rprint("[dim]No active homework[/dim]")


@tracking_app.command("stats")
def tracking_stats(
    code: str = typer.Argument(..., help="Tracking code"),
    audit: bool = typer.Option(False, "--audit", help="Also recount from the event log"),
) -> None:
    """Show clicks and conversions for a tracking code."""
    from src.db.database import session_scope
    from src.homework.errors import UnknownTrackingCode
    from src.homework.ledger import AttributionLedger

    with session_scope() as session:
        ledger = AttributionLedger(session)
        try:
            stats = ledger.stats_for(code)
        except UnknownTrackingCode:
            rprint(f"[red]Unknown tracking code:[/red] {code}")
            raise typer.Exit(code=1)
        rprint(f"[bold]{stats.tracking_code}[/bold]  clicks={stats.clicks}  conversions={stats.conversions}")
        if audit:
            recount = ledger.recount(code)
            ok = (recount.clicks, recount.conversions) == (stats.clicks, stats.conversions)
            colour = "green" if ok else "red"
            rprint(f"[{colour}]event log: clicks={recount.clicks} conversions={recount.conversions}[/{colour}]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
