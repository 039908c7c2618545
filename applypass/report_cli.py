"""
Generate a performance summary for experiments.

Usage:
    applypass-report
    applypass-report --experiment landing-cta-v1 --days 14
"""
from pathlib import Path
from typing import Optional

import typer

from applypass.core.db import SessionLocal, load_models
from applypass.core.logging_config import setup_logger
from applypass.services.experiment_service import ExperimentService
from applypass.services.report_service import render_markdown, write_report

app = typer.Typer(help="Experiment performance report.")


@app.command()
def main(
    experiment: Optional[str] = typer.Option(None, "--experiment", help="Only this experiment id"),
    days: int = typer.Option(30, "--days", min=1, help="Trailing window in days"),
    out_dir: Path = typer.Option(Path(".reports"), "--out-dir", help="Where to save the report"),
):
    """Print the report and save it as Markdown."""
    setup_logger()
    load_models()

    db = SessionLocal()
    try:
        results = ExperimentService(db).build_report(experiment_id=experiment, days=days)
    finally:
        db.close()

    report = render_markdown(results, days=days)
    typer.echo(report)
    if not results:
        return

    out_file = write_report(report, out_dir)
    typer.echo(f"\nReport saved: {out_file}")


if __name__ == "__main__":
    app()
