from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from applypass.models.schemas.experiment import ExperimentResultsModel


def _pct(value: Optional[float]) -> str:
    return "—" if value is None else f"{value * 100:.1f}%"


def render_markdown(
    results: Iterable[ExperimentResultsModel], days: int, generated_at: Optional[datetime] = None
) -> str:
    """Markdown performance report, one section per experiment."""
    results = list(results)
    generated_at = generated_at or datetime.now(timezone.utc)

    if not results:
        return "No experiments found."

    lines = [
        "# Experiment Performance Report",
        "",
        f"Generated: {generated_at.isoformat()}",
        f"Window: last {days} days (since {results[0].since.isoformat()})",
        "",
    ]

    for result in results:
        started = result.started_at.isoformat() if result.started_at else "not started"
        lines.append(f"## {result.experiment_id} — {result.name}")
        lines.append(f"Status: {result.status.value} | Started: {started}")
        lines.append("")
        lines.append("| Variant | Enrolled | Activated | Activation% | Conversions | Conv% |")
        lines.append("|---------|----------|-----------|-------------|-------------|-------|")
        for s in result.variant_stats:
            lines.append(
                f"| {s.variant} | {s.enrolled} | {s.activated} | {_pct(s.activation_rate)} "
                f"| {s.converters} | {_pct(s.conversion_rate)} |"
            )
        lines.append("")

        sig = result.significance
        if sig is not None:
            verdict = "Significant (p<0.05)" if sig.significant else "Not yet significant"
            lift = "—" if sig.relative_lift is None else f"{sig.relative_lift * 100:.1f}% relative lift"
            lines.append(f"**Significance (conversion):** {verdict} | p={sig.p_value:.3f}")
            lines.append(f"**Relative lift:** {lift}")
            lines.append(
                f"**Wilson CI lower bound:** control={sig.wilson_low_control:.4f}, "
                f"treatment={sig.wilson_low_treatment:.4f}"
            )
        lines.append("")
        lines.append("---")
        lines.append("")

    return "\n".join(lines)


def write_report(report: str, out_dir: Path, generated_at: Optional[datetime] = None) -> Path:
    generated_at = generated_at or datetime.now(timezone.utc)
    out_dir.mkdir(parents=True, exist_ok=True)
    stamp = generated_at.strftime("%Y-%m-%dT%H-%M-%S")
    out_file = out_dir / f"experiment-report-{stamp}.md"
    out_file.write_text(report, encoding="utf-8")
    return out_file
