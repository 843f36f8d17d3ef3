"""Report generation for load test results."""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from ..models.report import LoadTestReport


class ReportGenerator:
    """Write reports to disk and render them on the console."""

    def __init__(self, output_dir: str = "./load_test_results", console: Optional[Console] = None):
        self.output_dir = Path(output_dir)
        self.console = console or Console()

    def generate_json(self, report: LoadTestReport) -> Path:
        """Generate JSON report file."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.output_dir / f"{report.test_id}.json"

        with open(filepath, "w") as f:
            json.dump(report.to_dict(), f, indent=2)

        return filepath

    def print_console_summary(self, report: LoadTestReport) -> None:
        """Print rich console summary."""
        console = self.console
        status = "[yellow]cancelled[/yellow]" if report.cancelled else "[green]completed[/green]"

        console.rule("[bold]LOAD TEST REPORT")
        console.print(f"  Test ID:      {report.test_id}")
        console.print(f"  Target:       {report.scenario.get('base_url', '')}")
        console.print(f"  Started:      {report.start_time.strftime('%Y-%m-%d %H:%M:%S')}")
        console.print(f"  Duration:     {report.duration_seconds:.1f} seconds ({status})")
        if report.forced_stops:
            console.print(f"  [red]VUs cancelled during drain: {report.forced_stops}[/red]")
        console.print()

        metrics = report.metrics
        summary = Table(title="Summary", box=box.SIMPLE_HEAD)
        summary.add_column("Metric")
        summary.add_column("Value", justify="right")
        summary.add_row("Requests", str(metrics.requests_total))
        summary.add_row("Throughput", f"{report.throughput_rps:.1f}/s")
        summary.add_row("Iterations", str(metrics.iterations))
        summary.add_row("Peak VUs", str(metrics.vus_max))
        summary.add_row("Checks passed", f"{report.checks_pass_rate:.1f}%")
        console.print(summary)

        checks = Table(title="Checks", box=box.SIMPLE_HEAD)
        checks.add_column("Check")
        checks.add_column("Passed", justify="right", style="green")
        checks.add_column("Failed", justify="right", style="red")
        checks.add_column("Rate", justify="right")
        for name, counts in sorted(metrics.checks.items()):
            checks.add_row(name, str(counts.passed), str(counts.failed), f"{counts.pass_rate:.1f}%")
        console.print(checks)

        latency = Table(title="Latency (ms)", box=box.SIMPLE_HEAD)
        latency.add_column("Request")
        for column in ("Count", "Avg", "Min", "Med", "Max", "P90", "P95", "P99"):
            latency.add_column(column, justify="right")
        rows = [("all", report.latency)] + sorted(report.latency_by_tag().items())
        for tag, s in rows:
            latency.add_row(
                tag,
                str(s.count),
                f"{s.avg_ms:.1f}",
                f"{s.min_ms:.1f}",
                f"{s.med_ms:.1f}",
                f"{s.max_ms:.1f}",
                f"{s.p90_ms:.1f}",
                f"{s.p95_ms:.1f}",
                f"{s.p99_ms:.1f}",
            )
        console.print(latency)

        if metrics.errors:
            errors = Table(title="Errors", box=box.SIMPLE_HEAD)
            errors.add_column("Category")
            errors.add_column("Count", justify="right", style="red")
            for category, count in sorted(metrics.errors.items()):
                errors.add_row(category, str(count))
            console.print(errors)

        console.rule()


def print_progress(message: str, console: Optional[Console] = None) -> None:
    """Print progress message."""
    timestamp = datetime.now().strftime("%H:%M:%S")
    (console or Console(stderr=True)).print(f"[dim][{timestamp}][/dim] {message}")
