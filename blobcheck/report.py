"""
Human-readable rendering of validation reports.
"""

import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .validator import Report


def build_tables(report: Report) -> List[Table]:
    """
    Build the tables shown for a report.

    The statistics table is only included when the report carries stats.
    """
    tables = []
    if report.suggested_params is not None:
        params_table = Table(title="Suggested Parameters")
        params_table.add_column("parameter", style="cyan")
        params_table.add_column("value")
        for key, value in report.suggested_params.items():
            params_table.add_row(key, value)
        tables.append(params_table)

    if report.stats is not None:
        stats_table = Table(title="Statistics")
        stats_table.add_column("node", justify="right")
        stats_table.add_column("read speed")
        stats_table.add_column("write speed")
        stats_table.add_column("status")
        for stat in report.stats:
            status = stat.err_str if stat.err_str else "OK"
            stats_table.add_row(str(stat.node), stat.read_speed, stat.write_speed, status)
        tables.append(stats_table)
    return tables


def print_report(report: Report, console: Optional[Console] = None) -> None:
    console = console or Console()
    for table in build_tables(report):
        console.print(table)
    if report.integrity_verified is False:
        console.print("[yellow]Restored data could not be verified against the original[/yellow]")


def report_to_dict(report: Report) -> Dict[str, Any]:
    """Plain-data form of a report, for JSON output."""
    stats = None
    if report.stats is not None:
        stats = [stat.__dict__ for stat in report.stats]
    return {
        "suggested_params": report.suggested_params.to_dict(),
        "stats": stats,
        "integrity_verified": report.integrity_verified,
    }


def report_to_json(report: Report) -> str:
    return json.dumps(report_to_dict(report), indent=2, default=str)
