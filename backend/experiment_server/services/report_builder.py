"""
Report Builder
==============

Turns the aggregator's counters into a ReportDocument.

The HTML is deliberately plain (a greeting and a two-column table) so it
renders the same in every mail client the operators use.
"""

import html
from datetime import datetime
from typing import Mapping

from experiment_server.models import ReportDocument, ReportWindow


# Dedupe key that never matches a real (day, hour)
INITIAL_DEDUPE_KEY = "-1--1"


def dedupe_key(now: datetime) -> str:
    """Key that identifies the calendar hour of `now`, e.g. "14-9"."""
    return f"{now.day}-{now.hour}"


def format_timestamp(value: datetime) -> str:
    """RFC 3339 timestamp, seconds precision."""
    return value.isoformat(timespec="seconds")


def compile_report(counters: Mapping[str, int], window: ReportWindow) -> ReportDocument:
    """
    Build the report for one window.

    Args:
        counters: Submission count per beacon for the window
        window: The (start, end] span being reported

    Returns:
        The compiled report. An empty counter table still gives a report,
        just with no rows.
    """
    rows = tuple(sorted(counters.items()))
    start = format_timestamp(window.start)
    end = format_timestamp(window.end)

    table_rows = "".join(
        f"        <tr><td>{html.escape(source_id)}</td><td>{count}</td></tr>\n"
        for source_id, count in rows
    )
    html_content = (
        f"Hey,<br><br>Between {start} and {end} the following submission were made:<br><br>\n"
        "<table>\n"
        "    <thead>\n"
        "        <tr>\n"
        "            <th>ID</th><th>Count</th>\n"
        "        </tr>\n"
        "    </thead>\n"
        "    <tbody>\n"
        f"{table_rows}"
        "    </tbody>\n"
        "</table>"
    )

    # Plain text version
    lines = [f"Between {start} and {end} the following submission were made:", ""]
    if rows:
        width = max(len(source_id) for source_id, _ in rows)
        lines.extend(f"{source_id.ljust(width)}  {count}" for source_id, count in rows)
    else:
        lines.append("(no submissions)")
    text_content = "\n".join(lines)

    return ReportDocument(window=window, rows=rows, html=html_content, text=text_content)
