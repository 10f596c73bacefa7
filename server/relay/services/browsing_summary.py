"""Build the message text posted to the assistant from browsing context."""
from __future__ import annotations

import csv
import io
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..models.schemas import BrowsingData, VisitRecord

TOP_DOMAIN_LIMIT = 10
TITLE_PREVIEW_CHARS = 80
CSV_HEADERS = ["domain", "title", "date", "readableTime", "activeTimeMinutes"]
CSV_UPLOAD_NOTE = "Your browsing data has been uploaded as a CSV file for analysis."


@dataclass(slots=True)
class ComposedMessage:
    """Text to post on the thread plus an optional CSV attachment body."""

    content: str
    csv_payload: Optional[str] = None


def _visit_datetime(visit: VisitRecord) -> datetime:
    return datetime.fromtimestamp(visit.start_time / 1000, tz=timezone.utc)


def _display_time(visit: VisitRecord) -> str:
    if visit.readable_time:
        return visit.readable_time
    moment = _visit_datetime(visit)
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment.minute:02d} {'PM' if moment.hour >= 12 else 'AM'}"


def _sorted_visits(data: BrowsingData) -> list[VisitRecord]:
    return sorted(data.today.all_visits, key=lambda visit: visit.start_time, reverse=True)


def _ms_to_minutes(value: float) -> int:
    return int(round(value / (1000 * 60)))


def build_compact_summary(data: BrowsingData) -> str:
    """Summarise one day of browsing as plain text, most recent visit first."""

    day = data.today
    visits = _sorted_visits(data)

    domain_minutes: dict[str, int] = defaultdict(int)
    for visit in visits:
        domain_minutes[visit.domain] += visit.active_time_minutes
    top_domains = sorted(domain_minutes.items(), key=lambda item: item[1], reverse=True)[:TOP_DOMAIN_LIMIT]

    visit_lines = [
        f"{visit.domain} ({visit.active_time_minutes}min) at {_display_time(visit)} - "
        f"{(visit.title or '')[:TITLE_PREVIEW_CHARS] or 'No title'}"
        for visit in visits
    ]
    active_count = sum(1 for visit in visits if visit.active_time_minutes > 0)

    lines = [
        f"BROWSING DATA for {day.date}:",
        "",
        "STATS:",
        f"- Total visits: {len(visits)} ({active_count} with active time)",
        f"- Total active time: {day.total_active_minutes} minutes",
        f"- Tab sessions: {day.tab_sessions}",
        (
            f"- Work: {_ms_to_minutes(day.stats.work_time)}min, "
            f"Social: {_ms_to_minutes(day.stats.social_time)}min, "
            f"Other: {_ms_to_minutes(day.stats.other_time)}min"
        ),
        "",
        "TOP DOMAINS BY TIME:",
        *[f"{domain}: {minutes}min" for domain, minutes in top_domains],
        "",
        "ALL VISITS (MOST RECENT FIRST - chronological order):",
        *visit_lines,
    ]
    return "\n".join(lines)


def build_visits_csv(data: BrowsingData) -> str:
    """Render the day's visits as CSV with a leading summary row."""

    day = data.today
    visits = _sorted_visits(data)

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    buffer.write(",".join(CSV_HEADERS) + "\n")
    writer.writerow(
        [
            "SUMMARY_DATA",
            (
                f"Total visits: {len(visits)}, Active minutes: {day.total_active_minutes}, "
                f"Sessions: {day.tab_sessions}"
            ),
            day.date,
            "Summary",
            day.total_active_minutes,
        ]
    )
    for visit in visits:
        writer.writerow(
            [
                visit.domain,
                visit.title or "",
                _visit_datetime(visit).date().isoformat(),
                _display_time(visit),
                visit.active_time_minutes,
            ]
        )
    return buffer.getvalue().rstrip("\n")


def compose_message(
    user_message: str,
    browsing_data: Optional[BrowsingData] = None,
    system_context: Optional[str] = None,
    *,
    max_inline_chars: int = 20_000,
) -> ComposedMessage:
    """Combine the user's question with optional system and browsing context.

    Summaries longer than ``max_inline_chars`` are replaced by a CSV payload the
    caller uploads and attaches to the message.
    """

    if browsing_data is None:
        return ComposedMessage(content=user_message)

    prefix = f"{system_context}\n\n" if system_context else ""
    summary = build_compact_summary(browsing_data)
    if len(summary) > max_inline_chars:
        return ComposedMessage(
            content=f"{prefix}{CSV_UPLOAD_NOTE}\n\nUser question: {user_message}",
            csv_payload=build_visits_csv(browsing_data),
        )
    return ComposedMessage(content=f"{prefix}{summary}\n\nUser question: {user_message}")
