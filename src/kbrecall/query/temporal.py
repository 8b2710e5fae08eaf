"""Temporal reference resolution for natural-language queries.

A query such as "what happened yesterday" or "DeFi work on Feb 10" is mapped to
concrete calendar dates and from there to the daily and weekly entries that
cover them. Parsing is an ordered tuple of independent matchers; the first one
that fires wins. Nothing here raises on odd input, an unparseable query simply
resolves to a ``none`` reference.
"""

import calendar
import re
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable

from ..models import RankedResult, TemporalReference
from ..vault.entries import split_sections

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# Python weekday numbering: Monday == 0
WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
    "mon": 0, "tue": 1, "tues": 1, "wed": 2, "thu": 3, "thur": 3, "thurs": 3, "fri": 4,
}

_MONTH_NAME = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|jul(?:y)?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_ISO_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_MONTH_DAY_RE = re.compile(r"\b" + _MONTH_NAME + r"\s+(\d{1,2})(?:st|nd|rd|th)?\b")
_DAY_MONTH_RE = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+" + _MONTH_NAME + r"\b")
_YEAR_RE = re.compile(r"\b(20\d{2})\b")
_DAYS_AGO_RE = re.compile(r"\b(\d+)\s+days?\s+ago\b")
_THIS_WEEK_RE = re.compile(r"\bthis\s+week\b")
_LAST_WEEK_RE = re.compile(r"\blast\s+week\b")
_PAST_DAYS_RE = re.compile(r"\b(past|last)\s+(\d+)\s+days?\b")
_WEEK_NUM_RE = re.compile(r"\b(?:week|w)\s*(\d{1,2})\b")
_MONTH_ONLY_RE = re.compile(r"\b(?:in|during)\s+" + _MONTH_NAME + r"\b")

TEMPORAL_WORDS = [
    "today", "yesterday", "tomorrow", "last", "this", "next", "past",
    "week", "month", "day", "days", "ago", "recent", "recently",
    "when", "what time", "date",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
]

STOP_WORDS = {
    "what", "did", "the", "how", "was", "were", "are", "has", "had", "have",
    "been", "being", "about", "from", "that", "this", "with", "for",
}

# Day offsets beyond this read as noise rather than a date
MAX_DAYS_BACK = 3660

Matcher = Callable[[str, date], TemporalReference | None]


def _iso(d: date) -> str:
    return d.isoformat()


def _date_range(start: date, end: date) -> list[str]:
    return [_iso(start + timedelta(days=i)) for i in range((end - start).days + 1)]


def _explicit_year(text: str, today: date) -> int:
    match = _YEAR_RE.search(text)
    return int(match.group(1)) if match else today.year


def week_label(d: date) -> str:
    """ISO week label (Thursday-based numbering), e.g. ``2026-W07``."""
    year, week, _ = d.isocalendar()
    return f"{year}-W{week:02d}"


def match_iso_date(text: str, today: date) -> TemporalReference | None:
    match = _ISO_RE.search(text)
    if not match:
        return None
    try:
        d = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None
    return TemporalReference("exact", [_iso(d)], 1.0, match.group(0))


def match_month_day(text: str, today: date) -> TemporalReference | None:
    for pattern, month_group, day_group in ((_MONTH_DAY_RE, 1, 2), (_DAY_MONTH_RE, 2, 1)):
        match = pattern.search(text)
        if not match:
            continue
        month = MONTHS[match.group(month_group)[:3]]
        try:
            d = date(_explicit_year(text, today), month, int(match.group(day_group)))
        except ValueError:
            continue
        return TemporalReference("exact", [_iso(d)], 0.95, match.group(0))
    return None


def match_today_yesterday(text: str, today: date) -> TemporalReference | None:
    if re.search(r"\btoday\b", text):
        return TemporalReference("relative", [_iso(today)], 0.9, "today")
    if re.search(r"\byesterday\b", text):
        return TemporalReference("relative", [_iso(today - timedelta(days=1))], 0.9, "yesterday")
    return None


def match_days_ago(text: str, today: date) -> TemporalReference | None:
    match = _DAYS_AGO_RE.search(text)
    if not match or int(match.group(1)) > MAX_DAYS_BACK:
        return None
    try:
        d = today - timedelta(days=int(match.group(1)))
    except (OverflowError, ValueError):
        return None
    return TemporalReference("relative", [_iso(d)], 0.85, match.group(0))


def match_weekday(text: str, today: date) -> TemporalReference | None:
    """Most recent named weekday strictly before today.

    "last <weekday>" skips one more week unless that weekday is today.
    """
    for name, weekday in WEEKDAYS.items():
        match = re.search(rf"\b(?:last\s+)?{name}\b", text)
        if not match:
            continue
        diff = today.weekday() - weekday
        if diff <= 0:
            diff += 7
        if match.group(0).startswith("last") and diff < 7:
            diff += 7
        return TemporalReference("relative", [_iso(today - timedelta(days=diff))], 0.8, match.group(0))
    return None


def match_week_range(text: str, today: date) -> TemporalReference | None:
    monday = today - timedelta(days=today.weekday())
    if _THIS_WEEK_RE.search(text):
        start, matched = monday, "this week"
    elif _LAST_WEEK_RE.search(text):
        start, matched = monday - timedelta(days=7), "last week"
    else:
        return None
    end = start + timedelta(days=6)
    return TemporalReference(
        "range", _date_range(start, end), 0.85, matched,
        range_start=_iso(start), range_end=_iso(end), week=week_label(start),
    )


def match_past_days(text: str, today: date) -> TemporalReference | None:
    """The "past N days" range ends today; "last N days" reaches one day further back."""
    match = _PAST_DAYS_RE.search(text)
    if not match:
        return None
    n = int(match.group(2))
    if n < 1 or n > MAX_DAYS_BACK:
        return None
    offset = n if match.group(1) == "last" else n - 1
    try:
        start = today - timedelta(days=offset)
    except (OverflowError, ValueError):
        return None
    return TemporalReference(
        "range", _date_range(start, today), 0.8, match.group(0),
        range_start=_iso(start), range_end=_iso(today),
    )


def match_week_number(text: str, today: date) -> TemporalReference | None:
    match = _WEEK_NUM_RE.search(text)
    if not match:
        return None
    year = _explicit_year(text, today)
    week = int(match.group(1))
    try:
        start = date.fromisocalendar(year, week, 1)
    except ValueError:
        return None
    return TemporalReference(
        "exact", [], 0.9, match.group(0),
        range_start=_iso(start), range_end=_iso(start + timedelta(days=6)),
        week=f"{year}-W{week:02d}",
    )


def match_month_only(text: str, today: date) -> TemporalReference | None:
    match = _MONTH_ONLY_RE.search(text)
    if not match:
        return None
    year = _explicit_year(text, today)
    month = MONTHS[match.group(1)[:3]]
    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    return TemporalReference(
        "range", _date_range(start, end), 0.7, match.group(0),
        range_start=_iso(start), range_end=_iso(end),
    )


MATCHERS: tuple[Matcher, ...] = (
    match_iso_date,
    match_month_day,
    match_today_yesterday,
    match_days_ago,
    match_weekday,
    match_week_range,
    match_past_days,
    match_week_number,
    match_month_only,
)


def parse_temporal(query: str, today: date | None = None) -> TemporalReference:
    """Run the matchers in priority order; first match wins."""
    today = today or date.today()
    text = query.lower().strip()
    for matcher in MATCHERS:
        ref = matcher(text, today)
        if ref is not None:
            return ref
    return TemporalReference.none()


class TemporalResolver:
    """Parses temporal references and maps them onto existing entries."""

    def __init__(self, memory_path: str | Path, layout: dict[str, Any]):
        self.root = Path(memory_path)
        self.daily_dir = layout.get("daily_dir", "daily")
        self.weekly_dir = layout.get("weekly_dir", "weekly")

    def _exists(self, rel_path: str) -> bool:
        return (self.root / rel_path).is_file()

    def _weekly_path(self, label: str) -> str:
        return f"{self.weekly_dir}/{label}.md"

    def resolve(self, query: str, today: date | None = None) -> TemporalReference:
        ref = parse_temporal(query, today)
        if ref.found:
            ref.files = self.resolve_files(ref)
        return ref

    def resolve_files(self, ref: TemporalReference) -> list[str]:
        """Existing daily entries for each date plus the covering weekly entry.

        An explicit week (week-number or this/last week) puts its weekly entry first.
        """
        files: list[str] = []
        if ref.week and self._exists(self._weekly_path(ref.week)):
            files.append(self._weekly_path(ref.week))
        for d in ref.dates:
            daily = f"{self.daily_dir}/{d}.md"
            if self._exists(daily):
                files.append(daily)
        if ref.dates:
            weekly = self._weekly_path(week_label(date.fromisoformat(ref.dates[0])))
            if weekly not in files and self._exists(weekly):
                files.append(weekly)
        return files

    def search_files(self, ref: TemporalReference, query: str, limit: int = 10) -> list[RankedResult]:
        """Rank the resolved entries by how well their content matches the query.

        Each file contributes its best-matching section.
        """
        if not ref.files:
            return []

        tokens = content_tokens(query)
        scored: list[tuple[float, str, str]] = []
        for rel_path in ref.files:
            try:
                text = (self.root / rel_path).read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            best: tuple[float, str] | None = None
            for _, body in split_sections(text):
                score = _section_score(body, tokens) * ref.confidence
                if best is None or score > best[0]:
                    best = (score, body[:300])
            if best is not None:
                scored.append((best[0], rel_path, best[1]))

        scored.sort(key=lambda s: s[0], reverse=True)
        return [
            RankedResult(path=p, rank=i, score=score, snippet=snippet, source="temporal")
            for i, (score, p, snippet) in enumerate(scored[:limit], 1)
        ]


def strip_temporal_words(query: str) -> str:
    """Remove date words so the remaining terms can match content."""
    cleaned = query.lower()
    for word in TEMPORAL_WORDS:
        cleaned = re.sub(rf"\b{word}\b", "", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def content_tokens(query: str) -> list[str]:
    tokens = re.findall(r"[A-Za-z0-9_]+", strip_temporal_words(query))
    return [t for t in tokens if len(t) > 2 and t not in STOP_WORDS]


def _section_score(body: str, tokens: list[str]) -> float:
    if not tokens:
        return 0.5
    lower = body.lower()
    matches = sum(1 for t in tokens if t in lower)
    return 0.3 + 0.7 * (matches / len(tokens))
