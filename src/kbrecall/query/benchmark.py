"""Benchmark smart search against the raw external search.

Each case names the entries (path substrings) that count as a correct hit and,
optionally, ``|``-separated content terms that count when found in a snippet.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import yaml

from ..models import FusedResult, RankedResult
from ..search import SearchAdapter
from ..snapshots import read_json, write_json_atomic
from .concepts import ConceptIndex
from .search import smart_search
from .temporal import week_label

MISS = 99

DEFAULT_CASES = [
    {"query": "what happened yesterday", "expected": ["{yesterday}"], "category": "temporal",
     "description": "Yesterday lookup"},
    {"query": "what did I do today", "expected": ["{today}"], "category": "temporal",
     "description": "Today lookup"},
    {"query": "last week summary", "expected": ["{last_week}"], "category": "temporal",
     "description": "Last week range"},
    {"query": "what went wrong recently", "expected": ["daily/"], "content": "bug|fix|error",
     "category": "vague", "description": "Vague recent errors"},
    {"query": "important decisions", "expected": ["MEMORY.md"], "content": "decided|decision",
     "category": "vague", "description": "Vague decisions"},
    {"query": "what did I learn about myself", "expected": ["IDENTITY.md", "MEMORY.md"],
     "category": "vague", "description": "Self-knowledge query"},
    {"query": "hard rules", "expected": ["rules"], "content": "never|always",
     "category": "standard", "description": "Hard rule recall"},
]


@dataclass
class BenchmarkCase:
    query: str
    expected: list[str]
    category: str = "standard"
    description: str = ""
    content: str = ""

    def matches(self, result: FusedResult | RankedResult) -> bool:
        if any(f in result.path for f in self.expected):
            return True
        if self.content:
            snippet = (result.snippet or "").lower()
            terms = [t.strip().lower() for t in self.content.split("|")]
            return any(t and t in snippet for t in terms)
        return False

    def rank_in(self, results: list) -> int:
        for i, r in enumerate(results, 1):
            if self.matches(r):
                return i
        return MISS


@dataclass
class CaseOutcome:
    case: BenchmarkCase
    smart_rank: int
    baseline_rank: int

    @property
    def winner(self) -> str:
        if self.smart_rank < self.baseline_rank:
            return "smart"
        if self.baseline_rank < self.smart_rank:
            return "baseline"
        return "tie"


@dataclass
class BenchmarkReport:
    reference_date: str
    outcomes: list[CaseOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def _pct(self, n: int) -> int:
        return round(n / self.total * 100) if self.total else 0

    def summary(self) -> dict[str, Any]:
        by_category: dict[str, dict[str, int]] = {}
        for o in self.outcomes:
            stats = by_category.setdefault(o.case.category, {"smart": 0, "baseline": 0, "total": 0})
            stats["total"] += 1
            if o.winner != "tie":
                stats[o.winner] += 1
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "referenceDate": self.reference_date,
            "total": self.total,
            "smartWins": sum(1 for o in self.outcomes if o.winner == "smart"),
            "baselineWins": sum(1 for o in self.outcomes if o.winner == "baseline"),
            "ties": sum(1 for o in self.outcomes if o.winner == "tie"),
            "smartP1": self._pct(sum(1 for o in self.outcomes if o.smart_rank <= 1)),
            "baselineP1": self._pct(sum(1 for o in self.outcomes if o.baseline_rank <= 1)),
            "smartP3": self._pct(sum(1 for o in self.outcomes if o.smart_rank <= 3)),
            "baselineP3": self._pct(sum(1 for o in self.outcomes if o.baseline_rank <= 3)),
            "byCategory": by_category,
        }


def _fill(value: str, today: date) -> str:
    monday = today - timedelta(days=today.weekday())
    return (
        value.replace("{today}", today.isoformat())
        .replace("{yesterday}", (today - timedelta(days=1)).isoformat())
        .replace("{last_week}", week_label(monday - timedelta(days=7)))
    )


def load_cases(cases_path: str | Path | None, today: date) -> list[BenchmarkCase]:
    """Load labeled cases from YAML (a list, or ``{"cases": [...]}``), else the defaults."""
    raw: list[dict[str, Any]] = DEFAULT_CASES
    if cases_path:
        with open(cases_path) as f:
            data = yaml.safe_load(f) or []
        raw = data.get("cases", []) if isinstance(data, dict) else data

    cases = []
    for item in raw:
        expected = item.get("expected", [])
        if isinstance(expected, str):
            expected = [expected]
        cases.append(BenchmarkCase(
            query=_fill(item["query"], today),
            expected=[_fill(e, today) for e in expected],
            category=item.get("category", "standard"),
            description=item.get("description", ""),
            content=item.get("content", ""),
        ))
    return cases


def run_benchmark(
    config: dict[str, Any],
    adapter: SearchAdapter,
    today: date | None = None,
    cases: list[BenchmarkCase] | None = None,
    index: ConceptIndex | None = None,
) -> BenchmarkReport:
    today = today or date.today()
    if cases is None:
        cases = load_cases(config.get("benchmark", {}).get("cases_path"), today)
    if index is None:
        index = ConceptIndex.load(config["concept_index_path"])

    report = BenchmarkReport(reference_date=today.isoformat())
    for case in cases:
        smart = smart_search(case.query, config, limit=10, now=today, adapter=adapter, index=index)
        baseline = adapter.search(case.query, 10)
        report.outcomes.append(CaseOutcome(
            case=case,
            smart_rank=case.rank_in(smart.results),
            baseline_rank=case.rank_in(baseline),
        ))
    return report


def append_history(history_path: str | Path, record: dict[str, Any], max_entries: int = 20) -> list[dict]:
    """Append a run record to the rolling history, keeping the newest entries."""
    history = read_json(history_path, default=[])
    if not isinstance(history, list):
        history = []
    history.append(record)
    history = history[-max_entries:]
    write_json_atomic(history_path, history)
    return history
