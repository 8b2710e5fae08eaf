"""Search adapter that shells out to an external search command."""

import json
import subprocess
from typing import Any

from .base import SearchAdapter


class CommandSearchAdapter(SearchAdapter):
    """Runs an argv template and parses ``{"results": [...]}`` from stdout.

    ``{query}`` and ``{max_results}`` placeholders in the template are filled
    per call, e.g. ``["memory", "search", "{query}", "--json", "--max-results", "{max_results}"]``.
    """

    def __init__(self, command: list[str], timeout: float = 15.0):
        super().__init__(timeout=timeout)
        if not command:
            raise ValueError("search.command must be a non-empty argv list")
        self.command = list(command)

    def build_argv(self, query: str, max_results: int) -> list[str]:
        return [
            part.replace("{query}", query).replace("{max_results}", str(max_results))
            for part in self.command
        ]

    def _search(self, query: str, max_results: int) -> list[dict[str, Any]]:
        result = subprocess.run(
            self.build_argv(query, max_results),
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if result.returncode != 0:
            raise RuntimeError(f"exit {result.returncode}: {result.stderr.strip()[:200]}")
        data = json.loads(result.stdout)
        return data.get("results", []) if isinstance(data, dict) else []
