"""Plain-text rendering of candidate lists."""
from itertools import groupby
from typing import Iterable, List, Sequence

from .candidate_finder import Candidate
from .models import ParseFailure, display_namespace


# Reference sites listed per candidate before the rest are summarized
MAX_SITES = 3


def format_report(candidates: Sequence[Candidate], failures: Iterable[ParseFailure] = ()) -> str:
    """Render candidates grouped by namespace.

    The output depends only on its inputs; candidates are re-sorted so callers
    may pass them in any order.

    Args:
        candidates: Candidates to report
        failures: Files left out of the analysis

    Returns:
        Report text ending with a newline
    """
    ordered = sorted(candidates, key=lambda c: (c.declaration.namespace, c.declaration.qualified_name))
    lines: List[str] = [f"Package-private analysis: {len(ordered)} candidates found"]

    for namespace, group in groupby(ordered, key=lambda c: c.declaration.namespace):
        members = list(group)
        lines.append("")
        lines.append(f"{display_namespace(namespace)} ({len(members)})")
        for candidate in members:
            lines.append(f"  {candidate.format()}")
            lines.append(f"      {candidate.usage_note}")
            if candidate.usage_sites:
                lines.append(f"      at {format_sites(candidate.usage_sites)}")

    skipped = sorted(failures, key=lambda f: (f.file_path, f.reason))
    if skipped:
        lines.append("")
        lines.append(f"Skipped files ({len(skipped)}):")
        for failure in skipped:
            lines.append(f"  {failure.file_path}: {failure.reason}")

    return "\n".join(lines) + "\n"


def format_sites(sites: Sequence) -> str:
    """Render ``file:line`` sites, summarizing past MAX_SITES."""
    shown = ", ".join(f"{file_path}:{line}" for file_path, line in sites[:MAX_SITES])
    hidden = len(sites) - MAX_SITES
    return f"{shown} (+{hidden} more)" if hidden > 0 else shown
