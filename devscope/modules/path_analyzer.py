"""
Duplicate detection for PATH-like directory lists.
"""

from typing import Dict, List, Sequence

from devscope.core.models import PathEntryAnalysis


def _normalize(path: str) -> str:
    return path.lower().strip()


def analyze_path_entries(paths: Sequence[str]) -> List[PathEntryAnalysis]:
    """
    Report, for every entry, whether it repeats elsewhere in the list.

    Entries are compared lower-cased and trimmed. Order and length are
    preserved; duplicates are reported, never removed.
    """
    groups: Dict[str, List[int]] = {}
    for index, path in enumerate(paths):
        groups.setdefault(_normalize(path), []).append(index)

    analysis = []
    for index, path in enumerate(paths):
        indices = groups[_normalize(path)]
        analysis.append(
            PathEntryAnalysis(
                path=path,
                index=index,
                is_duplicate=len(indices) > 1,
                duplicate_indices=[i for i in indices if i != index],
            )
        )
    return analysis


def count_duplicates(paths: Sequence[str]) -> int:
    """Number of entries that repeat an earlier entry."""
    seen = set()
    count = 0
    for path in paths:
        normalized = _normalize(path)
        if normalized in seen:
            count += 1
        else:
            seen.add(normalized)
    return count
