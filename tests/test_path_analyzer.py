"""Tests for PATH duplicate analysis."""
from devscope.modules.path_analyzer import analyze_path_entries, count_duplicates


def test_duplicate_entries_reference_each_other():
    """Each copy of a repeated entry lists the other copies."""
    analysis = analyze_path_entries(["/usr/bin", "/usr/local/bin", "/usr/bin"])

    assert [a.index for a in analysis] == [0, 1, 2]
    assert [a.is_duplicate for a in analysis] == [True, False, True]
    assert analysis[0].duplicate_indices == [2]
    assert analysis[1].duplicate_indices == []
    assert analysis[2].duplicate_indices == [0]


def test_comparison_ignores_case_and_whitespace():
    """Entries differing only in case or surrounding spaces are duplicates."""
    analysis = analyze_path_entries(["C:\\Tools", "c:\\tools  "])
    assert all(a.is_duplicate for a in analysis)


def test_original_paths_are_preserved():
    """Reported paths are the entries as given."""
    analysis = analyze_path_entries(["/Opt/Bin ", "/opt/bin"])
    assert [a.path for a in analysis] == ["/Opt/Bin ", "/opt/bin"]


def test_three_copies():
    """Every copy lists all other copies."""
    analysis = analyze_path_entries(["/a", "/b", "/a", "/a"])
    assert analysis[0].duplicate_indices == [2, 3]
    assert analysis[2].duplicate_indices == [0, 3]
    assert analysis[3].duplicate_indices == [0, 2]


def test_empty():
    """An empty PATH yields no entries."""
    assert analyze_path_entries([]) == []


def test_no_duplicates():
    """Distinct entries are never flagged."""
    analysis = analyze_path_entries(["/a", "/b", "/c"])
    assert not any(a.is_duplicate for a in analysis)


def test_count_duplicates():
    """Only repeats of an earlier entry are counted."""
    assert count_duplicates(["/a", "/b", "/a", "/A"]) == 2
    assert count_duplicates(["/a", "/b"]) == 0
    assert count_duplicates([]) == 0
