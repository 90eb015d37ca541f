"""Word counting and per-line edit deltas."""

import difflib


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def _diff_counts(old: list[str], new: list[str]) -> tuple[int, int]:
    added = deleted = 0
    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        deleted += i2 - i1
        added += j2 - j1
    return added, deleted


def word_delta(old_text: str, new_text: str) -> tuple[int, int]:
    """Words added and deleted between two versions of a document.

    Lines are diffed first; only the changed blocks of lines are then
    compared word by word, so an edit costs time proportional to what changed.
    """
    old_lines = old_text.splitlines()
    new_lines = new_text.splitlines()
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)

    added = deleted = 0
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        old_words = " ".join(old_lines[i1:i2]).split()
        new_words = " ".join(new_lines[j1:j2]).split()
        block_added, block_deleted = _diff_counts(old_words, new_words)
        added += block_added
        deleted += block_deleted
    return added, deleted
