"""Tag frequency table over the synced notes."""

from collections import Counter
from typing import Dict, Iterable, List

from shared.models import Note, TagCount


def count_tags(notes: Iterable[Note]) -> Dict[str, int]:
    """Map each tag to the number of times it occurs across the notes."""
    counts = Counter()
    for note in notes:
        counts.update(note.tags)
    return dict(counts)


def tag_counts(notes: Iterable[Note]) -> List[TagCount]:
    """Tag counts, most used first, ties by name."""
    counts = count_tags(notes)
    return [
        TagCount(name=name, count=count)
        for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]
