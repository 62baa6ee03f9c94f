"""Accumulator threaded through one extraction pass."""

from collections import Counter
from dataclasses import dataclass, field
from typing import List, Set

from shared.models import Note


@dataclass
class ExtractionBatch:
    """Notes accepted so far in a pass, plus what the classifier needs to know about them."""
    notes: List[Note] = field(default_factory=list)
    titles: Set[str] = field(default_factory=set)
    joplin_ids: Set[str] = field(default_factory=set)
    accepted_bytes: int = 0
    scanned_bytes: int = 0
    skipped: Counter = field(default_factory=Counter)

    def accept(self, note: Note, size_bytes: int):
        self.notes.append(note)
        self.titles.add(note.title)
        self.joplin_ids.add(note.joplin_id)
        self.accepted_bytes += size_bytes

    def skip(self, reason: str):
        self.skipped[reason] += 1
