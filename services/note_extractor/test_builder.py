"""Unit tests for the note record builder."""

import pytest
from datetime import date, datetime

from services.note_extractor.builder import (
    NoteRecordBuilder,
    coerce_timestamp,
    derive_title,
    joplin_id_from_key,
    parse_epoch_millis,
    parse_iso_timestamp,
)
from services.note_extractor.dialects import ColonDialect, FrontMatterDialect


def build_colon(text, key="export/n1.md"):
    dialect = ColonDialect()
    parsed = dialect.parse(key, text, len(text))
    return NoteRecordBuilder(dialect).build(parsed)


def build_front_matter(text, key="notes/n1.md"):
    dialect = FrontMatterDialect()
    parsed = dialect.parse(key, text, len(text))
    return NoteRecordBuilder(dialect).build(parsed)


class TestHelpers:
    """Tests for the field helpers."""

    @pytest.mark.parametrize("key,expected", [
        ("export/abc123.md", "abc123"),
        ("abc123.md", "abc123"),
        ("joplin/export/nested/abc123.md", "abc123"),
        ("export/abc123.txt", "abc123.txt"),
    ])
    def test_joplin_id_from_key(self, key, expected):
        assert joplin_id_from_key(key) == expected

    @pytest.mark.parametrize("body,expected", [
        ("# Meeting notes\nDiscuss roadmap", "Meeting notes"),
        ("### Deep heading", "Deep heading"),
        ("Plain first line\nsecond", "Plain first line"),
        ("#\nBody", "n1"),
        ("", "n1"),
    ])
    def test_derive_title(self, body, expected):
        assert derive_title(body, "n1") == expected

    def test_parse_epoch_millis(self):
        assert parse_epoch_millis("1700000000000") == datetime(2023, 11, 14, 22, 13, 20)
        assert parse_epoch_millis("0") is None
        assert parse_epoch_millis("") is None
        assert parse_epoch_millis(None) is None
        assert parse_epoch_millis("soon") is None

    def test_parse_iso_timestamp(self):
        assert parse_iso_timestamp("2023-05-01T10:20:30.000Z") == datetime(2023, 5, 1, 10, 20, 30)
        assert parse_iso_timestamp("2023-05-01T12:20:30+02:00") == datetime(2023, 5, 1, 10, 20, 30)
        assert parse_iso_timestamp("yesterday") is None
        assert parse_iso_timestamp(None) is None

    def test_coerce_timestamp(self):
        assert coerce_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1)
        assert coerce_timestamp(datetime(2024, 3, 1, 9, 0)) == datetime(2024, 3, 1, 9, 0)
        assert coerce_timestamp("2024-03-01T09:00:00Z") == datetime(2024, 3, 1, 9, 0)
        assert coerce_timestamp(42) is None


class TestColonBuild:
    """Tests for notes built from the colon dialect."""

    def test_meeting_notes(self):
        text = (
            "# Meeting notes\nDiscuss roadmap\n\n"
            "id: n1\n"
            "parent_id: F\n"
            "created_time: 2023-05-01T10:20:30.000Z\n"
            "updated_time: 2023-05-02T08:00:00.000Z\n"
            "author: Ada\n"
            "source: joplin-desktop\n"
            "latitude: 51.50740000\n"
            "longitude: -0.12780000\n"
            "altitude: 0.0000\n"
            "todo_completed: 1\n"
            "todo_due: 1700000000000\n"
            "type_: 1"
        )

        note = build_colon(text)

        assert note.id is None
        assert note.joplin_id == "n1"
        assert note.title == "Meeting notes"
        assert note.body == "# Meeting notes\nDiscuss roadmap"
        assert note.s3_key == "export/n1.md"
        assert note.author == "Ada"
        assert note.source == "joplin-desktop"
        assert note.latitude == "51.50740000"
        assert note.longitude == "-0.12780000"
        assert note.altitude == "0.0000"
        assert note.completed is True
        assert note.due == datetime(2023, 11, 14, 22, 13, 20)
        assert note.created_time == datetime(2023, 5, 1, 10, 20, 30)
        assert note.updated_time == datetime(2023, 5, 2, 8, 0, 0)
        assert note.tags == []

    def test_open_todo(self):
        note = build_colon("Buy milk\n\nid: n2\ntodo_completed: 0\ntodo_due: 0\ntype_: 1")

        assert note.completed is None
        assert note.due is None

    def test_empty_metadata_values_are_none(self):
        note = build_colon("Title\n\nid: n3\nauthor: \nsource:\ntype_: 1")

        assert note.author is None
        assert note.source is None


class TestFrontMatterBuild:
    """Tests for notes built from the front matter dialect."""

    def test_full_front_matter(self):
        text = (
            "---\n"
            "title: Shopping\n"
            "tags: [home, errands]\n"
            "created: 2024-01-02T15:30:00Z\n"
            "updated: 2024-01-03T09:00:00Z\n"
            "due: 2024-03-01\n"
            "completed?: yes\n"
            "author: Ada\n"
            "---\n"
            "Milk\nEggs\n"
        )

        note = build_front_matter(text)

        assert note.joplin_id == "n1"
        assert note.title == "Shopping"
        assert note.body == "Milk\nEggs"
        assert note.tags == ["home", "errands"]
        assert note.created_time == datetime(2024, 1, 2, 15, 30, 0)
        assert note.updated_time == datetime(2024, 1, 3, 9, 0, 0)
        assert note.due == datetime(2024, 3, 1)
        assert note.completed is True
        assert note.author == "Ada"

    def test_title_falls_back_to_joplin_id(self):
        note = build_front_matter("---\ntags: [a]\n---\nBody\n")

        assert note.title == "n1"

    def test_not_completed(self):
        note = build_front_matter("---\ntitle: T\ncompleted?: no\n---\nBody\n")

        assert note.completed is None
        assert note.due is None

    def test_non_list_tags_ignored(self):
        note = build_front_matter("---\ntitle: T\ntags: work\n---\nBody\n")

        assert note.tags == []
