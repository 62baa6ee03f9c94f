"""Unit tests for the note classifier."""

from services.note_extractor.batch import ExtractionBatch
from services.note_extractor.classifier import NoteClassifier, RejectReason
from services.note_extractor.dialects import ColonDialect, FrontMatterDialect
from shared.models import Note


def parse_colon(text, key="n1.md"):
    return ColonDialect().parse(key, text, len(text))


def accepted_batch(*titles):
    batch = ExtractionBatch()
    for index, title in enumerate(titles):
        batch.accept(
            Note(joplin_id=f"seen{index}", title=title, body=title, s3_key=f"seen{index}.md"),
            10
        )
    return batch


class TestRevisionCheck:
    """Tests for the revision short-circuit."""

    def test_colon_revision(self):
        classifier = NoteClassifier(ColonDialect())

        assert classifier.is_revision("id: r1\nitem_id: n1\ntype_: 13") is True

    def test_front_matter_never_a_revision(self):
        classifier = NoteClassifier(FrontMatterDialect())

        assert classifier.is_revision("id: r1\ntype_: 13") is False


class TestClassify:
    """Tests for classify."""

    def test_note_accepted(self):
        classifier = NoteClassifier(ColonDialect())

        parsed = parse_colon("Title\n\nBody\n\nid: n1\ntype_: 1")

        assert classifier.classify(parsed, "n1", ExtractionBatch()) is None

    def test_folder_rejected(self):
        classifier = NoteClassifier(ColonDialect())

        parsed = parse_colon("Projects\n\nid: f1\ntype_: 2")

        assert classifier.classify(parsed, "f1", ExtractionBatch()) == RejectReason.NOT_A_NOTE

    def test_missing_type_rejected(self):
        classifier = NoteClassifier(ColonDialect())

        parsed = parse_colon("Title\n\nBody\n\nid: n1")

        assert classifier.classify(parsed, "n1", ExtractionBatch()) == RejectReason.NOT_A_NOTE

    def test_parent_filter(self):
        classifier = NoteClassifier(ColonDialect(), parent_folder_id="F")

        inside = parse_colon("A\n\nid: a\nparent_id: F\ntype_: 1")
        outside = parse_colon("B\n\nid: b\nparent_id: G\ntype_: 1")

        assert classifier.classify(inside, "a", ExtractionBatch()) is None
        assert classifier.classify(outside, "b", ExtractionBatch()) == RejectReason.OUTSIDE_FOLDER

    def test_no_parent_filter_accepts_any_folder(self):
        classifier = NoteClassifier(ColonDialect())

        parsed = parse_colon("B\n\nid: b\nparent_id: G\ntype_: 1")

        assert classifier.classify(parsed, "b", ExtractionBatch()) is None

    def test_empty_body_rejected(self):
        classifier = NoteClassifier(ColonDialect())

        parsed = parse_colon("id: n1\ntype_: 1")

        assert classifier.classify(parsed, "n1", ExtractionBatch()) == RejectReason.EMPTY_BODY

    def test_duplicate_title_rejected_when_enabled(self):
        classifier = NoteClassifier(ColonDialect(), dedupe_titles=True)
        batch = accepted_batch("Groceries")

        parsed = parse_colon("# Groceries\nEggs\n\nid: n2\ntype_: 1")

        assert classifier.classify(parsed, "n2", batch) == RejectReason.DUPLICATE_TITLE

    def test_duplicate_title_allowed_by_default(self):
        classifier = NoteClassifier(ColonDialect())
        batch = accepted_batch("Groceries")

        parsed = parse_colon("# Groceries\nEggs\n\nid: n2\ntype_: 1")

        assert classifier.classify(parsed, "n2", batch) is None

    def test_duplicate_joplin_id_rejected(self):
        classifier = NoteClassifier(ColonDialect())
        batch = accepted_batch("Other")

        parsed = parse_colon("Title\n\nid: seen0\ntype_: 1")

        assert classifier.classify(parsed, "seen0", batch) == RejectReason.DUPLICATE_ID

    def test_type_checked_before_body(self):
        classifier = NoteClassifier(ColonDialect(), parent_folder_id="F")

        parsed = parse_colon("id: t1\nparent_id: G\ntype_: 5")

        assert classifier.classify(parsed, "t1", ExtractionBatch()) == RejectReason.NOT_A_NOTE

    def test_front_matter_skips_colon_only_rules(self):
        classifier = NoteClassifier(FrontMatterDialect(), parent_folder_id="F", dedupe_titles=True)
        text = "---\ntitle: Groceries\n---\n"
        parsed = FrontMatterDialect().parse("n2.md", text, len(text))

        assert classifier.classify(parsed, "n2", accepted_batch("Groceries")) is None
