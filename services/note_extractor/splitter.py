"""Splits a Joplin export file into its body and trailing metadata block."""

from shared.models import ParsedSections

METADATA_SENTINEL = "id:"
REVISION_MARKER = "type_:"


def is_revision_snapshot(text: str) -> bool:
    """
    Cheap check for revision/history snapshots.

    Revisions carry no body, so the file starts straight away with the
    metadata block.
    """
    return text.strip().startswith(METADATA_SENTINEL) and REVISION_MARKER in text


def split_metadata_block(text: str) -> ParsedSections:
    """
    Split raw export text at the first ``id:`` line.

    Everything before that line is the body. When the sentinel is missing,
    or sits on the first or second line, there is no usable body and every
    line is handed over as metadata.

    Args:
        text: Raw content of one exported file

    Returns:
        ParsedSections with the trimmed body and the metadata lines
    """
    lines = text.replace("\r\n", "\n").split("\n")

    sentinel_index = -1
    for index, line in enumerate(lines):
        if line.strip().startswith(METADATA_SENTINEL):
            sentinel_index = index
            break

    if sentinel_index > 1:
        body = "\n".join(lines[:sentinel_index]).strip()
        return ParsedSections(body=body, metadata_lines=lines[sentinel_index:])

    return ParsedSections(body="", metadata_lines=lines)
