"""Metadata dialects of Joplin exports.

Two export conventions exist:

* colon: ``key: value`` lines appended after the Markdown body, Joplin's
  native format. Every kind of item (notes, folders, resources, tag links,
  revisions) is exported this way and told apart by ``type_``.
* frontmatter: a leading YAML block between ``---`` delimiters. Only notes
  are exported this way, so there is no type, parent folder or revision
  information.

Exactly one dialect is active per deployment, picked with ``get_dialect``.
"""
from typing import Any, Dict, List, Tuple

import frontmatter
import yaml

from services.note_extractor.splitter import is_revision_snapshot, split_metadata_block
from shared.exceptions import ConfigMissing, MalformedMetadata
from shared.models import ParsedObject, ParsedSections


def parse_colon_metadata(lines: List[str]) -> Dict[str, str]:
    """
    Parse ``key: value`` lines into a mapping.

    Lines are split on the first colon only, so values such as URLs or
    timestamps keep their own colons. A repeated key keeps its last value.
    Lines without a colon are ignored.
    """
    metadata: Dict[str, str] = {}
    for line in lines:
        trimmed = line.strip()
        if not trimmed or ":" not in trimmed:
            continue
        key, value = trimmed.split(":", 1)
        metadata[key.strip()] = value.strip()
    return metadata


class MetadataDialect:
    """Base class of the export dialects.

    The capability flags tell the classifier which rules make sense for
    the information the dialect carries.
    """

    name = ""
    detects_revisions = False
    checks_note_type = False
    supports_parent_filter = False
    supports_title_dedupe = False
    requires_body = False

    def is_revision(self, text: str) -> bool:
        return False

    def parse(self, key: str, text: str, size_bytes: int) -> ParsedObject:
        raise NotImplementedError


class ColonDialect(MetadataDialect):
    """Body first, ``key: value`` metadata block last."""

    name = "colon"
    detects_revisions = True
    checks_note_type = True
    supports_parent_filter = True
    supports_title_dedupe = True
    requires_body = True

    def is_revision(self, text: str) -> bool:
        return is_revision_snapshot(text)

    def parse(self, key: str, text: str, size_bytes: int) -> ParsedObject:
        sections = split_metadata_block(text)
        return ParsedObject(
            key=key,
            size_bytes=size_bytes,
            sections=sections,
            metadata=parse_colon_metadata(sections.metadata_lines)
        )


class FrontMatterDialect(MetadataDialect):
    """Leading YAML front matter, Markdown body after it."""

    name = "frontmatter"

    def parse(self, key: str, text: str, size_bytes: int) -> ParsedObject:
        metadata, body = load_front_matter(key, text)
        return ParsedObject(
            key=key,
            size_bytes=size_bytes,
            sections=ParsedSections(body=body, metadata_lines=[]),
            metadata=metadata
        )


def load_front_matter(key: str, text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a document into its front-matter mapping and body.

    The handler (YAML, or JSON for a ``{`` delimited block) is picked the way
    ``frontmatter.loads`` picks it. Text without front matter is all body.

    Raises:
        MalformedMetadata: If the block does not decode, or is not a mapping
    """
    text = text.strip()
    handler = frontmatter.detect_format(text, frontmatter.handlers)
    if handler is None:
        return {}, text

    try:
        raw_block, body = handler.split(text)
    except ValueError:
        # an opening delimiter without a closing one is just body text
        return {}, text

    try:
        block = handler.load(raw_block)
    except (yaml.YAMLError, ValueError) as e:
        raise MalformedMetadata(f"Invalid front matter in {key}: {e}", key=key) from e

    if block is None:
        block = {}
    if not isinstance(block, dict):
        raise MalformedMetadata(
            f"Front matter in {key} is a {type(block).__name__}, not a mapping", key=key
        )
    return block, body.strip()


_DIALECTS = {
    ColonDialect.name: ColonDialect,
    FrontMatterDialect.name: FrontMatterDialect,
}


def get_dialect(name: str) -> MetadataDialect:
    """
    Look up a dialect by its configured name.

    Raises:
        ConfigMissing: If the name is not a known dialect
    """
    try:
        return _DIALECTS[name.strip().lower()]()
    except KeyError:
        raise ConfigMissing(
            f"Unknown note dialect {name!r}; expected one of {sorted(_DIALECTS)}"
        ) from None
