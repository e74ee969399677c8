#!/usr/bin/env python3
"""
Twee 3 Codec

Converts between Twee 3 source text and the Story model.

Passage layout:
    :: Name [tag1 tag2] {"position":"100,200"}
    Body text up to the next header...

Special passages:
- StoryTitle: body becomes Story.title
- StoryData: body is a JSON object and becomes Story.meta

Names and tags escape `\\ [ ] { }` with a backslash. A body line that would
start with `::` is written as `\\::`.
"""

import re
import json
import logging
from enum import Enum
from typing import List, NamedTuple, Tuple

from .errors import (
    ParseWarning,
    PassageDuplicated,
    PassageMetadataMalformed,
    PassageNameMissing,
    PassageTagsMalformed,
    StoryMetadataMalformed,
    StoryTitleMissing,
)
from .story import STORY_DATA, STORY_TITLE, JsonObject, Passage, Story

logger = logging.getLogger(__name__)

# A header is any line starting with "::"; the last one may lack a newline
PASSAGE_HEADER_RE = re.compile(r'^::([^\n]*)(?:\n|\Z)', re.MULTILINE)
ESCAPED_HEADER_RE = re.compile(r'^\\::', re.MULTILINE)
BARE_HEADER_RE = re.compile(r'^::', re.MULTILINE)

ESCAPED_CHARS = '\\[]{}'
EMPTY_META = '{}'
BYTE_ORDER_MARK = "\ufeff"


# =============================================================================
# HEADER TOKENIZER
# =============================================================================

class HeaderState(Enum):
    TITLE = 'title'
    TAGS = 'tags'
    BETWEEN = 'between'


class PassageHeader(NamedTuple):
    name: str
    tags: List[str]
    meta_text: str
    tags_closed: bool


def tokenize_header(header: str) -> PassageHeader:
    """Split the text after `::` into name, tags and raw metadata.

    Runs a three-state machine (title, tags, between) over the header up to
    the first line break. A backslash makes the next character literal in
    the name and in tags. The first unescaped `{` outside the tag block
    starts the metadata, which runs verbatim to the end of the line.

    Args:
        header: Header line without the leading `::`

    Returns:
        PassageHeader with the trimmed name, the tags, the metadata text
        (`{}` when absent or blank) and whether the tag block was closed
    """
    state = HeaderState.TITLE
    name_chars: List[str] = []
    tag_chars: List[str] = []
    tags: List[str] = []
    meta_text = ''
    escaped = False

    for i, c in enumerate(header):
        if c in '\r\n':
            break

        if state is HeaderState.TITLE:
            if escaped:
                escaped = False
                name_chars.append(c)
            elif c == '\\':
                escaped = True
            elif c == '[':
                state = HeaderState.TAGS
            elif c == '{':
                meta_text = header[i:]
                break
            else:
                name_chars.append(c)

        elif state is HeaderState.TAGS:
            if escaped:
                escaped = False
                tag_chars.append(c)
            elif c == '\\':
                escaped = True
            elif c == ']':
                if tag_chars:
                    tags.append(''.join(tag_chars))
                    tag_chars = []
                state = HeaderState.BETWEEN
            elif c.isspace():
                if tag_chars:
                    tags.append(''.join(tag_chars))
                    tag_chars = []
            else:
                tag_chars.append(c)

        elif c == '{':
            meta_text = header[i:]
            break

    # Unterminated tag block: keep the partial tag
    if tag_chars:
        tags.append(''.join(tag_chars))

    if not meta_text.strip():
        meta_text = EMPTY_META

    return PassageHeader(
        name=''.join(name_chars).strip(),
        tags=tags,
        meta_text=meta_text,
        tags_closed=state is not HeaderState.TAGS,
    )


# =============================================================================
# PARSING
# =============================================================================

def _load_object(text: str):
    """Parse JSON text, returning None unless it is a JSON object."""
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def unescape_content(content: str) -> str:
    return ESCAPED_HEADER_RE.sub('::', content)


def parse_twee(source: str) -> Tuple[Story, List[ParseWarning]]:
    """Parse Twee 3 source into a Story.

    Parsing never fails: every irregularity is reported as a warning and a
    safe default is used (empty metadata, skipped passage, first duplicate
    kept).

    Args:
        source: Twee 3 source text

    Returns:
        Tuple of (story, warnings) with warnings in source order
    """
    if source.startswith(BYTE_ORDER_MARK):
        source = source[1:]
    warnings: List[ParseWarning] = []
    story = Story()
    title_set = False
    meta_set = False

    headers = list(PASSAGE_HEADER_RE.finditer(source))
    for index, match in enumerate(headers):
        header = tokenize_header(match.group(1))
        if not header.tags_closed:
            warnings.append(PassageTagsMalformed(header.name))

        end = headers[index + 1].start() if index + 1 < len(headers) else len(source)
        content = unescape_content(source[match.end():end])
        name = header.name

        if not name:
            warnings.append(PassageNameMissing())

        elif name == STORY_TITLE:
            if title_set:
                warnings.append(PassageDuplicated(STORY_TITLE))
            story.title = content.strip()
            title_set = True

        elif name == STORY_DATA:
            if meta_set:
                warnings.append(PassageDuplicated(STORY_DATA))
            meta = _load_object(content)
            if meta is None:
                warnings.append(StoryMetadataMalformed())
                meta = {}
            story.meta = meta
            meta_set = True

        elif story.get_passage(name) is not None:
            warnings.append(PassageDuplicated(name))

        else:
            meta = _load_object(header.meta_text)
            if meta is None:
                warnings.append(PassageMetadataMalformed(name))
                meta = {}
            story.passages.append(Passage(
                name=name,
                tags=header.tags,
                meta=meta,
                content=content.rstrip(),
            ))

    if not title_set:
        warnings.append(StoryTitleMissing())

    logger.debug(f"Parsed {len(story.passages)} passages from {len(headers)} headers "
                 f"({len(warnings)} warnings)")
    return story, warnings


# =============================================================================
# SERIALIZATION
# =============================================================================

def escape_twee(text: str) -> str:
    """Backslash-escape the characters that are structural in a header."""
    return ''.join('\\' + c if c in ESCAPED_CHARS else c for c in text)


def escape_content(content: str) -> str:
    return BARE_HEADER_RE.sub(r'\\::', content)


def _format_header(passage: Passage) -> str:
    header = ':: ' + escape_twee(passage.name)
    if passage.tags:
        header += ' [' + ' '.join(escape_twee(tag) for tag in passage.tags) + ']'
    if passage.meta:
        header += ' ' + _compact_json(passage.meta)
    return header


def _compact_json(value: JsonObject) -> str:
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


def serialize_twee(story: Story) -> str:
    """Serialize a Story into Twee 3 source.

    StoryTitle and StoryData always come first, followed by every passage
    in story order, separated by blank lines.
    The title is written like passage content, without backslash escapes,
    because parse_twee reads it back verbatim.
    """
    blocks = [
        f":: {STORY_TITLE}\n{escape_content(story.title)}\n",
        f":: {STORY_DATA}\n{json.dumps(story.meta, indent=2, ensure_ascii=False)}\n",
    ]
    for passage in story.passages:
        blocks.append(f"{_format_header(passage)}\n{escape_content(passage.content)}\n")
    return '\n'.join(blocks)
