#!/usr/bin/env python3
"""
Twine JSON Codec

Converts between the Twine 2 JSON story document and the Story model.

Document layout:
    {
        "name": "Title",
        "ifid": "...", "format": "...", "start": "Start", ...,
        "style": "css",
        "script": "js",
        "passages": [
            {"name": "Start", "tags": [], "metadata": {}, "text": "..."}
        ]
    }

Unlike Twee and HTML, the document must be valid JSON with the expected
shape; anything else raises StoryJSONError.
"""

import json
import logging
from typing import List, Tuple

import jsonschema

from .errors import (
    ParseWarning,
    PassageDuplicated,
    PassageNameMissing,
    StoryJSONError,
    StoryTitleMissing,
)
from .story import (
    SCRIPT_TAG,
    STORY_SCRIPT,
    STORY_STYLESHEET,
    STYLESHEET_TAG,
    Passage,
    Story,
)

logger = logging.getLogger(__name__)

STORY_JSON_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Twine story",
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "style": {"type": "string"},
        "script": {"type": "string"},
        "passages": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "text"],
                "properties": {
                    "name": {"type": "string"},
                    "text": {"type": "string"},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "metadata": {"type": "object"},
                },
            },
        },
    },
}

# Top-level keys that are not story metadata
DOCUMENT_KEYS = ('name', 'style', 'script', 'passages')


def parse_json(source: str) -> Tuple[Story, List[ParseWarning]]:
    """Parse a Twine JSON document into a Story.

    Args:
        source: JSON text

    Returns:
        Tuple of (story, warnings)

    Raises:
        StoryJSONError: The text is not JSON or does not match the schema
    """
    try:
        document = json.loads(source)
    except ValueError as e:
        raise StoryJSONError(str(e)) from e

    try:
        jsonschema.validate(document, STORY_JSON_SCHEMA)
    except jsonschema.ValidationError as e:
        raise StoryJSONError(e.message) from e

    warnings: List[ParseWarning] = []
    meta = dict(document)

    title = meta.pop('name', None)
    if title is None:
        warnings.append(StoryTitleMissing())
        title = ''
    style = meta.pop('style', '')
    script = meta.pop('script', '')
    entries = meta.pop('passages', [])

    story = Story(title=title, meta=meta)
    candidates = [
        Passage(
            name=entry['name'].strip(),
            tags=list(entry.get('tags', [])),
            meta=dict(entry.get('metadata', {})),
            content=entry['text'],
        )
        for entry in entries
    ]
    if style:
        candidates.append(Passage(name=STORY_STYLESHEET, tags=[STYLESHEET_TAG], content=style))
    if script:
        candidates.append(Passage(name=STORY_SCRIPT, tags=[SCRIPT_TAG], content=script))

    for passage in candidates:
        if not passage.name:
            warnings.append(PassageNameMissing())
        elif story.get_passage(passage.name) is not None:
            warnings.append(PassageDuplicated(passage.name))
        else:
            story.passages.append(passage)

    logger.debug(f"Parsed JSON story '{title}' with {len(story.passages)} passages")
    return story, warnings


def serialize_json(story: Story) -> str:
    """Serialize a Story into a pretty-printed Twine JSON document.

    Stylesheet- and script-tagged passages are joined into the top-level
    `style` and `script` strings.
    """
    document = {'name': story.title}
    for key, value in story.meta.items():
        if key not in DOCUMENT_KEYS:
            document[key] = value

    styles = []
    scripts = []
    passages = []
    for passage in story.passages:
        if passage.has_tag(STYLESHEET_TAG):
            styles.append(passage.content)
        elif passage.has_tag(SCRIPT_TAG):
            scripts.append(passage.content)
        else:
            passages.append({
                'name': passage.name,
                'tags': list(passage.tags),
                'metadata': dict(passage.meta),
                'text': passage.content,
            })

    document['style'] = '\n'.join(styles)
    document['script'] = '\n'.join(scripts)
    document['passages'] = passages
    return json.dumps(document, indent=2, ensure_ascii=False)
