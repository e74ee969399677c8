#!/usr/bin/env python3
"""
Story Model

In-memory representation of a Twine story shared by every codec:
- Story: title, ordered passages, story-level metadata
- Passage: name, tags, metadata and raw body text

Metadata values are plain JSON values (dict, list, str, int, float, bool,
None). Codecs that can only carry strings check for them explicitly.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]
JsonObject = Dict[str, JsonValue]

# Passages the Twee parser folds into Story.title / Story.meta
STORY_TITLE = 'StoryTitle'
STORY_DATA = 'StoryData'

# Passages synthesized from <style> / <script> elements
STORY_STYLESHEET = 'StoryStylesheet'
STORY_SCRIPT = 'StoryScript'

STYLESHEET_TAG = 'stylesheet'
SCRIPT_TAG = 'script'

# Story.meta keys with a structural meaning in markup form
START_KEY = 'start'
TAG_COLORS_KEY = 'tag-colors'


@dataclass
class Passage:
    """A named unit of content in a Story."""

    name: str
    tags: List[str] = field(default_factory=list)
    meta: JsonObject = field(default_factory=dict)
    content: str = ''

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass
class Story:
    """A Twine story: title, passages in authoring order, and metadata."""

    title: str = ''
    passages: List[Passage] = field(default_factory=list)
    meta: JsonObject = field(default_factory=dict)

    def get_passage(self, name: str) -> Optional[Passage]:
        """Return the first passage called `name`, or None."""
        for passage in self.passages:
            if passage.name == name:
                return passage
        return None

    def passage_names(self) -> List[str]:
        return [p.name for p in self.passages]
