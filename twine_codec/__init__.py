"""
Twine story codecs.

Converts Twine stories between Twee 3 source, published HTML
(<tw-storydata>) and Twine JSON through a shared Story model.

Modules:
- story: Story / Passage model and special passage names
- errors: Parse warnings and fatal errors
- twee: Twee 3 parser and serializer
- markup: HTML / archive parser and serializer
- json_format: Twine JSON parser and serializer
- convert: Command-line front end
"""

from .errors import (
    MarkupParseError,
    ParseWarning,
    PassageDuplicated,
    PassageMetadataMalformed,
    PassageNameMissing,
    PassageTagsMalformed,
    StoryDataNotFoundError,
    StoryJSONError,
    StoryMetadataMalformed,
    StoryTitleMissing,
    TwineCodecError,
)
from .json_format import parse_json, serialize_json
from .markup import (
    parse_archive,
    parse_html,
    serialize_archive_string,
    serialize_html,
    serialize_html_string,
)
from .story import Passage, Story
from .twee import parse_twee, serialize_twee

__version__ = "1.0.0"

__all__ = [
    'Story',
    'Passage',
    'parse_twee',
    'serialize_twee',
    'parse_html',
    'parse_archive',
    'serialize_html',
    'serialize_html_string',
    'serialize_archive_string',
    'parse_json',
    'serialize_json',
    'ParseWarning',
    'StoryMetadataMalformed',
    'StoryTitleMissing',
    'PassageMetadataMalformed',
    'PassageTagsMalformed',
    'PassageDuplicated',
    'PassageNameMissing',
    'TwineCodecError',
    'MarkupParseError',
    'StoryDataNotFoundError',
    'StoryJSONError',
]
