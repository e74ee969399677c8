#!/usr/bin/env python3
"""
Tests for twine_codec/twee.py

Tests the Twee 3 header tokenizer, the lenient parser and its warnings,
and the serializer.
"""

import sys
from pathlib import Path

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from twine_codec.errors import (
    PassageDuplicated,
    PassageMetadataMalformed,
    PassageNameMissing,
    PassageTagsMalformed,
    StoryMetadataMalformed,
    StoryTitleMissing,
)
from twine_codec.markup import parse_html, serialize_html_string
from twine_codec.story import Passage, Story
from twine_codec.twee import (
    PassageHeader,
    escape_twee,
    parse_twee,
    serialize_twee,
    tokenize_header,
)


SAMPLE_TWEE = """:: StoryTitle
The Cave

:: StoryData
{
  "ifid": "D674C58C-DEFA-4F70-B7A2-27742230C0FC",
  "format": "Harlowe",
  "start": "Start"
}

:: Start [intro dark] {"position":"100,200"}
You wake in a cave.
[[Go deeper->Deep]]

:: Deep
\\:: not a header
It is dark.
"""


# ============================================================================
# HEADER TOKENIZER
# ============================================================================

class TestTokenizeHeader:
    """Tests for tokenize_header()."""

    def test_name_only(self):
        assert tokenize_header(' Start') == PassageHeader('Start', [], '{}', True)

    def test_name_tags_and_metadata(self):
        result = tokenize_header(' Start [a b] {"x":1}')
        assert result == PassageHeader('Start', ['a', 'b'], '{"x":1}', True)

    def test_metadata_without_tags(self):
        result = tokenize_header(' Start {"x":1}')
        assert result.name == 'Start'
        assert result.meta_text == '{"x":1}'

    def test_escapes(self):
        """Escaped brackets, braces and backslashes are literal."""
        result = tokenize_header(' A \\[x\\] \\{y\\} back\\\\slash [t\\]ag]')
        assert result.name == 'A [x] {y} back\\slash'
        assert result.tags == ['t]ag']

    def test_unclosed_tags(self):
        result = tokenize_header(' A [tag1 tag2')
        assert result.tags == ['tag1', 'tag2']
        assert result.tags_closed is False

    def test_extra_whitespace_in_tags(self):
        result = tokenize_header(' A [  one   two ]')
        assert result.tags == ['one', 'two']

    def test_between_ignores_other_characters(self):
        result = tokenize_header(' A [t] junk {"k":"v"}')
        assert result.tags == ['t']
        assert result.meta_text == '{"k":"v"}'

    def test_blank_metadata_defaults_to_empty_object(self):
        assert tokenize_header(' A [t]').meta_text == '{}'

    def test_stops_at_carriage_return(self):
        result = tokenize_header(' A [t]\r')
        assert result == PassageHeader('A', ['t'], '{}', True)


# ============================================================================
# PARSING
# ============================================================================

def test_parse_twee_basic():
    """Test parsing a complete story."""
    story, warnings = parse_twee(SAMPLE_TWEE)

    assert warnings == []
    assert story.title == 'The Cave'
    assert story.meta == {
        'ifid': 'D674C58C-DEFA-4F70-B7A2-27742230C0FC',
        'format': 'Harlowe',
        'start': 'Start',
    }
    assert story.passages == [
        Passage(
            name='Start',
            tags=['intro', 'dark'],
            meta={'position': '100,200'},
            content='You wake in a cave.\n[[Go deeper->Deep]]',
        ),
        Passage(name='Deep', content=':: not a header\nIt is dark.'),
    ]


def test_parse_twee_duplicate_keeps_first():
    """Test that the first of two same-named passages wins."""
    story, warnings = parse_twee(":: A\nfoo\n\n:: A\nbar\n")

    assert story.passages == [Passage(name='A', tags=[], meta={}, content='foo')]
    assert warnings.count(PassageDuplicated('A')) == 1
    assert StoryTitleMissing() in warnings


def test_parse_twee_unclosed_tags():
    """Test that an unclosed tag block keeps the tags and warns."""
    story, warnings = parse_twee(":: StoryTitle\nT\n\n:: A [tag1 tag2\nbody\n")

    assert warnings == [PassageTagsMalformed('A')]
    assert story.passages[0].tags == ['tag1', 'tag2']
    assert story.passages[0].content == 'body'


def test_parse_twee_malformed_passage_metadata():
    story, warnings = parse_twee(":: StoryTitle\nT\n:: A {not json}\ntext")

    assert warnings == [PassageMetadataMalformed('A')]
    assert story.passages == [Passage(name='A', content='text')]


def test_parse_twee_last_header_without_newline():
    story, warnings = parse_twee(':: StoryTitle\nT\n\n:: A {"x": 1}')

    assert warnings == []
    assert story.passages == [Passage(name='A', meta={'x': 1}, content='')]


def test_parse_twee_story_data_not_an_object():
    story, warnings = parse_twee(":: StoryData\n[1, 2]\n")

    assert story.meta == {}
    assert warnings == [StoryMetadataMalformed(), StoryTitleMissing()]


def test_parse_twee_duplicate_story_title_overwrites():
    story, warnings = parse_twee(":: StoryTitle\nOne\n\n:: StoryTitle\nTwo\n")

    assert story.title == 'Two'
    assert warnings == [PassageDuplicated('StoryTitle')]


def test_parse_twee_duplicate_story_data():
    story, warnings = parse_twee(
        ':: StoryTitle\nT\n\n:: StoryData\n{"a": "1"}\n\n:: StoryData\n{"b": "2"}\n'
    )

    assert story.meta == {'b': '2'}
    assert warnings == [PassageDuplicated('StoryData')]


def test_parse_twee_missing_names():
    """Test that nameless passages are discarded."""
    story, warnings = parse_twee(":: StoryTitle\nT\n\n:: [tag]\nbody\n\n::\nx\n")

    assert story.passages == []
    assert warnings == [PassageNameMissing(), PassageNameMissing()]


def test_parse_twee_special_passages_not_in_passages():
    story, _ = parse_twee(SAMPLE_TWEE)

    assert 'StoryTitle' not in story.passage_names()
    assert 'StoryData' not in story.passage_names()


def test_parse_twee_ignores_text_before_first_header():
    story, warnings = parse_twee("preamble\n:: StoryTitle\nT\n")

    assert story.title == 'T'
    assert warnings == []


def test_parse_twee_empty_source():
    story, warnings = parse_twee("")

    assert story == Story()
    assert warnings == [StoryTitleMissing()]


def test_parse_twee_crlf_line_endings():
    story, warnings = parse_twee(":: StoryTitle\r\nT\r\n\r\n:: A [x]\r\nbody\r\n")

    assert warnings == []
    assert story.title == 'T'
    assert story.passages == [Passage(name='A', tags=['x'], content='body')]


def test_parse_twee_unescapes_every_line():
    story, _ = parse_twee(":: StoryTitle\nT\n\n:: A\n\\:: one\ntext\n\\:: two\n")

    assert story.passages[0].content == ':: one\ntext\n:: two'


# ============================================================================
# SERIALIZATION
# ============================================================================

def test_escape_twee():
    assert escape_twee('a[b]{c}\\d') == 'a\\[b\\]\\{c\\}\\\\d'
    assert escape_twee('plain') == 'plain'


def test_serialize_twee_layout():
    story = Story(
        title='T',
        passages=[Passage(name='A', tags=['x'], meta={'k': 1}, content='::foo\nbar')],
        meta={'ifid': 'X'},
    )

    assert serialize_twee(story) == (
        ':: StoryTitle\nT\n'
        '\n'
        ':: StoryData\n{\n  "ifid": "X"\n}\n'
        '\n'
        ':: A [x] {"k":1}\n\\::foo\nbar\n'
    )


def test_serialize_twee_empty_story():
    assert serialize_twee(Story()) == ':: StoryTitle\n\n\n:: StoryData\n{}\n'


def test_serialize_twee_keeps_unicode():
    story = Story(title='Café', passages=[Passage(name='Ünïcode', meta={'k': 'ß'})])

    text = serialize_twee(story)

    assert 'Café' in text
    assert ':: Ünïcode {"k":"ß"}' in text


def test_round_trip_sample():
    """Test that parse -> serialize -> parse is stable."""
    story, _ = parse_twee(SAMPLE_TWEE)
    text = serialize_twee(story)
    again, warnings = parse_twee(text)

    assert warnings == []
    assert again == story
    assert serialize_twee(again) == text


def test_round_trip_escaped_names_and_tags():
    story = Story(
        title='T',
        passages=[
            Passage(
                name='we[ir]d {name}',
                tags=['t{1}', 'b\\s'],
                meta={'a': [1, {'b': None}]},
                content='line\n::still content',
            ),
            Passage(name='Plain', content='  indented'),
        ],
        meta={'nested': {'list': [True, False, 2.5]}},
    )

    parsed, warnings = parse_twee(serialize_twee(story))

    assert warnings == []
    assert parsed == story


def test_round_trip_normalizes_missing_title():
    """Test that a story without a title only warns on the first parse."""
    story, warnings = parse_twee(":: A\nfoo\n")
    assert warnings == [StoryTitleMissing()]

    again, warnings = parse_twee(serialize_twee(story))
    assert warnings == []
    assert again == story


def test_parse_twee_crlf_content_survives_markup():
    """Test that CRLF passage bodies keep their line endings through HTML."""
    story, _ = parse_twee(":: StoryTitle\r\nT\r\n\r\n:: A\r\nline1\r\nline2\r\n")
    assert story.passages[0].content == 'line1\r\nline2'

    parsed, _ = parse_html(serialize_html_string(story))

    assert parsed.passages == story.passages


def test_parse_twee_byte_order_mark():
    story, warnings = parse_twee("\ufeff:: StoryTitle\nT\n")

    assert story.title == 'T'
    assert warnings == []


def test_serialize_twee_title_not_escaped():
    story = Story(title='A [B] {c}')

    text = serialize_twee(story)
    again, warnings = parse_twee(text)

    assert text.startswith(':: StoryTitle\nA [B] {c}\n')
    assert warnings == []
    assert again.title == 'A [B] {c}'
