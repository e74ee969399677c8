#!/usr/bin/env python3
"""
Twine HTML Codec

Converts between the published <tw-storydata> element and the Story model.

Element layout:
    <tw-storydata name="Title" startnode="1" ifid="..." format="...">
        <tw-tag name="tag" color="red"></tw-tag>
        <style role="stylesheet" ...>css</style>
        <script role="script" ...>js</script>
        <tw-passagedata pid="1" name="Start" tags="a b">text</tw-passagedata>
    </tw-storydata>

An archive is a sequence of sibling <tw-storydata> elements.

All <style> elements collapse into one StoryStylesheet passage and all
<script> elements into one StoryScript passage; serialization merges the
other way, keyed on the stylesheet/script tags.
"""

import re
import logging
import xml.etree.ElementTree as ET
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import (
    MarkupParseError,
    ParseWarning,
    StoryDataNotFoundError,
    StoryTitleMissing,
)
from .story import (
    SCRIPT_TAG,
    START_KEY,
    STORY_SCRIPT,
    STORY_STYLESHEET,
    STYLESHEET_TAG,
    TAG_COLORS_KEY,
    Passage,
    Story,
)

logger = logging.getLogger(__name__)

STORYDATA = 'tw-storydata'
PASSAGEDATA = 'tw-passagedata'
TAG = 'tw-tag'
STYLE = 'style'
SCRIPT = 'script'

STYLE_ATTRIBUTES = {
    'role': 'stylesheet',
    'id': 'twine-user-stylesheet',
    'type': 'text/twine-css',
}
SCRIPT_ATTRIBUTES = {
    'role': 'script',
    'id': 'twine-user-script',
    'type': 'text/twine-javascript',
}

# Attributes written from passage/story fields; metadata never overrides them
PASSAGE_ATTRIBUTES = {'pid', 'name', 'tags'}
STORY_ATTRIBUTES = {'name', 'startnode'}

PID_RE = re.compile(r'[0-9]+')
XML_DECLARATION_RE = re.compile(r'^\s*<\?xml[^>]*\?>')
ARCHIVE_ROOT = 'tw-archive'
CARRIAGE_RETURN_REF = '&#13;'


# =============================================================================
# ELEMENT HELPERS
# =============================================================================

def _local_name(tag: str) -> str:
    """Strip a `{namespace}` prefix so XHTML documents match too."""
    return tag.rsplit('}', 1)[-1]


def _element_text(element: ET.Element) -> Optional[str]:
    """Direct text of an element, or None if it has no text at all."""
    chunks = [element.text] + [child.tail for child in element]
    chunks = [chunk for chunk in chunks if chunk is not None]
    if not chunks:
        return None
    return ''.join(chunks)


def _pid_sort_key(element: ET.Element) -> Tuple[int, int]:
    pid = element.get('pid')
    if pid is not None and PID_RE.fullmatch(pid):
        return (0, int(pid))
    return (1, 0)


def find_storydata(root: ET.Element) -> Optional[ET.Element]:
    """Depth-first search for the first <tw-storydata> element."""
    for element in root.iter():
        if _local_name(element.tag) == STORYDATA:
            return element
    return None


def _parse_markup(source: str) -> ET.Element:
    try:
        return ET.fromstring(source)
    except ET.ParseError as e:
        raise MarkupParseError(str(e)) from e


# =============================================================================
# PARSING
# =============================================================================

def _parse_passagedata(element: ET.Element) -> Optional[Passage]:
    meta = dict(element.attrib)
    meta.pop('pid', None)
    name = meta.pop('name', None)
    if name is None:
        logger.debug("Dropping tw-passagedata without a name attribute")
        return None
    tags = meta.pop('tags', '').split()
    return Passage(
        name=name,
        tags=tags,
        meta=meta,
        content=_element_text(element) or '',
    )


def _merge_fragment(passages: List[Passage], element: ET.Element, name: str, tag: str) -> None:
    """Fold a <style>/<script> element into the passage called `name`."""
    text = _element_text(element) or ''
    for passage in passages:
        if passage.name == name:
            passage.content += '\n' + text
            return
    passages.append(Passage(name=name, tags=[tag], content=text))


def parse_storydata(storydata: ET.Element) -> Tuple[Story, List[ParseWarning]]:
    """Build a Story from a <tw-storydata> element.

    Children are processed in ascending pid order; children without a
    numeric pid come last in document order.

    Args:
        storydata: The <tw-storydata> element

    Returns:
        Tuple of (story, warnings)
    """
    warnings: List[ParseWarning] = []
    passages: List[Passage] = []
    tag_colors: Dict[str, str] = {}

    for element in sorted(storydata, key=_pid_sort_key):
        kind = _local_name(element.tag)
        if kind == PASSAGEDATA:
            passage = _parse_passagedata(element)
            if passage is not None:
                passages.append(passage)
        elif kind == STYLE:
            _merge_fragment(passages, element, STORY_STYLESHEET, STYLESHEET_TAG)
        elif kind == SCRIPT:
            _merge_fragment(passages, element, STORY_SCRIPT, SCRIPT_TAG)
        elif kind == TAG:
            tag_name = element.get('name')
            color = element.get('color')
            if tag_name is not None and color is not None:
                tag_colors[tag_name] = color

    meta = dict(storydata.attrib)
    meta.pop('hidden', None)

    title = meta.pop('name', None)
    if title is None:
        warnings.append(StoryTitleMissing())
        title = ''

    startnode = meta.pop('startnode', None)
    if startnode is not None:
        start = next((e for e in storydata if e.get('pid') == startnode), None)
        if start is not None and start.get('name') is not None:
            meta[START_KEY] = start.get('name')
        else:
            logger.debug(f"startnode {startnode} does not match any passage")

    meta[TAG_COLORS_KEY] = tag_colors

    logger.debug(f"Parsed story '{title}' with {len(passages)} passages")
    return Story(title=title, passages=passages, meta=meta), warnings


def parse_html(source: str) -> Tuple[Story, List[ParseWarning]]:
    """Parse a published Twine document into a Story.

    Args:
        source: Markup containing a <tw-storydata> element anywhere

    Returns:
        Tuple of (story, warnings)

    Raises:
        MarkupParseError: The markup is not well-formed
        StoryDataNotFoundError: There is no <tw-storydata> element
    """
    storydata = find_storydata(_parse_markup(source))
    if storydata is None:
        raise StoryDataNotFoundError()
    return parse_storydata(storydata)


def parse_archive(source: str) -> List[Tuple[Story, List[ParseWarning]]]:
    """Parse a Twine archive (sibling <tw-storydata> elements) into Stories.

    Raises:
        MarkupParseError: The markup is not well-formed
        StoryDataNotFoundError: A top-level element is not <tw-storydata>
    """
    body = XML_DECLARATION_RE.sub('', source, count=1)
    root = _parse_markup(f'<{ARCHIVE_ROOT}>{body}</{ARCHIVE_ROOT}>')

    stories = []
    for element in root:
        kind = _local_name(element.tag)
        if kind != STORYDATA:
            raise StoryDataNotFoundError(found=kind)
        stories.append(parse_storydata(element))

    logger.debug(f"Parsed archive with {len(stories)} stories")
    return stories


# =============================================================================
# SERIALIZATION
# =============================================================================

def _append_fragment(storydata: ET.Element, element: Optional[ET.Element], kind: str,
                     attributes: Dict[str, str], content: str) -> ET.Element:
    if element is None:
        element = ET.SubElement(storydata, kind, attributes)
        element.text = content
    else:
        element.text = (element.text or '') + '\n' + content
    return element


def serialize_html(story: Story) -> ET.Element:
    """Serialize a Story into a <tw-storydata> element.

    Stylesheet- and script-tagged passages merge into a single <style> and
    <script> element. Every other passage gets a sequential pid starting at
    1. Only string metadata can be written as attributes; other values are
    dropped.
    """
    storydata = ET.Element(STORYDATA, {'name': story.title})
    style = None
    script = None
    pids: Dict[str, str] = {}
    pid = 1

    for passage in story.passages:
        if passage.has_tag(STYLESHEET_TAG):
            style = _append_fragment(storydata, style, STYLE, STYLE_ATTRIBUTES, passage.content)
            continue
        if passage.has_tag(SCRIPT_TAG):
            script = _append_fragment(storydata, script, SCRIPT, SCRIPT_ATTRIBUTES, passage.content)
            continue

        element = ET.SubElement(storydata, PASSAGEDATA, {
            'pid': str(pid),
            'name': passage.name,
            'tags': ' '.join(passage.tags),
        })
        for key, value in passage.meta.items():
            if key in PASSAGE_ATTRIBUTES:
                continue
            if isinstance(value, str):
                element.set(key, value)
            else:
                logger.debug(f"Dropping non-string metadata '{key}' of passage '{passage.name}'")
        element.text = passage.content
        pids.setdefault(passage.name, str(pid))
        pid += 1

    for key, value in story.meta.items():
        if key == START_KEY:
            if isinstance(value, str) and value in pids:
                storydata.set('startnode', pids[value])
        elif key == TAG_COLORS_KEY:
            if isinstance(value, dict):
                for tag_name, color in value.items():
                    if isinstance(color, str):
                        storydata.insert(0, ET.Element(TAG, {'name': tag_name, 'color': color}))
        elif key in STORY_ATTRIBUTES:
            continue
        elif isinstance(value, str):
            storydata.set(key, value)
        else:
            logger.debug(f"Dropping non-string story metadata '{key}'")

    return storydata


def serialize_html_string(story: Story) -> str:
    """Serialize a Story into <tw-storydata> markup text.

    Carriage returns in text are written as character references; XML
    parsers fold a raw `\\r\\n` into `\\n`.
    """
    markup = ET.tostring(serialize_html(story), encoding='unicode', short_empty_elements=False)
    return markup.replace('\r', CARRIAGE_RETURN_REF)


def serialize_archive_string(stories: Iterable[Story]) -> str:
    """Serialize Stories into an archive of sibling <tw-storydata> elements."""
    return '\n'.join(serialize_html_string(story) for story in stories) + '\n'
