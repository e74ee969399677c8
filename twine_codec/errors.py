#!/usr/bin/env python3
"""
Parse warnings and fatal errors.

Parsers are lenient: recoverable problems are collected as ParseWarning
values and returned next to the parsed Story, never raised. Problems that
make the whole input unusable raise a TwineCodecError subclass.
"""

from dataclasses import dataclass


# =============================================================================
# WARNINGS
# =============================================================================

@dataclass(frozen=True)
class ParseWarning:
    """Base class for recoverable parse issues."""

    @property
    def message(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class StoryMetadataMalformed(ParseWarning):
    """StoryData was not a JSON object."""

    @property
    def message(self) -> str:
        return "Story metadata is not valid JSON and has been discarded."


@dataclass(frozen=True)
class StoryTitleMissing(ParseWarning):
    """The story has no title."""

    @property
    def message(self) -> str:
        return "Story title is missing."


@dataclass(frozen=True)
class PassageMetadataMalformed(ParseWarning):
    """Inline passage metadata was not a JSON object."""

    name: str

    @property
    def message(self) -> str:
        return f'Passage "{self.name}" metadata is not valid JSON and has been discarded.'


@dataclass(frozen=True)
class PassageTagsMalformed(ParseWarning):
    """The tag block of a passage header was never closed."""

    name: str

    @property
    def message(self) -> str:
        return f'Passage "{self.name}" tag block is not closed.'


@dataclass(frozen=True)
class PassageDuplicated(ParseWarning):
    """A passage name appeared more than once."""

    name: str

    @property
    def message(self) -> str:
        return f'Passage "{self.name}" is duplicated.'


@dataclass(frozen=True)
class PassageNameMissing(ParseWarning):
    """A passage header had no name; the passage was discarded."""

    @property
    def message(self) -> str:
        return "Passage name is missing, passage has been discarded."


# =============================================================================
# ERRORS
# =============================================================================

class TwineCodecError(Exception):
    """Base class for fatal codec errors."""


class MarkupParseError(TwineCodecError):
    """The markup could not be parsed as a well-formed element tree."""

    def __init__(self, detail: str):
        super().__init__(f"Could not parse HTML: {detail}")
        self.detail = detail


class StoryDataNotFoundError(TwineCodecError):
    """No <tw-storydata> element where one was required."""

    def __init__(self, found: str = ''):
        if found:
            message = f"Expected tw-storydata element, found {found}"
        else:
            message = "No tw-storydata tag found in HTML"
        super().__init__(message)
        self.found = found


class StoryJSONError(TwineCodecError):
    """A Twine JSON document was not valid JSON or had the wrong shape."""

    def __init__(self, detail: str):
        super().__init__(f"Could not parse story JSON: {detail}")
        self.detail = detail
