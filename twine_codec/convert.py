#!/usr/bin/env python3
"""
Story conversion command line.

Reads and writes story files around the codec functions:
- decompile: published HTML -> .twee
- unpack: Twine archive -> one .twee per story
- compile: .twee -> <tw-storydata> markup
- json: .twee or HTML -> Twine JSON

Usage:
    python3 -m twine_codec.convert decompile story.html
    python3 -m twine_codec.convert unpack library.html stories/
    python3 -m twine_codec.convert compile story.twee story-data.html
    python3 -m twine_codec.convert json story.twee story.json
"""

import re
import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .errors import ParseWarning, TwineCodecError
from .json_format import serialize_json
from .markup import parse_archive, parse_html, serialize_html_string
from .story import Story
from .twee import parse_twee, serialize_twee

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 2

HTML_SUFFIXES = {'.html', '.htm', '.xhtml'}
UNTITLED = 'story'


def read_text(path: Path) -> str:
    with open(path, 'r', encoding='utf-8-sig') as f:
        return f.read()


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)


def report_warnings(source: Path, warnings: Sequence[ParseWarning]) -> None:
    for warning in warnings:
        logger.warning(f"{source}: {warning.message}")


def twee_filename(title: str, fallback: str = UNTITLED) -> str:
    """File name for a story: its title with path separators replaced."""
    return re.sub(r'[\\/]', '_', title or fallback) + '.twee'


def load_story(path: Path) -> Tuple[Story, List[ParseWarning]]:
    """Parse an HTML or Twee file, chosen by suffix."""
    if path.suffix.lower() in HTML_SUFFIXES:
        return parse_html(read_text(path))
    return parse_twee(read_text(path))


def emit(text: str, out: Optional[Path]) -> None:
    if out is None:
        sys.stdout.write(text)
    else:
        write_text(out, text)
        logger.info(f"Wrote {out}")


# =============================================================================
# COMMANDS
# =============================================================================

def decompile(file: Path, out: Optional[Path]) -> None:
    story, warnings = parse_html(read_text(file))
    report_warnings(file, warnings)
    if out is None:
        out = file.parent / twee_filename(story.title)
    emit(serialize_twee(story), out)


def unpack(file: Path, directory: Path) -> None:
    if not directory.is_dir():
        raise NotADirectoryError(f"Directory not found: {directory}")
    untitled = 0
    for story, warnings in parse_archive(read_text(file)):
        report_warnings(file, warnings)
        if story.title:
            name = twee_filename(story.title)
        else:
            untitled += 1
            name = twee_filename('', fallback=f"{UNTITLED}-{untitled}")
        emit(serialize_twee(story), directory / name)


def compile_twee(file: Path, out: Optional[Path]) -> None:
    story, warnings = parse_twee(read_text(file))
    report_warnings(file, warnings)
    emit(serialize_html_string(story) + '\n', out)


def export_json(file: Path, out: Optional[Path]) -> None:
    story, warnings = load_story(file)
    report_warnings(file, warnings)
    emit(serialize_json(story) + '\n', out)


# =============================================================================
# CLI INTERFACE
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Convert Twine stories between Twee, HTML and JSON',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 - Success
  2 - Error occurred
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    commands = parser.add_subparsers(dest='command', required=True)

    p = commands.add_parser('decompile', help='Convert a published HTML story into .twee')
    p.add_argument('file', type=Path, help='HTML file to decompile')
    p.add_argument('out', type=Path, nargs='?',
                   help='Output file (default: <story title>.twee next to the input)')

    p = commands.add_parser('unpack', help='Unpack a Twine archive into .twee files')
    p.add_argument('file', type=Path, help='Archive file to unpack')
    p.add_argument('dir', type=Path, nargs='?', default=Path('.'),
                   help='Directory to create the .twee files in')

    p = commands.add_parser('compile', help='Convert .twee into <tw-storydata> markup')
    p.add_argument('file', type=Path, help='Twee file to compile')
    p.add_argument('out', type=Path, nargs='?', help='Output file (default: stdout)')

    p = commands.add_parser('json', help='Convert .twee or HTML into Twine JSON')
    p.add_argument('file', type=Path, help='Twee or HTML file')
    p.add_argument('out', type=Path, nargs='?', help='Output file (default: stdout)')

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for command-line usage."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    try:
        if args.command == 'decompile':
            decompile(args.file, args.out)
        elif args.command == 'unpack':
            unpack(args.file, args.dir)
        elif args.command == 'compile':
            compile_twee(args.file, args.out)
        elif args.command == 'json':
            export_json(args.file, args.out)
    except (TwineCodecError, OSError) as e:
        logger.error(str(e))
        return EXIT_ERROR

    return EXIT_SUCCESS


if __name__ == '__main__':
    sys.exit(main())
