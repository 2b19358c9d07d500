"""Parser for go.mod files."""

import ast
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .errors import ManifestParseError
from .models import FileLocation, ModuleRef, OverrideEntry, ParsedManifest, RequireEntry

logger = logging.getLogger(__name__)

BLOCK_DIRECTIVES = {'require', 'replace', 'exclude', 'retract', 'godebug', 'tool', 'ignore'}
LINE_DIRECTIVES = {'module', 'go', 'toolchain'}
KNOWN_DIRECTIVES = BLOCK_DIRECTIVES | LINE_DIRECTIVES

# Characters that end an unquoted token. Quotes and '=>' only start a token.
_DELIMITERS = ' \t\r()[],'
_OPERATORS = ('(', ')', '[', ']', ',', '=>')

# Rooted, relative, or Windows drive directory paths.
_DIRECTORY_PATH = re.compile(r'^(\.{1,2}[/\\]|\.{1,2}$|/|\\|[A-Za-z]:[/\\])')

REPLACE_USAGE = (
    "usage: replace module/path [v1.2.3] => other/module v1.4\n"
    "\t or replace module/path [v1.2.3] => ../local/directory"
)


@dataclass(frozen=True)
class _Token:
    text: str
    col: int
    quoted: bool = False

    def is_op(self, op: str) -> bool:
        return not self.quoted and self.text == op


def read_manifest(path: str) -> bytes:
    """Read a go.mod file in one scoped read."""
    logger.debug(f"Reading go.mod file: {path}")
    with open(path, 'rb') as f:
        return f.read()


def _unquote(raw: str, file_name: str, line_num: int) -> str:
    try:
        value = ast.literal_eval(raw)
    except (ValueError, SyntaxError):
        raise ManifestParseError(file_name, line_num, f"invalid quoted string {raw}")
    if not isinstance(value, str):
        raise ManifestParseError(file_name, line_num, f"invalid quoted string {raw}")
    return value


def _tokenize_line(line: str, file_name: str, line_num: int) -> Tuple[List[_Token], Optional[str]]:
    """
    Split one go.mod line into tokens.

    Returns:
        (tokens, trailing comment text or None). Columns are 1-based.
    """
    tokens: List[_Token] = []
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]

        if ch in ' \t\r':
            i += 1
            continue

        if line.startswith('//', i):
            return tokens, line[i + 2:].strip()

        if ch in '()[],':
            tokens.append(_Token(ch, i + 1))
            i += 1
            continue

        if line.startswith('=>', i):
            tokens.append(_Token('=>', i + 1))
            i += 2
            continue

        if ch == '"':
            j = i + 1
            while j < n and line[j] != '"':
                if line[j] == '\\':
                    j += 1
                j += 1
            if j >= n:
                raise ManifestParseError(file_name, line_num, "unterminated quoted string")
            tokens.append(_Token(_unquote(line[i:j + 1], file_name, line_num), i + 1, quoted=True))
            i = j + 1
            continue

        if ch == '`':
            j = line.find('`', i + 1)
            if j == -1:
                raise ManifestParseError(file_name, line_num, "unterminated raw string")
            tokens.append(_Token(line[i + 1:j], i + 1, quoted=True))
            i = j + 1
            continue

        j = i
        while j < n and line[j] not in _DELIMITERS and not line.startswith('//', j):
            j += 1
        tokens.append(_Token(line[i:j], i + 1))
        i = j

    return tokens, None


def _is_indirect(comment: Optional[str]) -> bool:
    if comment is None:
        return False
    return comment == 'indirect' or comment.startswith('indirect;')


def _is_directory_path(path: str) -> bool:
    return bool(_DIRECTORY_PATH.match(path))


class GoModParser:
    """Parser for the subset of go.mod syntax gomodcheck needs."""

    @staticmethod
    def parse(data: Union[bytes, str], file_name: str = 'go.mod') -> ParsedManifest:
        """
        Parse go.mod content.

        Args:
            data: Raw go.mod bytes or text
            file_name: Name used in error messages

        Returns:
            ParsedManifest with the module path and the require and replace
            statements in file order

        Raises:
            ManifestParseError: On any syntax error
        """
        if isinstance(data, bytes):
            try:
                text = data.decode('utf-8')
            except UnicodeDecodeError:
                raise ManifestParseError(file_name, 1, "file is not valid UTF-8")
        else:
            text = data

        manifest = ParsedManifest(module_path='', file_name=file_name)
        block_verb: Optional[str] = None
        block_line = 0

        for line_num, line in enumerate(text.split('\n'), 1):
            tokens, comment = _tokenize_line(line, file_name, line_num)
            if not tokens:
                continue

            if block_verb is not None:
                if tokens[0].is_op(')'):
                    if len(tokens) > 1:
                        raise ManifestParseError(file_name, line_num, "unexpected input after ')'")
                    block_verb = None
                    continue
                loc = FileLocation(line_num, tokens[0].col)
                GoModParser._handle_directive(manifest, block_verb, tokens, comment, loc, line_num)
                continue

            verb = tokens[0]
            if verb.quoted or verb.text not in KNOWN_DIRECTIVES:
                raise ManifestParseError(file_name, line_num, f"unknown directive: {verb.text}")

            args = tokens[1:]
            if args and args[0].is_op('('):
                if verb.text not in BLOCK_DIRECTIVES:
                    raise ManifestParseError(file_name, line_num, f"{verb.text} does not accept a block")
                if len(args) == 2 and args[1].is_op(')'):
                    continue
                if len(args) > 1:
                    raise ManifestParseError(file_name, line_num, "unexpected input after '('")
                block_verb = verb.text
                block_line = line_num
                continue

            loc = FileLocation(line_num, verb.col)
            GoModParser._handle_directive(manifest, verb.text, args, comment, loc, line_num)

        if block_verb is not None:
            raise ManifestParseError(file_name, block_line, f"unterminated {block_verb} block")

        if not manifest.module_path:
            raise ManifestParseError(file_name, 1, "missing module declaration")

        logger.debug(
            f"Parsed {file_name}: module {manifest.module_path}, "
            f"{len(manifest.requires)} requires, {len(manifest.overrides)} replaces"
        )
        return manifest

    @staticmethod
    def _handle_directive(
        manifest: ParsedManifest,
        verb: str,
        args: List[_Token],
        comment: Optional[str],
        loc: FileLocation,
        line_num: int,
    ) -> None:
        file_name = manifest.file_name

        if verb == 'module':
            if manifest.module_path:
                raise ManifestParseError(file_name, line_num, "repeated module statement")
            if len(args) != 1:
                raise ManifestParseError(file_name, line_num, "usage: module module/path")
            manifest.module_path = args[0].text

        elif verb == 'require':
            if len(args) != 2 or any(a.is_op(op) for a in args for op in _OPERATORS):
                raise ManifestParseError(file_name, line_num, "usage: require module/path v1.2.3")
            manifest.requires.append(RequireEntry(
                module_path=args[0].text,
                version=args[1].text,
                indirect=_is_indirect(comment),
                location=loc,
            ))

        elif verb == 'replace':
            manifest.overrides.append(GoModParser._parse_replace(args, loc, file_name, line_num))

        # go, toolchain, exclude, retract, godebug, tool and ignore do not
        # affect version resolution between modules.

    @staticmethod
    def _parse_replace(args: List[_Token], loc: FileLocation, file_name: str, line_num: int) -> OverrideEntry:
        arrow = next((i for i, a in enumerate(args) if a.is_op('=>')), -1)
        if arrow not in (1, 2):
            raise ManifestParseError(file_name, line_num, REPLACE_USAGE)

        old_path = args[0].text
        old_version = args[1].text if arrow == 2 else None

        new_args = args[arrow + 1:]
        if len(new_args) not in (1, 2):
            raise ManifestParseError(file_name, line_num, REPLACE_USAGE)

        new_path = new_args[0].text
        new_version = new_args[1].text if len(new_args) == 2 else ''

        if not new_version and not _is_directory_path(new_path):
            raise ManifestParseError(
                file_name, line_num,
                "replacement module without version must be directory path (rooted or starting with ./ or ../)"
            )

        return OverrideEntry(
            old_path=old_path,
            old_version=old_version,
            new=ModuleRef(new_path, new_version),
            location=loc,
        )

    @staticmethod
    def parse_file(path: str) -> ParsedManifest:
        """Read and parse a go.mod file from disk."""
        return GoModParser.parse(read_manifest(path), file_name=path)
