"""Maintenance of package ``__init__.py`` index files.

Every generated Dagster module is re-exported from its directory's
``__init__.py`` so that loading the package picks it up:

    from .daily_sales import daily_sales
    from .orders import orders

    __all__ = ["daily_sales", "orders"]

Edits are textual and best-effort; content this module does not recognise is
left in place.
"""

import ast
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from dataweave.fileio import read_text, write_text

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = '__init__.py'

ALL_LIST_PATTERN = re.compile(r'__all__\s*=\s*\[(.*?)\]', re.DOTALL)
ALL_ASSIGNMENT_PATTERN = re.compile(r'^__all__\s*[+]?=', re.MULTILINE)
QUOTED_NAME_PATTERN = re.compile(r'''^(['"])(.*)\1$''', re.DOTALL)


def import_line(symbol: str) -> str:
    return f'from .{symbol} import {symbol}'


def parse_all_members(body: str) -> List[Tuple[str, bool]]:
    """Split the body of an ``__all__`` list.

    Returns:
        (member, is_name) pairs; quoted or bare identifiers become names with
        their quotes stripped, anything else (e.g. ``*base.__all__``) is kept
        verbatim with is_name False
    """
    members = []
    for raw in body.split(','):
        item = raw.strip()
        if not item:
            continue
        quoted = QUOTED_NAME_PATTERN.match(item)
        if quoted:
            members.append((quoted.group(2), True))
        elif item.isidentifier():
            members.append((item, True))
        else:
            members.append((item, False))
    return members


def format_all(members: List[Tuple[str, bool]]) -> str:
    items = [f'"{member}"' if is_name else member for member, is_name in members]
    return f"__all__ = [{', '.join(items)}]"


def strip_comments(body: str) -> str:
    return '\n'.join(line.partition('#')[0] for line in body.split('\n'))


def is_valid_python(source: str) -> bool:
    try:
        ast.parse(source)
    except SyntaxError:
        return False
    return True


def append_member_line(body: str, symbol: str) -> Optional[str]:
    """Add ``symbol`` on its own line after the last member, keeping comments.

    Returns:
        The new list body, or None if the body holds no members
    """
    lines = body.split('\n')
    for idx in range(len(lines) - 1, -1, -1):
        code, hash_mark, comment = lines[idx].partition('#')
        member = code.rstrip()
        if not member.strip():
            continue
        if not member.endswith(','):
            lines[idx] = f'{member},{code[len(member):]}{hash_mark}{comment}'
        indent = code[: len(code) - len(code.lstrip())]
        lines.insert(idx + 1, f'{indent}"{symbol}",')
        return '\n'.join(lines)
    return None


def merge_all(statement: str, body: str, symbol: str) -> Optional[str]:
    """Return the ``__all__`` statement with ``symbol`` listed.

    Lists without comments are rewritten on one line. Commented lists keep
    their layout and gain a member line. Returns None when the list cannot be
    edited safely.
    """
    if '#' not in body:
        members = parse_all_members(body)
        if symbol not in [member for member, is_name in members if is_name]:
            members.append((symbol, True))
        return format_all(members)

    # A ']' inside a comment ends the match early
    if not is_valid_python(statement):
        return None
    names = [member for member, is_name in parse_all_members(strip_comments(body)) if is_name]
    if symbol in names:
        return statement

    new_body = append_member_line(body, symbol)
    if new_body is None:
        return None
    merged = statement[: statement.index('[') + 1] + new_body + ']'
    return merged if is_valid_python(merged) else None


def add_symbol(content: str, symbol: str) -> str:
    """Return ``content`` with ``symbol`` imported and listed in ``__all__``.

    Returns the content unchanged if the import line is already present. An
    ``__all__`` that cannot be edited safely is left as is and a fresh import
    line and list are appended after it.
    """
    line = import_line(symbol)
    if line in content.splitlines():
        return content

    match = ALL_LIST_PATTERN.search(content)
    merged = merge_all(match.group(0), match.group(1), symbol) if match else None
    if merged is not None:
        # Keep the import block ahead of __all__ and its blank separator lines
        insert_at = content.rfind('\n', 0, match.start()) + 1
        while content[:insert_at].endswith('\n\n'):
            insert_at -= 1
        content = content[:insert_at] + f'{line}\n' + content[insert_at:]
        start = match.start() + len(line) + 1
        return content[:start] + merged + content[start + len(match.group(0)) :]

    if ALL_ASSIGNMENT_PATTERN.search(content):
        logger.warning(f'Could not parse existing __all__, appending a new one for {symbol!r}')

    if content and not content.endswith('\n'):
        content += '\n'
    content += f'{line}\n'
    content += f'\n{format_all([(symbol, True)])}\n'
    return content


def register_symbol(directory: Path, symbol: str) -> bool:
    """Register ``symbol`` in ``directory/__init__.py``.

    Calling this twice with the same symbol leaves the file byte-identical.

    Args:
        directory: Package directory holding the index file
        symbol: Module and attribute name to re-export

    Returns:
        True if the index file was written, False if it was already up to date
    """
    path = Path(directory) / INDEX_FILE_NAME
    content = read_text(path) or ''

    updated = add_symbol(content, symbol)
    if updated == content:
        logger.debug(f'{symbol} already registered in {path}')
        return False

    write_text(path, updated)
    logger.info(f'Registered {symbol} in {path}')
    return True
