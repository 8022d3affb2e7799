from __future__ import annotations

import re
from typing import List, NamedTuple, Optional


FENCE_OPEN_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>[^\n]*)$")
TABLE_SEPARATOR_RE = re.compile(r"^[ \t]*\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)*\|?[ \t]*$")
PARTIAL_SEPARATOR_RE = re.compile(r"^[ \t|:\-]*-[ \t|:\-]*$")
_CELL_SPLIT_RE = re.compile(r"(?<!\\)\|")


class Fence(NamedTuple):
    char: str
    length: int
    indent: str = ""

    @property
    def marker(self) -> str:
        return self.char * self.length


def split_lines(text: str) -> List[str]:
    """Split text into lines, each keeping its trailing newline."""
    lines = text.split("\n")
    out = [line + "\n" for line in lines[:-1]]
    if lines[-1]:
        out.append(lines[-1])
    return out


def is_blank(line: str) -> bool:
    return not line.strip()


def match_fence_open(line: str) -> Optional[Fence]:
    m = FENCE_OPEN_RE.match(line.rstrip("\r\n"))
    if not m:
        return None
    fence = m.group("fence")
    # ```foo`bar is an inline code span, not a fence
    if fence[0] == "`" and "`" in m.group("info"):
        return None
    return Fence(fence[0], len(fence), m.group("indent"))


def is_fence_close(line: str, fence: Fence) -> bool:
    stripped = line.strip()
    return len(stripped) >= fence.length and stripped == fence.char * len(stripped)


def is_table_row(line: str) -> bool:
    return bool(_CELL_SPLIT_RE.search(line.strip()))


def is_table_separator(line: str) -> bool:
    stripped = line.strip()
    return "|" in stripped and bool(TABLE_SEPARATOR_RE.match(stripped))


def split_cells(row: str) -> List[str]:
    """Return the cells of a table row, outer pipes removed."""
    content = row.strip()
    if content.startswith("|"):
        content = content[1:]
    if _ends_with_pipe(content):
        content = content[:-1]
    return _CELL_SPLIT_RE.split(content)


def _ends_with_pipe(content: str) -> bool:
    return content.endswith("|") and not content.endswith("\\|")


def _row_is_closed(row: str) -> bool:
    inner = row.strip()
    if inner.startswith("|"):
        inner = inner[1:]
    return _ends_with_pipe(inner)


def pad_row(row: str, columns: int, filler: str = "") -> str:
    """Append cells to ``row`` until it has ``columns`` cells.

    Rows that already have enough cells are returned unchanged. ``filler``
    is the content of each appended cell.
    """
    missing = columns - len(split_cells(row))
    if missing <= 0:
        return row
    body = row.rstrip()
    if not _row_is_closed(body):
        body += " |"
    cell = " %s |" % filler if filler else " |"
    return body + cell * missing


def pad_separator(row: str, columns: int) -> Optional[str]:
    """Finish a partially typed separator row, or None if it can't be one."""
    if "|" not in row or not PARTIAL_SEPARATOR_RE.match(row.strip()):
        return None
    padded = pad_row(row, columns, filler="---")
    if not is_table_separator(padded) or len(split_cells(padded)) != columns:
        return None
    return padded
