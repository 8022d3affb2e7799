from __future__ import annotations

import logging
from typing import List, NamedTuple, Optional

from .syntax import (
    Fence,
    is_blank,
    is_fence_close,
    is_table_row,
    is_table_separator,
    match_fence_open,
    pad_row,
    pad_separator,
    split_cells,
)

logger = logging.getLogger(__name__)

# Destination given to links whose URL was cut off mid-stream.
INCOMPLETE_LINK_HREF = "streamdown:incomplete-link"

_BRACKETS = ("[", "![")
_EMPHASIS = "*_~"


class OpenConstruct(NamedTuple):
    kind: str
    length: int
    offset: int


def complete(block: str) -> str:
    """Close or neutralize markup left open at the end of ``block``.

    Complete markup is returned unchanged and the result is a fixed point:
    ``complete(complete(x)) == complete(x)``. Never raises; if anything goes
    wrong the block is returned as-is.
    """
    if not block or block.isspace():
        return block
    try:
        return _Completer(block).run()
    except Exception:
        logger.debug("Leaving block unchanged after completion error", exc_info=True)
        return block


class _Completer:
    """Single left-to-right scan over a block's text."""

    def __init__(self, text: str) -> None:
        self.body = text.rstrip()
        self.trailing = text[len(self.body):]
        self.stack: List[OpenConstruct] = []
        self.fence: Optional[Fence] = None
        self.pending_link: Optional[int] = None
        # Start of the run of literal punctuation/whitespace ending the body
        self.tail_start: Optional[int] = None
        self.table_columns = 0
        self.last_row_in_table = False
        self.header_cells = 0
        self.above_cells = 0

    def run(self) -> str:
        lines = self.body.split("\n")
        offset = 0
        for index, line in enumerate(lines):
            if index:
                self._literal(offset - 1)
            self._scan_line(line, offset, last=index == len(lines) - 1)
            if self.pending_link is not None:
                break
            offset += len(line) + 1
        return self._assemble() + self.trailing

    # -- line level -----------------------------------------------------

    def _scan_line(self, line: str, offset: int, last: bool) -> None:
        self.last_row_in_table = False
        self.above_cells = 0
        if self.fence is not None:
            if is_fence_close(line, self.fence):
                self.fence = None
            self.tail_start = None
            return

        opened = match_fence_open(line)
        if opened is not None:
            self._end_paragraph()
            self.fence = opened
            self.tail_start = None
            return

        if is_blank(line):
            self._end_paragraph()
            return

        header_cells = self.above_cells = self.header_cells
        self.header_cells = 0
        if self.table_columns and is_table_row(line):
            self.stack.clear()
            self.last_row_in_table = True
        elif header_cells and is_table_separator(line) and len(split_cells(line)) == header_cells:
            self.stack.clear()
            self.table_columns = header_cells
        else:
            self.table_columns = 0
            if is_table_row(line):
                self.header_cells = len(split_cells(line))

        self._scan_inline(line, offset, last)

    def _end_paragraph(self) -> None:
        self.stack.clear()
        self.table_columns = 0
        self.header_cells = 0

    # -- inline level ---------------------------------------------------

    def _scan_inline(self, line: str, offset: int, last: bool) -> None:
        i = 0
        n = len(line)
        in_row = bool(self.table_columns)
        while i < n:
            ch = line[i]
            pos = offset + i

            if ch == "`":
                run = _run_length(line, i)
                self._backtick(run, pos, at_end=last and i + run == n)
                i += run
                continue

            # a pipe ends the cell even inside a code span
            if ch == "|" and in_row and not (i and line[i - 1] == "\\"):
                self.stack.clear()
                self._content(pos)
                i += 1
                continue

            if self._in_code():
                self._content(pos)
                i += 1
                continue

            if ch == "\\":
                if i + 1 < n:
                    self._content(pos)
                    i += 2
                else:
                    self._literal(pos)
                    i += 1
                continue

            if ch in _EMPHASIS:
                run = _run_length(line, i)
                before = line[i - 1] if i > 0 else " "
                after = line[i + run] if i + run < n else " "
                # an opener stays part of the tail until content follows it
                if self._delimiter(ch, run, pos, before, after):
                    self._content(pos)
                else:
                    self._literal(pos)
                i += run
                continue

            if ch == "!" and line.startswith("[", i + 1):
                self.stack.append(OpenConstruct("![", 2, pos))
                self._content(pos)
                i += 2
                continue

            if ch == "[":
                self.stack.append(OpenConstruct("[", 1, pos))
                self._content(pos)
                i += 1
                continue

            if ch == "]":
                self._content(pos)
                i += 1
                if not self._close_bracket() or not line.startswith("(", i):
                    continue
                end = _destination_end(line, i + 1)
                if end is not None:
                    i = end + 1
                elif last:
                    self.pending_link = offset + i
                    return
                continue

            if ch.isspace():
                self._literal(pos)
            else:
                self._content(pos)
            i += 1

    def _in_code(self) -> bool:
        return bool(self.stack) and self.stack[-1].kind == "`"

    def _backtick(self, run: int, pos: int, at_end: bool) -> None:
        if self._in_code():
            if self.stack[-1].length == run:
                self.stack.pop()
            self._content(pos)
        elif at_end:
            # nothing typed after it yet
            self._literal(pos)
        else:
            self.stack.append(OpenConstruct("`", run, pos))
            self._content(pos)

    def _delimiter(self, ch: str, run: int, pos: int, before: str, after: str) -> bool:
        """Match or push a delimiter run; True only when it closed something."""
        if ch == "~" and run == 1:
            return False
        left = not after.isspace()
        right = not before.isspace()
        if ch == "_":
            can_open = left and not before.isalnum()
            can_close = right and not after.isalnum()
        else:
            can_open = left
            can_close = right

        # Any run can close; only runs of 1-3 (exactly 2 for ~) open.
        if can_close and self._close_delimiter(ch, run):
            return True
        if can_open and run <= 3 and (ch != "~" or run == 2):
            if run == 3:
                self.stack.append(OpenConstruct(ch, 1, pos))
                self.stack.append(OpenConstruct(ch, 2, pos + 1))
            else:
                self.stack.append(OpenConstruct(ch, run, pos))
        return False

    def _close_delimiter(self, ch: str, run: int) -> bool:
        remaining = run
        while remaining:
            index = self._find(lambda entry: entry.kind == ch and entry.length <= remaining)
            if index is None:
                break
            remaining -= self.stack[index].length
            del self.stack[index:]
        return remaining != run

    def _close_bracket(self) -> bool:
        index = self._find(lambda entry: entry.kind in _BRACKETS)
        if index is None:
            return False
        del self.stack[index:]
        return True

    def _find(self, predicate) -> Optional[int]:
        for index in range(len(self.stack) - 1, -1, -1):
            if predicate(self.stack[index]):
                return index
        return None

    def _literal(self, pos: int) -> None:
        if self.tail_start is None:
            self.tail_start = pos

    def _content(self, pos: int) -> None:
        self.tail_start = None

    # -- output ---------------------------------------------------------

    def _assemble(self) -> str:
        body = self.body
        if self.fence is not None:
            return "%s\n%s%s" % (body, self.fence.indent, self.fence.marker)

        if self.pending_link is not None:
            out = body[: self.pending_link + 1] + INCOMPLETE_LINK_HREF + ")" + self._closers()
        else:
            in_code = self._in_code()
            cut = len(body) if self.tail_start is None or in_code else self.tail_start
            # Openers inside the trailing literal run wrap nothing; a closer
            # appended there would merge with them into a longer run.
            while self.stack and self.stack[-1].offset >= cut:
                self.stack.pop()
            closers = self._closers()
            if in_code and body.endswith("`"):
                closers = " " + closers
            out = body[:cut] + closers + body[cut:]
        return self._pad_table(out)

    def _closers(self) -> str:
        return "".join(
            entry.kind * entry.length
            for entry in reversed(self.stack)
            if entry.kind not in _BRACKETS
        )

    def _pad_table(self, text: str) -> str:
        head, sep, last = text.rpartition("\n")
        if self.last_row_in_table:
            padded = pad_row(last, self.table_columns)
        elif self.above_cells and not self.table_columns:
            padded = pad_separator(last, self.above_cells)
        else:
            padded = None
        if padded is None or padded == last:
            return text
        return head + sep + padded


def _run_length(line: str, start: int) -> int:
    ch = line[start]
    end = start
    while end < len(line) and line[end] == ch:
        end += 1
    return end - start


def _destination_end(line: str, start: int) -> Optional[int]:
    """Index of the ``)`` closing a link destination starting at ``start``."""
    depth = 0
    i = start
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    return None
