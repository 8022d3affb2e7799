from __future__ import annotations

from typing import List, Optional

from .syntax import (
    Fence,
    is_blank,
    is_fence_close,
    is_table_row,
    is_table_separator,
    match_fence_open,
    split_cells,
    split_lines,
)


def segment(text: str) -> List[str]:
    """Split streamed Markdown into top-level blocks.

    Blocks are separated by blank lines, which stay attached to the block
    before them, so ``"".join(segment(text)) == text`` always holds. Blank
    lines inside a fenced code block do not split it, and a table ends at
    the first complete line that is not a table row.

    Only the last block can change when more text is appended; every other
    block is closed and keeps its exact content.
    """
    blocks: List[str] = []
    current: List[str] = []
    has_content = False
    boundary = False
    fence: Optional[Fence] = None
    in_table = False
    previous: Optional[str] = None

    for line in split_lines(text):
        if fence is not None:
            current.append(line)
            if is_fence_close(line, fence):
                fence = None
            continue

        if is_blank(line):
            current.append(line)
            if has_content:
                boundary = True
            in_table = False
            continue

        leaves_table = in_table and line.endswith("\n") and not is_table_row(line)
        if boundary or leaves_table:
            blocks.append("".join(current))
            current = []
            has_content = boundary = in_table = False
            previous = None

        current.append(line)
        has_content = True

        opened = match_fence_open(line)
        if opened is not None:
            fence = opened
            in_table = False
        elif (
            not in_table
            and previous is not None
            and is_table_row(previous)
            and is_table_separator(line)
            and len(split_cells(previous)) == len(split_cells(line))
        ):
            in_table = True
        previous = line

    if current:
        blocks.append("".join(current))
    return blocks
