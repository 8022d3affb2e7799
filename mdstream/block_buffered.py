from __future__ import annotations

from typing import List, Optional

from .segmenter import segment


class BlockBuffer:
    """Accumulates streaming Markdown and yields blocks once they are closed.

    A block is closed when the text after it has started a new block: a
    paragraph or list is followed by a blank line and more content, a fenced
    code block cannot close until its fence does. The still-growing last
    block is available as ``pending``.
    """

    def __init__(self) -> None:
        self.text: str = ""
        self.flushed: int = 0

    def feed(self, text: str) -> List[str]:
        """Feed text, returning a list of completed blocks to flush."""
        if not text:
            return []
        self.text += text
        closed = segment(self.text)[:-1]
        out = closed[self.flushed:]
        self.flushed = len(closed)
        return out

    @property
    def pending(self) -> str:
        blocks = segment(self.text)
        return "".join(blocks[self.flushed:])

    def flush_remaining(self) -> Optional[str]:
        rest = self.pending
        self.text = ""
        self.flushed = 0
        return rest or None
