from __future__ import annotations

import io
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.live import Live
from rich.markdown import CodeBlock, Heading, Markdown
from rich.panel import Panel
from rich.spinner import Spinner
from rich.syntax import Syntax
from rich.text import Text

from .completer import INCOMPLETE_LINK_HREF, complete
from .segmenter import segment

logger = logging.getLogger(__name__)


class _CodeBlockTight(CodeBlock):
    def __rich_console__(self, console, options):
        code = str(self.text).rstrip()
        syntax = Syntax(code, self.lexer_name, theme=self.theme, word_wrap=True, padding=(1, 0))
        yield syntax


class _HeadingLeft(Heading):
    def __rich_console__(self, console, options):
        text = self.text
        text.justify = "left"
        if self.tag == "h1":
            yield Panel(text, box=box.HEAVY, style="markdown.h1.border")
        else:
            if self.tag == "h2":
                yield Text("")
            yield text


class MarkdownStyled(Markdown):
    """Rich Markdown that shows links pointing at the pending sentinel as
    emphasized text instead of hyperlinks."""

    elements = {
        **Markdown.elements,
        "fence": _CodeBlockTight,
        "code_block": _CodeBlockTight,
        "heading_open": _HeadingLeft,
    }

    def __init__(self, markup: str, **kwargs) -> None:
        super().__init__(markup, **kwargs)
        _mark_pending_links(self.parsed)


def _mark_pending_links(tokens) -> None:
    for token in tokens:
        if not token.children:
            continue
        in_pending = False
        for child in token.children:
            if child.type == "link_open" and child.attrs.get("href") == INCOMPLETE_LINK_HREF:
                child.type, child.tag, child.attrs = "em_open", "em", {}
                in_pending = True
            elif child.type == "link_close" and in_pending:
                child.type, child.tag = "em_close", "em"
                in_pending = False
            elif child.type == "image" and child.attrs.get("src") == INCOMPLETE_LINK_HREF:
                child.attrs["src"] = ""


@dataclass
class MarkdownStream:
    """Live terminal view of a Markdown document that is still being written.

    Closed blocks are rendered once and printed above the live region; only
    the last block is re-rendered on each update.
    """

    live: Optional[Live] = None
    when: float = 0.0
    min_delay: float = 1.0 / 20
    printed: int = 0
    parse_incomplete: bool = True
    code_theme: str = "monokai"
    hyperlinks: bool = True
    waiting_active: bool = False
    waiting_message: str = ""

    def render_block(self, block: str) -> List[str]:
        source = complete(block) if self.parse_incomplete else block
        buf = io.StringIO()
        tmp = Console(file=buf, force_terminal=True)
        tmp.print(MarkdownStyled(source, code_theme=self.code_theme, hyperlinks=self.hyperlinks))
        return buf.getvalue().splitlines(keepends=True)

    def _ensure_live(self):
        if not self.live:
            self.live = Live(Text(""), refresh_per_second=1.0 / self.min_delay)
            self.live.start()

    def stop(self):
        if self.live:
            try:
                self.live.update(Text(""))
                self.live.stop()
            except Exception:
                logger.debug("Live display did not stop cleanly", exc_info=True)
            self.live = None

    def start_waiting(self, message: str = "Waiting for response…") -> None:
        """Show an animated waiting indicator inside the live area."""
        if self.waiting_active:
            return
        self._ensure_live()
        self.waiting_active = True
        self.waiting_message = message
        spinner = Spinner("dots", text=Text(message, style="dim italic"), style="yellow")
        if self.live:
            self.live.update(spinner)
            self.live.refresh()

    def stop_waiting(self) -> None:
        if not self.waiting_active:
            return
        self.waiting_active = False
        self.waiting_message = ""
        if self.live:
            try:
                self.live.update(Text(""))
                self.live.refresh()
            except Exception:
                logger.debug("Could not clear waiting indicator", exc_info=True)
        # Reset pacing so the next content update isn't throttled
        self.when = 0.0

    def update(self, cumulative_text: str, final: bool = False) -> None:
        self._ensure_live()

        now = time.time()
        if not final and (now - self.when) < self.min_delay:
            return
        self.when = now

        blocks = [b for b in segment(cumulative_text) if b.strip()]
        stable = len(blocks) if final else max(0, len(blocks) - 1)

        if self.waiting_active and blocks:
            self.stop_waiting()

        # While waiting and no content yet, keep the spinner visible
        if self.waiting_active and not blocks and not final:
            return

        if stable < self.printed:
            # Scrollback can't be taken back; a shrinking document only
            # affects what is still live.
            logger.debug("Document shrank below %d printed blocks", self.printed)
        for block in blocks[self.printed:stable]:
            self._print_block(block)
        self.printed = max(self.printed, stable)

        if final:
            self.stop()
            return

        tail = ""
        if len(blocks) > self.printed:
            t0 = time.time()
            tail = "".join(self.render_block(blocks[-1]))
            render_time = time.time() - t0
            self.min_delay = min(max(render_time * 10, 1.0 / 20), 2)
            if self.printed:
                tail = "\n" + tail
        if self.live:
            self.live.update(Text.from_ansi(tail))

    def _print_block(self, block: str) -> None:
        lines = self.render_block(block)
        if self.live:
            if self.printed:
                self.live.console.print(Text(""))
            self.live.console.print(Text.from_ansi("".join(lines)))
        self.printed += 1
