import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mdstream.completer import INCOMPLETE_LINK_HREF
from mdstream.markdown_live import MarkdownStream, MarkdownStyled


class DummyConsole:
    def __init__(self):
        self.printed = []

    def print(self, text):
        self.printed.append(str(text))


class DummyLive:
    def __init__(self):
        self.console = DummyConsole()
        self.updated = []
        self.stopped = False

    def update(self, text):
        self.updated.append(str(text))

    def refresh(self):
        pass

    def stop(self):
        self.stopped = True


def _stream(**kwargs):
    ms = MarkdownStream(**kwargs)

    # Inject DummyLive instead of a real Live
    def ensure_live():
        if not ms.live:
            ms.live = DummyLive()

    ms._ensure_live = ensure_live  # type: ignore
    return ms


def test_waiting_and_update_flow():
    ms = _stream()

    # Start waiting indicator
    ms.start_waiting("Loading…")
    assert ms.waiting_active is True
    assert ms.waiting_message == "Loading…"

    # Provide first content; waiting should stop automatically
    ms.update("Hello world", final=False)
    assert ms.waiting_active is False

    # Finalize output
    ms.update("Hello world", final=True)
    assert ms.live is None  # stop() clears live


def test_waiting_spinner_stays_without_content():
    ms = _stream()
    ms.start_waiting()
    ms.update("\n\n", final=False)
    assert ms.waiting_active is True


def test_closed_blocks_are_printed_once():
    ms = _stream()
    ms.update("# Title\n\nPara one.\n\nPara", final=False)
    live = ms.live
    assert ms.printed == 2
    # title, separator line, first paragraph
    assert len(live.console.printed) == 3
    assert "Title" in live.console.printed[0]
    assert "Para one." in live.console.printed[2]
    assert "Para" in live.updated[-1]

    ms.when = 0.0
    ms.update("# Title\n\nPara one.\n\nPara two", final=False)
    assert len(live.console.printed) == 3
    assert "Para two" in live.updated[-1]

    ms.update("# Title\n\nPara one.\n\nPara two", final=True)
    assert len(live.console.printed) == 5
    assert "Para two" in live.console.printed[-1]
    assert ms.live is None


def test_updates_are_throttled():
    ms = _stream(min_delay=60.0)
    ms.update("first", final=False)
    live = ms.live
    count = len(live.updated)
    ms.update("first second", final=False)
    assert len(live.updated) == count


def test_last_block_is_repaired_before_rendering():
    ms = MarkdownStream()
    rendered = "".join(ms.render_block("Hello **world"))
    assert "world" in rendered
    assert "**" not in rendered


def test_raw_mode_renders_markup_as_is():
    ms = MarkdownStream(parse_incomplete=False)
    rendered = "".join(ms.render_block("Hello **world"))
    assert "**world" in rendered


def test_pending_link_is_not_a_hyperlink():
    ms = MarkdownStream()
    rendered = "".join(ms.render_block("Check [this](http://ex"))
    assert "this" in rendered
    assert INCOMPLETE_LINK_HREF not in rendered
    assert "http://ex" not in rendered


def test_pending_link_tokens_become_emphasis():
    md = MarkdownStyled("Check [this](%s) out" % INCOMPLETE_LINK_HREF)
    children = [child for token in md.parsed if token.children for child in token.children]
    types = [child.type for child in children]
    assert "link_open" not in types
    assert types.count("em_open") == 1 and types.count("em_close") == 1


def test_real_links_are_kept():
    md = MarkdownStyled("A [link](https://example.com)")
    children = [child for token in md.parsed if token.children for child in token.children]
    assert [c.attrs.get("href") for c in children if c.type == "link_open"] == ["https://example.com"]
