#!/usr/bin/env python3
"""
mdstream: live-render Markdown that is still being written

Reads Markdown from a file, stdin or an SSE endpoint and renders it in the
terminal while it arrives. Closed blocks go to scrollback once; the block
still being written is repaired (open emphasis, code spans, fences, links
and table rows are closed) and redrawn in a live region.

Examples
    mdstream answer.md --delay 0.02            # replay a saved response
    cat answer.md | mdstream -                 # stream from stdin
    mdstream --url http://127.0.0.1:8000/invoke --provider bedrock --prompt "hi"
    mdstream answer.md --blocks                # show blocks and their repair
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterator, Optional

from requests.exceptions import RequestException
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from mdstream.completer import complete
from mdstream.markdown_live import MarkdownStream
from mdstream.segmenter import segment
from mdstream.sources import build_payload, get_decoder, iter_sse_lines, iter_text_chunks, map_text

# ---------------- Configuration ----------------
DEFAULT_URL = os.environ.get("MDSTREAM_URL", "http://127.0.0.1:8000/invoke")
DEFAULT_PROVIDER = "bedrock"
DEFAULT_CHUNK_SIZE = 4
console = Console()
logger = logging.getLogger("mdstream")


def setup_logging(verbose: bool) -> None:
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def open_source(args: argparse.Namespace) -> Iterator[str]:
    """Build the chunk iterator selected on the command line."""
    if args.url:
        decoder = get_decoder(args.provider)
        payload = build_payload(args.provider, args.prompt or "", model=args.model)
        logger.debug("Streaming %s frames from %s", args.provider, args.url)
        return map_text(decoder, iter_sse_lines(args.url, json=payload, timeout=args.timeout))

    if args.path in (None, "-"):
        return iter_text_chunks(sys.stdin, args.chunk_size, args.delay)

    def _file_chunks() -> Iterator[str]:
        with open(args.path, encoding="utf-8") as fh:
            yield from iter_text_chunks(fh, args.chunk_size, args.delay)

    return _file_chunks()


def render_live(chunks: Iterator[str], *, parse_incomplete: bool = True, code_theme: str = "monokai") -> str:
    """Drive a MarkdownStream from ``chunks``; returns the full text received."""
    stream = MarkdownStream(parse_incomplete=parse_incomplete, code_theme=code_theme)
    text = ""
    stream.start_waiting()
    try:
        for chunk in chunks:
            text += chunk
            stream.update(text)
    finally:
        stream.stop_waiting()
        stream.update(text, final=True)
    return text


def show_blocks(text: str, *, parse_incomplete: bool = True) -> None:
    """Print each block as it will be handed to the renderer."""
    blocks = segment(text)
    for index, block in enumerate(blocks, 1):
        source = complete(block) if parse_incomplete else block
        title = f"block {index}/{len(blocks)}"
        if source != block:
            title += " (repaired)"
        console.print(Panel(Text(source), title=title, title_align="left", border_style="dim"))


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(prog="mdstream", description="Live-render streaming Markdown in the terminal")
    parser.add_argument("path", nargs="?", help="Markdown file to replay, or - for stdin")
    parser.add_argument("--url", default=None, help=f"SSE endpoint to stream from (e.g. {DEFAULT_URL})")
    parser.add_argument("--provider", default=DEFAULT_PROVIDER, choices=["bedrock", "azure", "raw"], help=f"SSE frame format (default: {DEFAULT_PROVIDER})")
    parser.add_argument("--prompt", default=None, help="Prompt sent to the SSE endpoint")
    parser.add_argument("--model", default=None, help="Model name for providers that need one")
    parser.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout in seconds (default: 60)")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, help=f"Characters per chunk when replaying (default: {DEFAULT_CHUNK_SIZE})")
    parser.add_argument("--delay", type=float, default=0.0, help="Seconds to wait between replayed chunks")
    parser.add_argument("--code-theme", default="monokai", help="Pygments theme for code blocks")
    parser.add_argument("--raw", action="store_true", help="Render blocks without repairing incomplete markup")
    parser.add_argument("--blocks", action="store_true", help="Print blocks and their repaired source instead of rendering")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    if args.url is None and args.path is None:
        if sys.stdin.isatty():
            parser.error("a PATH, - or --url is required")
        args.path = "-"
    if args.chunk_size <= 0:
        parser.error("--chunk-size must be positive")

    try:
        chunks = open_source(args)
        if args.blocks:
            show_blocks("".join(chunks), parse_incomplete=not args.raw)
        else:
            render_live(chunks, parse_incomplete=not args.raw, code_theme=args.code_theme)
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted[/dim]")
        return 130
    except (OSError, RequestException) as e:
        console.print(f"[red]Stream failed[/red]: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
