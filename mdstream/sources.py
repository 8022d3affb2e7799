"""Text sources that feed a Markdown stream.

A source is any iterator of text chunks. Two kinds are provided: chunked
reads from a file object (optionally paced to look like token arrival) and
Server-Sent Events endpoints, whose frames are decoded by a provider
decoder into text.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, Dict, Iterable, Iterator, Optional, TextIO

import requests

logger = logging.getLogger(__name__)

# A decoder maps one SSE data line to a text chunk, to None for frames
# without text, or to END_OF_STREAM.
END_OF_STREAM = object()
Decoder = Callable[[str], object]

_SSE_FIELDS = ("event", "id", "retry")


def iter_text_chunks(stream: TextIO, chunk_size: int = 4, delay: float = 0.0) -> Iterator[str]:
    """Yield ``stream`` in chunks of ``chunk_size`` characters.

    With ``delay`` > 0 the iterator sleeps between chunks, which replays a
    saved response at roughly the pace a model would produce it.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        yield chunk
        if delay > 0:
            time.sleep(delay)


def iter_sse_lines(
    url: str,
    *,
    method: str = "POST",
    json: Optional[dict] = None,
    params: Optional[Dict[str, str]] = None,
    timeout: float = 60.0,
    session: Optional[requests.Session] = None,
) -> Iterator[str]:
    """Yield the payload of each SSE ``data:`` line from an HTTP response.

    Keep-alive blank lines, ``:`` comments and the ``event``/``id``/``retry``
    fields are dropped, so every yielded string is a frame for a decoder.
    Lines without a field name are passed through for servers that stream
    bare JSON lines.
    """
    sse_session = session or requests.Session()
    req = sse_session.get if method.upper() == "GET" else sse_session.post
    logger.debug("%s %s (timeout %.0fs)", method.upper(), url, timeout)
    with req(url, json=json, params=params, stream=True, timeout=timeout) as r:
        r.raise_for_status()
        for raw in r.iter_lines(decode_unicode=True):
            if not raw or raw.startswith(":"):
                continue
            if raw.startswith("data:"):
                yield raw[5:].lstrip()
            elif raw.split(":", 1)[0] in _SSE_FIELDS:
                logger.debug("Skipping SSE field line: %s", raw[:80])
            else:
                yield raw


def _load(data: str) -> Optional[dict]:
    try:
        evt = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable frame: %r", data[:80])
        return None
    return evt if isinstance(evt, dict) else None


def decode_bedrock(data: str) -> object:
    """Bedrock/Anthropic frames: text comes from ``text_delta`` deltas."""
    if data == "[DONE]":
        return END_OF_STREAM
    evt = _load(data)
    if evt is None:
        return None
    e_type = evt.get("type")
    if e_type == "message_stop":
        return END_OF_STREAM
    if e_type == "content_block_delta":
        delta = evt.get("delta") or {}
        if delta.get("type") == "text_delta":
            return delta.get("text") or None
    return None


def decode_azure(data: str) -> object:
    """Azure/OpenAI chat completion chunks: ``choices[].delta.content``."""
    if data == "[DONE]":
        return END_OF_STREAM
    evt = _load(data)
    if evt is None:
        return None
    parts = []
    for choice in evt.get("choices") or []:
        content = (choice.get("delta") or {}).get("content")
        if isinstance(content, str) and content:
            parts.append(content)
    return "".join(parts) or None


def decode_raw(data: str) -> object:
    """Plain-text frames.

    A frame holding a JSON string is decoded, which keeps embedded newlines;
    any other frame is one line of Markdown.
    """
    if data == "[DONE]":
        return END_OF_STREAM
    if data.startswith('"'):
        try:
            text = json.loads(data)
        except json.JSONDecodeError:
            text = None
        if isinstance(text, str):
            return text
    return data + "\n"


_DECODERS: Dict[str, Decoder] = {
    "bedrock": decode_bedrock,
    "azure": decode_azure,
    "raw": decode_raw,
}


def get_decoder(name: str) -> Decoder:
    """Look up a frame decoder by provider name (bedrock, azure, raw)."""
    try:
        return _DECODERS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown provider: {name}") from None


def build_payload(provider: str, prompt: str, *, model: Optional[str] = None, max_tokens: int = 4096) -> dict:
    """Construct a single-turn streaming request body for ``provider``."""
    name = provider.strip().lower()
    messages = [{"role": "user", "content": prompt}]
    if name == "bedrock":
        return {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens,
            "messages": messages,
        }
    if name == "azure":
        payload = {
            "messages": [{"role": "system", "content": "Use Markdown formatting when appropriate."}] + messages,
            "max_completion_tokens": max_tokens,
            "stream": True,
        }
        if model:
            payload["model"] = model
        return payload
    if name == "raw":
        return {"prompt": prompt}
    raise ValueError(f"Unknown provider: {provider}")


def map_text(decoder: Decoder, lines: Iterable[str]) -> Iterator[str]:
    """Turn SSE data lines into text chunks until the stream ends."""
    for data in lines:
        text = decoder(data)
        if text is END_OF_STREAM:
            break
        if text:
            yield text
