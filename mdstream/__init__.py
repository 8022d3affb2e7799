from __future__ import annotations

from .completer import INCOMPLETE_LINK_HREF, complete
from .segmenter import segment


__all__ = ["segment", "complete", "INCOMPLETE_LINK_HREF"]
