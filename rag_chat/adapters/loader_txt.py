from __future__ import annotations

import re
from pathlib import Path
from typing import List

from rag_chat.ports.loaders import SeedLoader

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


class TxtSeedLoader(SeedLoader):
    """Один сид-текст на абзац (абзацы разделены пустой строкой)."""

    def load(self, path: str) -> List[str]:
        p = Path(path)
        text = p.read_text(encoding="utf-8", errors="ignore")
        parts = (" ".join(chunk.split()) for chunk in _PARAGRAPH_SPLIT_RE.split(text))
        return [part for part in parts if part]
