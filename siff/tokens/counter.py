"""Per-file token counting with a shared cache and a bounded permit pool.

The tokenizer and permit pool are process-scoped resources built once by the
assembly routine and handed to every ``TokenCounter`` that needs them.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

DEFAULT_ENCODING = "o200k_base"


class TiktokenTokenizer:
    """Thin adapter over one shared ``tiktoken`` encoding."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        import tiktoken

        self.encoding_name = encoding_name
        self._encoding = tiktoken.get_encoding(encoding_name)

    def count(self, text: str) -> int:
        # Special-token text counts like any other text instead of raising.
        return len(self._encoding.encode(text, allowed_special="all"))


def default_permit_count() -> int:
    """Return the tokenization concurrency ceiling: twice the CPU count."""
    return (os.cpu_count() or 4) * 2


@dataclass
class TokenizationResources:
    """Shared tokenizer instance, permit pool and result cache."""

    tokenizer: object
    permits: threading.BoundedSemaphore
    permit_count: int
    cache: dict[Path, int] = field(default_factory=dict)
    cache_lock: threading.Lock = field(default_factory=threading.Lock)


def build_tokenization_resources(
    tokenizer: object | None = None,
    permit_count: int | None = None,
) -> TokenizationResources:
    """Create the process-wide tokenizer resources.

    Loading the default ``tiktoken`` encoding can fail (missing package or
    encoding data); callers treat that as a startup error.
    """
    if tokenizer is None:
        tokenizer = TiktokenTokenizer()
    count = permit_count if permit_count is not None else default_permit_count()
    count = max(1, count)
    return TokenizationResources(
        tokenizer=tokenizer,
        permits=threading.BoundedSemaphore(count),
        permit_count=count,
    )


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


class TokenCounter:
    """Count tokens for single files, memoizing results in the shared cache."""

    def __init__(
        self,
        resources: TokenizationResources,
        read_text: Callable[[Path], str] = _read_text,
    ) -> None:
        self._resources = resources
        self._read_text = read_text

    def cached(self, path: Path) -> int | None:
        with self._resources.cache_lock:
            return self._resources.cache.get(path)

    def _store(self, path: Path, count: int) -> int:
        with self._resources.cache_lock:
            self._resources.cache[path] = count
        return count

    def count_file_tokens(self, path: Path) -> int:
        """Return the token count for ``path``.

        The cache is checked before and again after acquiring a permit so two
        near-simultaneous requests for one path tokenize it once. Files that
        cannot be read or decoded count as 0.
        """
        cached = self.cached(path)
        if cached is not None:
            return cached

        with self._resources.permits:
            cached = self.cached(path)
            if cached is not None:
                return cached

            try:
                content = self._read_text(path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug(f"Counting unreadable file {path} as 0 tokens: {exc}")
                return self._store(path, 0)

            count = int(self._resources.tokenizer.count(content))
            return self._store(path, count)


def format_token_count(count: int) -> str:
    """Format counts as ``500``, ``1.5K`` or ``1.5M``."""
    if count < 1_000:
        return f"{count}"
    if count < 1_000_000:
        return f"{count / 1_000:.1f}K"
    return f"{count / 1_000_000:.1f}M"


__all__ = [
    "DEFAULT_ENCODING",
    "TiktokenTokenizer",
    "TokenCounter",
    "TokenizationResources",
    "build_tokenization_resources",
    "default_permit_count",
    "format_token_count",
]
