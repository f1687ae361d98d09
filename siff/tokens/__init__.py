"""Token counting: shared counter resources, background worker and accounting."""

from __future__ import annotations

from .accounting import MAX_FILES_FOR_TOKEN_CALC, TOKEN_REFRESH_DEBOUNCE_SECONDS, TokenAccountingEngine
from .counter import (
    TiktokenTokenizer,
    TokenCounter,
    TokenizationResources,
    build_tokenization_resources,
    format_token_count,
)
from .worker import TokenCalculationWorker, TokenResult

__all__ = [
    "MAX_FILES_FOR_TOKEN_CALC",
    "TOKEN_REFRESH_DEBOUNCE_SECONDS",
    "TiktokenTokenizer",
    "TokenAccountingEngine",
    "TokenCalculationWorker",
    "TokenCounter",
    "TokenResult",
    "TokenizationResources",
    "build_tokenization_resources",
    "format_token_count",
]
