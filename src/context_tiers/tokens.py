"""Token estimation for tier budgeting."""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from context_tiers.config import get_settings

logger = logging.getLogger(__name__)

_tokenizer_cache: dict[str, object] = {}


def _get_tokenizer(encoding: str) -> object | None:
    """Try to load a tiktoken tokenizer, fall back to None."""
    if encoding in _tokenizer_cache:
        return _tokenizer_cache[encoding]
    try:
        import tiktoken

        enc = tiktoken.get_encoding(encoding)
        logger.info("token estimator: using tiktoken (%s)", encoding)
    except Exception as exc:
        # get_encoding downloads its BPE ranks on first use and fails offline.
        logger.warning("token estimator: tiktoken unavailable (%s), using heuristic", exc)
        enc = None
    _tokenizer_cache[encoding] = enc
    return enc


def reset_tokenizer_cache() -> None:
    _tokenizer_cache.clear()


def _heuristic_tokens(text: str, chars_per_token: float) -> int:
    return max(1, math.ceil(len(text) / chars_per_token))


def estimate_tokens(text: str) -> int:
    """Estimate token count: tiktoken when configured and loadable, else chars/ratio."""
    if not text:
        return 0
    settings = get_settings()
    if settings.token_estimator == "tiktoken":
        enc = _get_tokenizer(settings.token_encoding)
        if enc is not None:
            return max(1, len(enc.encode(text, disallowed_special=())))  # type: ignore[attr-defined]
    return _heuristic_tokens(text, settings.chars_per_token)


def estimate_json_tokens(payload: Any) -> int:
    """Estimate tokens of a structured record as it would be sent: compact JSON."""
    if payload is None:
        return 0
    return estimate_tokens(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
