"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request fingerprints: stable cache keys derived from message text plus the
contextual parameters that change what a good answer looks like.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Mapping
from typing import Any

from .errors import InvalidCacheKeyError

FINGERPRINT_PREFIX = "fp:"

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_POLITENESS = re.compile(r"\b(please|could you|can you|would you)\b")


def normalize_message(message: str) -> str:
    """Lowercase, drop punctuation and politeness filler, collapse whitespace."""
    text = message.lower().strip()
    text = _PUNCTUATION.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    text = _POLITENESS.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def _context_payload(context: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not context:
        return None
    topics = context.get("recent_topics") or []
    return {
        "expertise": context.get("user_expertise_level") or "unknown",
        "style": context.get("preferred_response_style") or "default",
        "domain": context.get("domain") or "general",
        "recent_topics": [str(topic) for topic in list(topics)[:3]],
    }


def fingerprint(
    message: str,
    context: Mapping[str, Any] | None = None,
    user_id: str | None = None,
    *,
    include_user: bool = True,
) -> str:
    """
    Build deterministic cache key for a chat request.

    Messages that differ only in case, punctuation, spacing or politeness
    filler map to the same key. Context contributes only the fields that
    shape the answer (expertise, style, domain, first three recent topics).

    Raises:
        InvalidCacheKeyError: When the message is empty after normalization.
    """
    if not isinstance(message, str):
        raise InvalidCacheKeyError(
            f"Message must be a string, got {type(message).__name__}"
        )
    normalized = normalize_message(message)
    if not normalized:
        raise InvalidCacheKeyError("Message must contain at least one word")

    user: dict[str, Any] | None = None
    if include_user and user_id:
        user = {
            "id": user_id,
            "session": (context or {}).get("session_id") or "unknown",
        }

    payload = {
        "message": normalized,
        "context": _context_payload(context),
        "user": user,
    }
    encoded = json.dumps(payload, ensure_ascii=True, sort_keys=True, default=str)
    return FINGERPRINT_PREFIX + hashlib.sha256(encoded.encode("utf-8")).hexdigest()
