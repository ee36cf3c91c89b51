"""Site-specific system prompts matched by hostname pattern.

Patterns come in three shapes:

- exact: ``rport.io``
- subdomain wildcard: ``*.example.com`` (matches ``app.example.com`` but not
  ``example.com``)
- prefix wildcard: ``*github.com`` (matches ``github.com`` and ``my.github.com``)

When several enabled patterns match, exact patterns always win over wildcards
and longer wildcards win over shorter ones.
"""

from __future__ import annotations

import re
from typing import Mapping, NamedTuple, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel

from codebuddy.utils.log import get_logger

logger = get_logger()

_EXACT_MATCH_BONUS = 1000
_INVALID_PATTERN_CHARS = re.compile(r"[^a-z0-9.*\-_]", re.IGNORECASE)


class SitePromptEntry(BaseModel):
    """A custom prompt bound to a hostname pattern."""

    pattern: str = ""
    name: str = ""
    prompt: str
    enabled: bool = True


class PatternValidation(NamedTuple):
    valid: bool
    error: Optional[str] = None


class PatternValidationError(ValueError):
    """Raised when a site pattern is rejected before storage."""

    def __init__(self, pattern: str, message: str) -> None:
        super().__init__(message)
        self.pattern = pattern


def match_hostname_pattern(hostname: str, pattern: str) -> bool:
    """Return True if ``hostname`` matches ``pattern`` (case-insensitive)."""
    if not hostname or not pattern:
        return False

    hostname = hostname.lower()
    pattern = pattern.lower()

    if hostname == pattern:
        return True

    if "*" not in pattern:
        return False

    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(regex, hostname) is not None


def _pattern_specificity(pattern: str) -> int:
    if "*" in pattern:
        return len(pattern)
    return _EXACT_MATCH_BONUS + len(pattern)


def extract_hostname(url: str) -> str:
    """Return the hostname of a full URL, or the input itself when it is not one."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return url
    if parts.scheme and hostname:
        return hostname
    return url


def find_matching_prompt(
    url: str, entries: Optional[Mapping[str, SitePromptEntry]]
) -> Optional[SitePromptEntry]:
    """Find the most specific enabled entry whose pattern matches ``url``.

    On equal specificity the first entry in mapping order is kept.
    """
    if not url or not entries:
        return None

    hostname = extract_hostname(url)

    best_match: Optional[SitePromptEntry] = None
    best_specificity = -1
    for pattern, entry in entries.items():
        if not entry.enabled:
            continue
        if not match_hostname_pattern(hostname, pattern):
            continue
        specificity = _pattern_specificity(pattern)
        if specificity > best_specificity:
            best_specificity = specificity
            best_match = entry.model_copy(update={"pattern": pattern})

    if best_match is not None:
        logger.debug(
            "[site_prompts] Matched site prompt",
            extra={"hostname": hostname, "pattern": best_match.pattern},
        )
    return best_match


def get_prompt_for_url(
    url: str,
    entries: Optional[Mapping[str, SitePromptEntry]],
    default_prompt: str = "",
) -> str:
    """Return the matched prompt text, falling back to ``default_prompt``."""
    match = find_matching_prompt(url, entries)
    if match and match.prompt:
        return match.prompt
    return default_prompt or ""


def validate_site_pattern(pattern: Optional[str]) -> PatternValidation:
    if not pattern or not pattern.strip():
        return PatternValidation(False, "Pattern cannot be empty")

    pattern = pattern.strip()

    if _INVALID_PATTERN_CHARS.search(pattern):
        return PatternValidation(False, "Pattern contains invalid characters")
    if "**" in pattern:
        return PatternValidation(False, "Multiple consecutive wildcards not allowed")
    if "*" in pattern[1:]:
        return PatternValidation(False, "Wildcard (*) must be at the beginning")
    if pattern.startswith("*") and "." not in pattern:
        return PatternValidation(
            False, "Wildcard pattern must include domain (e.g., *.example.com)"
        )

    return PatternValidation(True)


def normalize_site_pattern(pattern: str) -> str:
    return pattern.strip().lower()


def ensure_valid_site_pattern(pattern: str) -> str:
    """Validate ``pattern`` and return its normalized form, or raise."""
    result = validate_site_pattern(pattern)
    if not result.valid:
        raise PatternValidationError(pattern, result.error or "Invalid pattern")
    return normalize_site_pattern(pattern)
