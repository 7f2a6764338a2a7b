"""Safe naming helpers for paths built from model output."""

import re
from pathlib import Path

from .exceptions import PathTraversalError, SecurityError

_WHITESPACE = re.compile(r"\s+")
_SEPARATORS = re.compile(r"[/\\]")
# Characters rejected by common filesystems (Windows/SMB shares in particular)
_RESERVED = re.compile(r'[<>:"|?*\x00-\x1f]')


def normalize_vendor(vendor: str) -> str:
    """Drop whitespace and turn path separators into hyphens.

    >>> normalize_vendor("A B")
    'AB'
    >>> normalize_vendor("A/B")
    'A-B'
    """
    vendor = _WHITESPACE.sub("", vendor or "")
    return _SEPARATORS.sub("-", vendor)


def sanitize_segment(text: str) -> str:
    """Make a filename segment safe without otherwise altering it."""
    text = _SEPARATORS.sub("-", (text or "").strip())
    text = _RESERVED.sub("_", text)
    # A bare "." or ".." segment would be interpreted as a directory reference
    if text.strip(".") == "":
        return text.replace(".", "_")
    return text


def ensure_within(root: str | Path, candidate: str | Path) -> Path:
    """Return ``candidate`` resolved, refusing anything outside ``root``.

    Raises:
        PathTraversalError: If the resolved path escapes the root
    """
    root_path = Path(root).resolve()
    resolved = Path(candidate).resolve()
    if resolved != root_path and root_path not in resolved.parents:
        raise PathTraversalError(str(candidate))
    return resolved


def unique_destination(path: Path) -> Path:
    """Return ``path`` or the first ``stem_N.ext`` sibling that does not exist yet."""
    if not path.exists():
        return path
    counter = 2
    while True:
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def validate_api_key(api_key: str | None) -> str:
    """Basic sanity check on the Gemini credential.

    Raises:
        SecurityError: If the key is missing or blank
    """
    if not api_key or not api_key.strip():
        raise SecurityError("Empty API key provided", "empty_api_key")
    return api_key.strip()


__all__ = [
    "ensure_within",
    "normalize_vendor",
    "sanitize_segment",
    "unique_destination",
    "validate_api_key",
]
