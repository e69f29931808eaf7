"""
Node Name Codec

Reversible encoding of funnel state names into tokens that can be joined
into a single path string.

Encoding is percent-encoding of the UTF-8 bytes with only the RFC 3986
unreserved characters left bare, so every delimiter (including the path
separator and '%') is escaped:

    "Add to cart"   -> "Add%20to%20cart"
    "a>b"           -> "a%3Eb"
    ""              -> ""

A full path is the separator-joined sequence of encoded tokens:

    ["login", "a>b"] -> "login>a%3Eb"
"""

import re
from typing import Iterable
from urllib.parse import quote, unquote


PATH_STATE_SEPARATOR = ">"

# A valid token is a run of unreserved characters and %XX escapes, nothing else
_TOKEN_RE = re.compile(r"^(?:[A-Za-z0-9\-._~]|%[0-9A-Fa-f]{2})*$")


class NameDecodeError(ValueError):
    """Token does not decode cleanly (corrupt or foreign encoding upstream)."""

    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(f"Cannot decode node token {token!r}: {reason}")


def encode(name: str) -> str:
    """Encode a display name into a separator-safe token."""
    return quote(name, safe="", encoding="utf-8", errors="strict")


def decode(token: str) -> str:
    """
    Decode a token produced by encode().

    Raises:
        NameDecodeError: token has bare reserved characters, a broken
            escape, or escapes that are not valid UTF-8
    """
    if not isinstance(token, str):
        raise NameDecodeError(repr(token), "token must be a string")
    if not _TOKEN_RE.match(token):
        raise NameDecodeError(token, "unescaped reserved character or malformed escape")
    try:
        return unquote(token, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as e:
        raise NameDecodeError(token, f"invalid UTF-8 ({e.reason})") from e


def join_path(names: Iterable[str]) -> str:
    """Encode names and join them into one path string."""
    return PATH_STATE_SEPARATOR.join(encode(n) for n in names)


def split_path(path: str) -> list[str]:
    """
    Split an encoded path into its encoded node tokens, in traversal order.

    The path is split as-is; decoding it as a whole first would turn
    escaped separators back into real ones.
    """
    return path.split(PATH_STATE_SEPARATOR)


def decode_path(path: str) -> list[str]:
    """Split an encoded path and decode every node token."""
    return [decode(token) for token in split_path(path)]
