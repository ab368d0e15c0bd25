"""
Slug derivation and collision resolution.

``derive_slug`` is pure. Uniqueness is a separate concern with two
policies selected by ``settings.SLUG_POLICY``:

- ``deterministic``: ``resolve_unique_slug`` tries ``base``, ``base-2``,
  ``base-3``... against the store. Two concurrent creations of the same
  title can both observe ``base`` as free; the unique index on
  ``articles.slug`` rejects the loser.
- ``random``: ``with_random_suffix`` appends an 8-character token and
  skips the existence check entirely.
"""
import re
import unicodedata
import uuid
from typing import Awaitable, Callable

FALLBACK_SLUG = "article"
TOKEN_LENGTH = 8

_DISALLOWED_RE = re.compile(r"[^a-z0-9\s-]")
_SPACE_RE = re.compile(r"\s+")
_DASH_RE = re.compile(r"-+")

TokenSource = Callable[[], str]


def derive_slug(title: str) -> str:
    """Return the lowercase ASCII slug base for *title*."""
    decomposed = unicodedata.normalize("NFD", title)
    text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    text = _DISALLOWED_RE.sub("", text.lower()).strip()
    text = _SPACE_RE.sub("-", text)
    text = _DASH_RE.sub("-", text).strip("-")
    return text or FALLBACK_SLUG


def random_token() -> str:
    return uuid.uuid4().hex[:TOKEN_LENGTH]


def with_random_suffix(base: str, token_source: TokenSource = random_token) -> str:
    return f"{base}-{token_source()}"


async def resolve_unique_slug(
    base: str,
    is_taken: Callable[[str], Awaitable[bool]],
) -> str:
    """
    Return the first of ``base``, ``base-2``, ``base-3``... for which
    *is_taken* answers False.

    *is_taken* is expected to already exclude the article being renamed,
    so an article can keep its own slug.
    """
    candidate = base
    n = 1
    while await is_taken(candidate):
        n += 1
        candidate = f"{base}-{n}"
    return candidate
