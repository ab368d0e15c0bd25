"""Article aggregate: identity, content, ownership and tag set."""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from conduit.domain.slug import TokenSource, derive_slug, with_random_suffix
from conduit.exceptions import Forbidden, ValidationFailure


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _present(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


@dataclass(frozen=True)
class Article:
    """
    Immutable article value. Every mutation returns a new instance, so an
    aggregate loaded by one command can never be observed half-updated by
    another.
    """

    slug: str
    title: str
    description: str
    body: str
    author_id: int
    tags: frozenset[str] = field(default_factory=frozenset)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        title: str,
        description: str,
        body: str,
        author_id: int,
        tags: Iterable[str] = (),
        *,
        token_source: Optional[TokenSource] = None,
        now: Optional[datetime] = None,
    ) -> Article:
        """
        Validate and build a new, not yet persisted article.

        The slug is the bare title base; passing *token_source* switches
        to the random-suffix policy. Raises ``ValidationFailure`` listing
        every blank field.
        """
        errors: dict[str, list[str]] = {}
        for name, value in (("title", title), ("description", description), ("body", body)):
            if not _present(value):
                errors[name] = ["must not be blank"]
        if errors:
            raise ValidationFailure(errors)

        slug = derive_slug(title)
        if token_source is not None:
            slug = with_random_suffix(slug, token_source)

        timestamp = now or utcnow()
        return cls(
            slug=slug,
            title=title,
            description=description,
            body=body,
            author_id=author_id,
            tags=frozenset(tags),
            created_at=timestamp,
            updated_at=timestamp,
        )

    @classmethod
    def reconstitute(
        cls,
        *,
        id: int,
        slug: str,
        title: str,
        description: str,
        body: str,
        author_id: int,
        tags: Iterable[str],
        created_at: datetime,
        updated_at: datetime,
    ) -> Article:
        """Rebuild a persisted article. Stored data is trusted as-is."""
        return cls(
            id=id,
            slug=slug,
            title=title,
            description=description,
            body=body,
            author_id=author_id,
            tags=frozenset(tags),
            created_at=created_at,
            updated_at=updated_at,
        )

    def with_id(self, new_id: int) -> Article:
        return dataclasses.replace(self, id=new_id)

    def with_slug(self, slug: str) -> Article:
        return dataclasses.replace(self, slug=slug)

    # ------------------------------------------------------------------
    # Mutation rules
    # ------------------------------------------------------------------

    def update(
        self,
        user_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        body: Optional[str] = None,
        *,
        tags: Optional[Iterable[str]] = None,
        regenerate_slug: bool = False,
        now: Optional[datetime] = None,
    ) -> Article:
        """
        Return the article with the author's edits applied.

        Blank or absent text fields leave the current value in place;
        ``tags=None`` keeps the tag set. ``updated_at`` is refreshed even
        when nothing else changes. With *regenerate_slug* a changed title
        yields a fresh slug base that the caller must still make unique.
        """
        if user_id != self.author_id:
            raise Forbidden("You can only update your own articles")

        new_title = title if _present(title) else self.title
        slug = self.slug
        if regenerate_slug and new_title != self.title:
            slug = derive_slug(new_title)

        return dataclasses.replace(
            self,
            slug=slug,
            title=new_title,
            description=description if _present(description) else self.description,
            body=body if _present(body) else self.body,
            tags=self.tags if tags is None else frozenset(tags),
            updated_at=now or utcnow(),
        )

    def can_be_deleted_by(self, user_id: int) -> bool:
        return user_id == self.author_id
