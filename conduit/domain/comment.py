"""Comment aggregate, owned exclusively by its article."""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from conduit.domain.article import utcnow
from conduit.exceptions import Forbidden, ValidationFailure


def _validate_body(body: Optional[str]) -> None:
    if body is None or not body.strip():
        raise ValidationFailure({"body": ["must not be blank"]})


@dataclass(frozen=True)
class Comment:
    article_id: int
    author_id: int
    body: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        article_id: int,
        author_id: int,
        body: str,
        *,
        now: Optional[datetime] = None,
    ) -> Comment:
        _validate_body(body)
        timestamp = now or utcnow()
        return cls(
            article_id=article_id,
            author_id=author_id,
            body=body,
            created_at=timestamp,
            updated_at=timestamp,
        )

    @classmethod
    def reconstitute(
        cls,
        *,
        id: int,
        article_id: int,
        author_id: int,
        body: str,
        created_at: datetime,
        updated_at: datetime,
    ) -> Comment:
        return cls(
            id=id,
            article_id=article_id,
            author_id=author_id,
            body=body,
            created_at=created_at,
            updated_at=updated_at,
        )

    def with_id(self, new_id: int) -> Comment:
        return dataclasses.replace(self, id=new_id)

    def edit(self, user_id: int, body: str, *, now: Optional[datetime] = None) -> Comment:
        if user_id != self.author_id:
            raise Forbidden("You can only edit your own comments")
        _validate_body(body)
        return dataclasses.replace(self, body=body, updated_at=now or utcnow())

    def can_be_deleted_by(self, user_id: int) -> bool:
        return user_id == self.author_id
