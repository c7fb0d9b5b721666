from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

_NON_SLUG = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")


def make_quote_id(author: str, text: str, page_number: int, quote_index: int) -> str:
    """Stable identity for a quote: author slug, text prefix, position.

    ``("Steve Martin", "A day without sunshine...", 3, 4)``
    → ``"steve-martin-a-day-without-sunshi-3-4"``
    """
    author_slug = _WHITESPACE.sub("-", author.lower())
    text_slug = _NON_SLUG.sub("-", text[:20].lower())
    return f"{author_slug}-{text_slug}-{page_number}-{quote_index}"


class Quote(BaseModel):
    """A quote fetched from one page of the upstream source."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["quote"] = "quote"
    id: str
    text: str = Field(min_length=1)
    author: str = Field(min_length=1)
    tags: tuple[str, ...] = ()
    source_url: str
    author_url: str | None = None
    goodreads_url: str | None = None
    page_number: int = Field(ge=1)
    quote_index: int = Field(ge=0)


class Placeholder(BaseModel):
    """A cell that could not be filled (source exhausted or fetch failure)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["placeholder"] = "placeholder"
    reason: Literal["no_quote_available", "fetch_failed"]
    message: str

    @classmethod
    def unavailable(cls) -> Placeholder:
        return cls(reason="no_quote_available", message="No quote available")

    @classmethod
    def failed(cls) -> Placeholder:
        return cls(reason="fetch_failed", message="Error loading quote")


class Loading(BaseModel):
    """A cell whose batch has not landed yet."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["loading"] = "loading"
    stage: int = Field(default=0, ge=0)
    message: str = "Starting fetch..."


QuoteCell = Annotated[Quote | Placeholder | Loading, Field(discriminator="kind")]
