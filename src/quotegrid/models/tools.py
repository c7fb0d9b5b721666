"""Input and output models for the MCP tool handlers.

Upper bounds come from settings, so handlers validate with
``model_validate(data, context=...)`` and the validators read the limit from
the validation context, falling back to the defaults below.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from quotegrid.models.quote import Quote

_DEFAULT_MAX_COUNT = 300
_DEFAULT_MAX_RANGE_LIMIT = 100
_DEFAULT_MAX_SELECTION = 5000


def _context_limit(info: ValidationInfo, key: str, default: int) -> int:
    if isinstance(info.context, dict):
        return int(info.context.get(key, default))
    return default


class GetRandomQuotesInput(BaseModel):
    count: int = Field(ge=1)

    @field_validator("count")
    @classmethod
    def validate_count(cls, v: int, info: ValidationInfo) -> int:
        max_count = _context_limit(info, "max_count", _DEFAULT_MAX_COUNT)
        if v > max_count:
            raise ValueError(f"count must be at most {max_count}")
        return v


class GetRandomQuotesOutput(BaseModel):
    quotes: list[Quote]
    count: int


class GetQuoteRangeInput(BaseModel):
    offset: int = Field(ge=0)
    limit: int = Field(ge=1)

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int, info: ValidationInfo) -> int:
        max_limit = _context_limit(info, "max_range_limit", _DEFAULT_MAX_RANGE_LIMIT)
        if v > max_limit:
            raise ValueError(f"limit must be at most {max_limit}")
        return v


class GetQuoteRangeOutput(BaseModel):
    quotes: list[Quote]
    count: int
    offset: int
    limit: int
    total: int
    has_more: bool


class FillSelectionInput(BaseModel):
    count: int = Field(ge=1)

    @field_validator("count")
    @classmethod
    def validate_count(cls, v: int, info: ValidationInfo) -> int:
        max_selection = _context_limit(info, "max_selection", _DEFAULT_MAX_SELECTION)
        if v > max_selection:
            raise ValueError(f"count must be at most {max_selection}")
        return v


class SelectionIdInput(BaseModel):
    selection_id: str = Field(min_length=1, max_length=64)


class GetQuoteLinkInput(BaseModel):
    quote_id: str = Field(min_length=1, max_length=500)


class GetQuoteLinkOutput(BaseModel):
    quote_id: str
    goodreads_url: str
    fallback: bool


class GetAllQuotesInput(BaseModel):
    enrich: bool = False


class GetAllQuotesOutput(BaseModel):
    quotes: list[Quote]
    count: int
    total_pages: int
    enriched: bool
    fallback_links: int
