from __future__ import annotations

from quotegrid.models.pagination import (
    AllQuotesResult,
    FetchCounters,
    PageMetadata,
    RangeRequest,
    RangeResult,
)
from quotegrid.models.quote import Loading, Placeholder, Quote, QuoteCell, make_quote_id
from quotegrid.models.session import SelectionStatus, SessionFlags, SessionStats
from quotegrid.models.tools import (
    FillSelectionInput,
    GetAllQuotesInput,
    GetAllQuotesOutput,
    GetQuoteLinkInput,
    GetQuoteLinkOutput,
    GetQuoteRangeInput,
    GetQuoteRangeOutput,
    GetRandomQuotesInput,
    GetRandomQuotesOutput,
    SelectionIdInput,
)

__all__ = [
    # quotes
    "Quote",
    "Placeholder",
    "Loading",
    "QuoteCell",
    "make_quote_id",
    # pagination
    "PageMetadata",
    "RangeRequest",
    "RangeResult",
    "AllQuotesResult",
    "FetchCounters",
    # session
    "SessionFlags",
    "SessionStats",
    "SelectionStatus",
    # tools
    "GetRandomQuotesInput",
    "GetRandomQuotesOutput",
    "GetQuoteRangeInput",
    "GetQuoteRangeOutput",
    "FillSelectionInput",
    "SelectionIdInput",
    "GetQuoteLinkInput",
    "GetQuoteLinkOutput",
    "GetAllQuotesInput",
    "GetAllQuotesOutput",
]
