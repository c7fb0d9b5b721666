"""HTML parser for listing pages of the quotes site.

One pass over ``div.quote`` blocks. Blocks missing their text or author are
skipped; everything else is optional. The pager's "Next" link tells the
source whether another page exists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from quotegrid.models.quote import Quote, make_quote_id

_GOODREADS_TEXT = "Goodreads page"


@dataclass(frozen=True)
class ParsedPage:
    page_number: int
    items: list[Quote] = field(default_factory=list)
    has_next: bool = False


def page_url(base_url: str, page_number: int) -> str:
    return f"{base_url.rstrip('/')}/page/{page_number}/"


def parse_quotes_page(html: str, page_number: int, base_url: str) -> ParsedPage:
    """Extract quotes and the next-page flag from one listing page."""
    soup = BeautifulSoup(html, "html.parser")

    items: list[Quote] = []
    for index, block in enumerate(soup.select("div.quote")):
        quote = _parse_quote(block, page_number, index, base_url)
        if quote is not None:
            items.append(quote)

    has_next = soup.select_one(".pager .next a") is not None
    return ParsedPage(page_number=page_number, items=items, has_next=has_next)


def _parse_quote(block: Tag, page_number: int, index: int, base_url: str) -> Quote | None:
    text_tag = block.select_one(".text")
    author_tag = block.select_one(".author")
    if text_tag is None or author_tag is None:
        return None

    text = text_tag.get_text(strip=True)
    author = author_tag.get_text(strip=True)
    if not text or not author:
        return None

    author_url: str | None = None
    about_tag = block.find("a", href=lambda href: bool(href) and href.startswith("/author"))
    if isinstance(about_tag, Tag):
        author_url = urljoin(base_url, str(about_tag["href"]))

    tags = tuple(tag.get_text(strip=True) for tag in block.select(".tags .tag"))

    return Quote(
        id=make_quote_id(author, text, page_number, index),
        text=text,
        author=author,
        tags=tags,
        source_url=f"{page_url(base_url, page_number)}#{index}",
        author_url=author_url,
        goodreads_url=find_goodreads_link(block),
        page_number=page_number,
        quote_index=index,
    )


def find_goodreads_link(root: Tag) -> str | None:
    """Return the best Goodreads link under ``root``, or None.

    Preference order: a link labelled "Goodreads page", a goodreads.com
    author link, then any goodreads.com link.
    """
    links = [a for a in root.find_all("a") if isinstance(a, Tag) and a.get("href")]

    for link in links:
        if link.get_text(strip=True).strip("()") == _GOODREADS_TEXT:
            return str(link["href"])

    goodreads = [str(link["href"]) for link in links if "goodreads.com" in str(link["href"])]
    for href in goodreads:
        if "/author/" in href:
            return href
    return goodreads[0] if goodreads else None


def parse_author_page(html: str) -> str | None:
    """Return the Goodreads link on an author detail page, or None."""
    soup = BeautifulSoup(html, "html.parser")
    return find_goodreads_link(soup)
