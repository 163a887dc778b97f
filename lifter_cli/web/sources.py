"""
Source strategies: fetch an item's release data and evaluate its locators.

Each ``Method`` maps to one ``ReleaseSource`` implementation. The pipeline talks
to the interface only, so there is no method-specific branching elsewhere.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.ext import parse as parse_jsonpath
from soupsieve import SelectorSyntaxError

from lifter_cli.core.matcher import Candidate
from lifter_cli.exceptions import InvalidConfiguration
from lifter_cli.models.item import Method, ResolvedItem
from lifter_cli.utils.formatting import item_tag
from lifter_cli.utils.path import url_basename

from .client import HttpClient

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Fetched content plus the URL relative asset links are resolved against."""

    content: Any
    base_url: str


class ReleaseSource(ABC):
    """All source strategies must implement this interface."""

    method: Method

    def __init__(self, client: HttpClient):
        self.client = client

    @abstractmethod
    async def fetch(self, item: ResolvedItem) -> FetchResult:
        """Retrieve the item's page or API document."""
        ...

    @abstractmethod
    def candidates(self, item: ResolvedItem, result: FetchResult) -> list[Candidate]:
        """Evaluate the asset locator; results keep document order."""
        ...

    @abstractmethod
    def version_texts(self, item: ResolvedItem, result: FetchResult) -> list[str]:
        """Evaluate the version locator; results keep document order."""
        ...


class HtmlScrapeSource(ReleaseSource):
    """Scrapes an HTML release page with CSS selectors."""

    method = Method.HTML_SCRAPE

    async def fetch(self, item: ResolvedItem) -> FetchResult:
        response = await self.client.get_text(item.page_url)
        soup = BeautifulSoup(response.text, "html.parser")
        return FetchResult(content=soup, base_url=response.url)

    def _select(self, item: ResolvedItem, soup: BeautifulSoup, selector: str) -> list:
        try:
            return soup.select(selector)
        except (SelectorSyntaxError, ValueError) as e:
            raise InvalidConfiguration(
                f"Invalid CSS selector '{selector}': {e}", item=item.name
            ) from e

    def candidates(self, item: ResolvedItem, result: FetchResult) -> list[Candidate]:
        base = _strip_query(result.base_url)
        found = []
        for element in self._select(item, result.content, item.query_selector):
            href = element.get("href")
            if not href:
                continue
            text = " ".join(element.stripped_strings)
            log.debug(f"{item_tag(item.name)} tag text: {text}")
            found.append(Candidate(text=text, url=urljoin(base, href.strip())))
        return found

    def version_texts(self, item: ResolvedItem, result: FetchResult) -> list[str]:
        return [
            " ".join(element.stripped_strings)
            for element in self._select(item, result.content, item.version_locator)
        ]


class ApiJsonSource(ReleaseSource):
    """Queries a JSON release API with JSONPath expressions."""

    method = Method.API_JSON

    async def fetch(self, item: ResolvedItem) -> FetchResult:
        document = await self.client.get_json(item.page_url)
        return FetchResult(content=document, base_url=item.page_url)

    def _find(self, item: ResolvedItem, document: Any, expression: str) -> list[Any]:
        try:
            compiled = parse_jsonpath(expression)
        except (JsonPathLexerError, JsonPathParserError) as e:
            raise InvalidConfiguration(
                f"Invalid JSONPath '{expression}': {e}", item=item.name
            ) from e
        return [match.value for match in compiled.find(document)]

    def candidates(self, item: ResolvedItem, result: FetchResult) -> list[Candidate]:
        found = []
        for value in self._find(item, result.content, item.query_selector):
            if not isinstance(value, str) or not value.strip():
                log.debug(f"{item_tag(item.name)} Ignoring non-link match: {value!r}")
                continue
            url = urljoin(result.base_url, value.strip())
            found.append(Candidate(text=url_basename(url), url=url))
        return found

    def version_texts(self, item: ResolvedItem, result: FetchResult) -> list[str]:
        return [
            value if isinstance(value, str) else str(value)
            for value in self._find(item, result.content, item.version_locator)
            if value is not None
        ]


SOURCES: dict[Method, type[ReleaseSource]] = {
    Method.HTML_SCRAPE: HtmlScrapeSource,
    Method.API_JSON: ApiJsonSource,
}


def source_for(method: Method, client: HttpClient) -> ReleaseSource:
    """Returns the strategy instance for an item's method."""
    return SOURCES[method](client)


def _strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
