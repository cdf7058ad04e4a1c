"""
Feed Parser
==========

Turns a fetched body into normalized Article models. Each dialect has its
own extraction rules; XML dialects go through feedparser and the structured
HTML page through BeautifulSoup.
"""

import html
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin

import feedparser
from bs4 import BeautifulSoup
from pydantic import ValidationError

from ..database.models import Article, Dialect, FeedSource
from ..utils.exceptions import EmptyFeedError, FeedParseError
from ..utils.logging import get_logger_for_component


def _text(value: Optional[str]) -> str:
    return (value or "").strip()


class FeedParser:
    """Dialect-dispatching parser for configured feeds."""

    HTML_ITEM_SELECTOR = "li[data-relevancy='1.0']"
    HTML_TITLE_SELECTOR = "h3.title"

    def __init__(self):
        self.logger = get_logger_for_component("feed_parser")
        self._strategies: Dict[Dialect, Callable[..., List[dict]]] = {
            Dialect.RSS: self._parse_rss,
            Dialect.ATOM: self._parse_atom,
            Dialect.RDF: self._parse_rdf,
            Dialect.HTML: self._parse_html,
        }

    def parse(self, body: bytes, feed: FeedSource, logger=None) -> List[Article]:
        """Extract articles from ``body`` according to ``feed.dialect``.

        Args:
            body: Raw (UTF-8 or self-describing) document
            feed: Feed the body came from
            logger: Adapter carrying run context (optional)

        Returns:
            Articles in document order, all with non-empty guid, title and link

        Raises:
            FeedParseError: Malformed document with nothing recoverable
            EmptyFeedError: No valid article remained after filtering
        """
        log = logger or self.logger.bind(feed=feed.header)
        strategy = self._strategies.get(feed.dialect, self._parse_rss)

        items = strategy(body, feed, log)

        articles = []
        for item in items:
            guid, title, link = item["guid"], item["title"], item["link"]
            if not (guid and title and link):
                continue
            try:
                articles.append(
                    Article(
                        guid=guid,
                        title=title,
                        link=link,
                        header=feed.header,
                        topic=feed.topic,
                        source=feed.source,
                    )
                )
            except ValidationError as e:
                log.debug(f"Skipping invalid item {guid}: {e}")

        if not articles:
            raise EmptyFeedError("No valid articles in feed", feed_header=feed.header)

        log.debug(f"Parsed {len(articles)} articles")
        return articles

    def _load_xml(self, body: bytes, feed: FeedSource, log) -> feedparser.FeedParserDict:
        parsed = feedparser.parse(body)

        if parsed.get("bozo"):
            reason = parsed.get("bozo_exception", "Invalid XML structure")
            if not parsed.get("entries"):
                raise FeedParseError(f"Feed parse error: {reason}", feed_header=feed.header)
            log.warning(f"Feed has parse warnings but contains entries: {reason}")

        return parsed

    def _parse_rss(self, body: bytes, feed: FeedSource, log) -> List[dict]:
        items = []
        for entry in self._load_xml(body, feed, log).entries:
            link = _text(entry.get("link"))
            if not link:
                hrefs = [_text(l.get("href")) for l in entry.get("links", [])]
                link = next((h for h in hrefs if h), "")
            if not link:
                link = _text(entry.get("id"))

            guid = _text(entry.get("id")) or _text(entry.get("itemid")) or link

            items.append({"guid": guid, "title": _text(entry.get("title")), "link": link})
        return items

    def _parse_atom(self, body: bytes, feed: FeedSource, log) -> List[dict]:
        return [
            {
                "guid": _text(entry.get("id")),
                "title": _text(entry.get("title")),
                "link": _text(entry.get("link")),
            }
            for entry in self._load_xml(body, feed, log).entries
        ]

    def _parse_rdf(self, body: bytes, feed: FeedSource, log) -> List[dict]:
        items = []
        for entry in self._load_xml(body, feed, log).entries:
            link = _text(entry.get("link"))
            items.append(
                {
                    "guid": link,
                    "title": html.unescape(_text(entry.get("title"))).strip(),
                    "link": link,
                }
            )
        return items

    def _parse_html(self, body: bytes, feed: FeedSource, log) -> List[dict]:
        soup = BeautifulSoup(body, "html.parser")
        items = []

        for element in soup.select(self.HTML_ITEM_SELECTOR):
            anchor = element.find("a", href=True)
            heading = element.select_one(self.HTML_TITLE_SELECTOR)
            if anchor is None or heading is None:
                continue

            href = _text(anchor["href"])
            if not href:
                continue
            link = urljoin(feed.origin, href)

            items.append({"guid": link, "title": heading.get_text(strip=True), "link": link})
        return items
