"""
CoreHeadlines Feed Catalog
=========================

Static list of feeds processed on every run. Order here is the order of
headlines in the digest. Dialects are resolved when each FeedSource is
built: ``r/`` headers are Atom, everything else RSS unless stated.
"""

from typing import List, Optional

from ..database.models import AgentKind, Dialect, FeedSource


def _feed(
    header: str,
    url: str,
    topic: str,
    agent: AgentKind = AgentKind.BOT,
    enhanced_headers: bool = False,
    dialect: Optional[Dialect] = None,
    **kwargs,
) -> FeedSource:
    return FeedSource(
        header=header,
        url=url,
        topic=topic,
        source=header,
        agent=agent,
        enhanced_headers=enhanced_headers,
        dialect=dialect,
        **kwargs,
    )


FEEDS: List[FeedSource] = [
    # tech
    _feed("r/c_programming", "https://www.reddit.com/r/C_Programming/.rss", "tech"),
    _feed("r/hardware", "https://www.reddit.com/r/hardware/.rss", "tech"),
    _feed("r/debian", "https://www.reddit.com/r/debian/.rss", "tech"),
    _feed("debian", "https://bits.debian.org/feeds/feed.rss", "tech"),
    _feed("techmeme", "https://techmeme.com/feed.xml", "tech"),
    _feed(
        "slashdot",
        "https://rss.slashdot.org/Slashdot/slashdotMain",
        "tech",
        dialect=Dialect.RDF,
        source_encoding="iso-8859-1",
    ),
    _feed("hackernews", "https://hnrss.org/frontpage", "tech"),
    _feed("lobsters", "https://lobste.rs/rss", "tech"),
    # geopolitics
    _feed("r/worldnews", "https://www.reddit.com/r/worldnews/.rss", "geopolitics"),
    _feed("r/geopolitics", "https://www.reddit.com/r/geopolitics/.rss", "geopolitics"),
    _feed("r/anime_titties", "https://www.reddit.com/r/anime_titties/.rss", "geopolitics"),
    _feed("hayom", "https://www.israelhayom.com/feed/", "geopolitics"),
    _feed("jpost", "https://www.jpost.com/rss/rssfeedsfrontpage.aspx", "geopolitics"),
    _feed("haaretz", "https://www.haaretz.com/srv/haaretz-latest-headlines", "geopolitics"),
    _feed("foreignaffairs", "https://www.foreignaffairs.com/rss.xml", "geopolitics"),
    _feed("isw", "https://www.understandingwar.org/feeds.xml", "geopolitics"),
    _feed("cgtn", "https://www.cgtn.com/subscribe/rss/section/politics.xml", "geopolitics"),
    _feed("scmp", "https://www.scmp.com/rss/318199/feed/", "geopolitics"),
    _feed("valdai", "https://valdaiclub.com/export/rss/feed.xml", "geopolitics"),
    _feed("russiancouncil", "https://russiancouncil.ru/en/rss/analytics-and-comments/", "geopolitics"),
    _feed(
        "rand",
        "https://www.rand.org/latest.html",
        "geopolitics",
        agent=AgentKind.CHROME,
        enhanced_headers=True,
        dialect=Dialect.HTML,
        base_url="https://www.rand.org",
    ),
    # finance
    _feed("fed", "https://www.federalreserve.gov/feeds/press_monetary.xml", "finance"),
    _feed("ecb", "https://www.ecb.europa.eu/rss/press.html", "finance"),
    _feed("seekingalphabreaking", "https://seekingalpha.com/market_currents.xml", "finance"),
    _feed("seekingalphaarticles", "https://seekingalpha.com/feed.xml", "finance"),
]


def get_feed(header: str) -> Optional[FeedSource]:
    """Look up a configured feed by header."""
    return next((feed for feed in FEEDS if feed.header == header), None)
