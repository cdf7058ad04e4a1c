"""
CoreHeadlines Data Models
========================

Pydantic data models for type safety and validation throughout the application.
FeedSource describes a configured feed, Article is a normalized item produced
by the parser, and PublicationRecord is the row written once per delivered
article.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator, model_validator


class AgentKind(str, Enum):
    """User agent presented to a feed server."""
    BOT = "bot"
    CHROME = "chrome"
    READER = "reader"


class Dialect(str, Enum):
    """Document format served by a feed."""
    RSS = "rss"
    ATOM = "atom"
    RDF = "rdf"
    HTML = "html"


class FeedSource(BaseModel):
    """Configured feed. Immutable after construction."""
    header: str = Field(..., min_length=1, description="Unique feed identity, prefixed to headlines")
    url: str = Field(..., min_length=1, description="Feed URL")
    agent: AgentKind = Field(default=AgentKind.BOT, description="User agent kind")
    enhanced_headers: bool = Field(default=False, description="Send browser fetch-metadata headers")
    dialect: Dialect = Field(default=Dialect.RSS, description="Document format")
    source_encoding: Optional[str] = Field(default=None, description="Legacy charset to transcode from")
    base_url: Optional[str] = Field(default=None, description="Origin used to absolutize relative links")
    topic: Optional[str] = Field(default=None, description="Topic recorded with publications")
    source: Optional[str] = Field(default=None, description="Source name recorded with publications")

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def resolve_dialect(cls, data: Any) -> Any:
        """Infer the dialect from the header when it is not given.

        Reddit style headers (``r/...``) serve Atom, everything else RSS.
        """
        if isinstance(data, dict) and not data.get("dialect"):
            header = data.get("header") or ""
            data = {**data, "dialect": Dialect.ATOM if header.startswith("r/") else Dialect.RSS}
        return data

    @field_validator("agent", mode="before")
    @classmethod
    def resolve_agent(cls, v):
        """Unknown agent names fall back to the bot agent."""
        if isinstance(v, AgentKind):
            return v
        try:
            return AgentKind(str(v).lower())
        except ValueError:
            return AgentKind.BOT

    @property
    def origin(self) -> str:
        """Scheme and host used to resolve relative links."""
        if self.base_url:
            return self.base_url
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    def __str__(self) -> str:
        return f"FeedSource({self.header}:{self.dialect.value})"


class Article(BaseModel):
    """Normalized feed item."""
    guid: str = Field(..., description="Stable identity used for deduplication")
    title: str = Field(..., description="Headline text")
    link: str = Field(..., description="Article URL")
    header: str = Field(..., description="Header of the feed that produced the article")
    topic: Optional[str] = Field(default=None)
    source: Optional[str] = Field(default=None)

    @field_validator("guid", "title", "link")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        """Identity fields are trimmed and must not be empty."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    def __str__(self) -> str:
        return f"Article({self.title[:50]}...)"


def add_years(moment: datetime, years: int) -> datetime:
    """Same calendar date ``years`` later; Feb 29 maps to Feb 28."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


class PublicationRecord(BaseModel):
    """Record of one delivered article. Never mutated after creation."""
    guid: str
    timestamp: int = Field(..., description="Creation time, epoch seconds")
    ttl: int = Field(..., description="Expiry time, epoch seconds")
    topic: Optional[str] = None
    source: Optional[str] = None
    title: str
    link: str

    model_config = {"frozen": True}

    @classmethod
    def from_article(
        cls,
        article: Article,
        now: Optional[datetime] = None,
        retention_years: int = 1,
    ) -> "PublicationRecord":
        """Build a record for ``article`` created at ``now``."""
        now = now or datetime.now(timezone.utc)
        return cls(
            guid=article.guid,
            timestamp=int(now.timestamp()),
            ttl=int(add_years(now, retention_years).timestamp()),
            topic=article.topic,
            source=article.source,
            title=article.title,
            link=article.link,
        )

    def to_row(self) -> tuple:
        """Column values in table order."""
        return (self.guid, self.timestamp, self.ttl, self.topic, self.source, self.title, self.link)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
