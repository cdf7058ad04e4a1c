"""
Economic Indicators
==================

Latest values of a handful of macro series, shown above the headlines in the
digest. FRED series and Eurostat datasets are fetched concurrently; a series
that fails or has no usable value is left out, and a total failure yields an
empty block rather than failing the run.
"""

import asyncio
import math
import ssl
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp
import certifi

from ..config.settings import EconomicsSettings, get_settings
from ..utils.logging import get_logger_for_component


FRED_URL = (
    "https://api.stlouisfed.org/fred/series/observations"
    "?series_id={key}&api_key={api_key}&file_type=json&sort_order=desc&limit=1"
)

EUROSTAT_URL = (
    "https://ec.europa.eu/eurostat/api/dissemination/statistics/1.0/data/{key}"
    "?FORMAT=JSON&lang=EN{param}&geo=EU27_2020&lastTimePeriod=4"
)

LINE_TEMPLATE = '<div style="font-family:monospace; font-size:14px; margin:0;">{name} ({date}): {value:.2f}%</div>'


@dataclass(frozen=True)
class Dataset:
    """A series to display. ``index`` fixes its position in the block."""
    index: int
    key: str
    name: str
    param: str = ""


@dataclass(frozen=True)
class DataPoint:
    index: int
    name: str
    date: str
    value: float


FRED_DATASETS = [
    Dataset(1, "UNRATE", "US unemploy."),
    Dataset(3, "CORESTICKM159SFRBATL", "US inflation"),
    Dataset(5, "DFEDTARL", "US Fedfunds obj."),
    Dataset(6, "FEDFUNDS", "US Fedfunds eff."),
    Dataset(7, "ECBMRRFR", "EU MRO obj."),
    Dataset(8, "ECBESTRVOLWGTTRMDMNRT", "EU €STR eff."),
]

EUROSTAT_DATASETS = [
    Dataset(2, "une_rt_m", "EU unemploy.", "&unit=PC_ACT&age=TOTAL&sex=T&s_adj=SA"),
    Dataset(4, "prc_hicp_manr", "EU inflation", "&coicop=CP00"),
]


def format_date(raw: str) -> str:
    """Render ``2025-05-01`` or ``2025-05`` as ``May 1, 2025``.

    Unrecognized strings are returned unchanged.
    """
    for layout in ("%Y-%m-%d", "%Y-%m"):
        try:
            parsed = datetime.strptime(raw, layout)
        except ValueError:
            continue
        return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"
    return raw


def parse_fred(payload: Dict[str, Any], dataset: Dataset) -> Optional[DataPoint]:
    """Latest usable observation of a FRED response."""
    for observation in payload.get("observations") or []:
        raw = observation.get("value")
        if raw in (None, "", "."):
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        if math.isnan(value):
            continue
        return DataPoint(dataset.index, dataset.name, format_date(observation.get("date", "")), value)
    return None


def parse_eurostat(payload: Dict[str, Any], dataset: Dataset) -> Optional[DataPoint]:
    """Latest usable value of a Eurostat JSON-stat response.

    Values are keyed by flat index; the time dimension is the innermost one,
    so the flat index modulo the number of periods gives the period position.
    """
    time_index = (
        payload.get("dimension", {}).get("time", {}).get("category", {}).get("index") or {}
    )
    position_to_date = {position: raw for raw, position in time_index.items()}
    if not position_to_date:
        return None

    latest_index = -1
    latest_value = 0.0
    for key, value in (payload.get("value") or {}).items():
        if value is None:
            continue
        try:
            flat_index = int(key)
            value = float(value)
        except (TypeError, ValueError):
            continue
        if math.isnan(value):
            continue
        if flat_index > latest_index:
            latest_index = flat_index
            latest_value = value

    if latest_index < 0:
        return None

    raw_date = position_to_date.get(latest_index % len(position_to_date), "")
    return DataPoint(dataset.index, dataset.name, format_date(raw_date), latest_value)


def render_indicators(points: List[DataPoint]) -> str:
    """Render data points as monospace lines, a blank line after every pair."""
    ordered = sorted(points, key=lambda point: point.index)

    lines = []
    for position, point in enumerate(ordered, start=1):
        lines.append(LINE_TEMPLATE.format(name=point.name, date=point.date, value=point.value))
        if position % 2 == 0 and position < len(ordered):
            lines.append("<br/>")

    return "\n".join(lines)


class EconomicsClient:
    """Fetches the configured indicator series."""

    def __init__(
        self,
        settings: Optional[EconomicsSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings or get_settings().economics
        self._session = session
        self.logger = get_logger_for_component("economics")

    async def fetch_indicators(self) -> List[DataPoint]:
        """Fetch every series concurrently. Never raises."""
        try:
            if self._session is not None:
                return await self._fetch_all(self._session)

            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            async with aiohttp.ClientSession(connector=connector) as session:
                return await self._fetch_all(session)

        except Exception as e:
            self.logger.warning(f"Economic indicators unavailable: {e}")
            return []

    async def render_block(self) -> str:
        """Indicator block for the digest, empty when disabled or unavailable."""
        if not self.settings.enabled:
            return ""
        return render_indicators(await self.fetch_indicators())

    async def _fetch_all(self, session: aiohttp.ClientSession) -> List[DataPoint]:
        tasks = []

        if self.settings.fred_api_key:
            for dataset in FRED_DATASETS:
                url = FRED_URL.format(key=dataset.key, api_key=self.settings.fred_api_key)
                tasks.append(self._fetch_point(session, url, dataset, parse_fred))
        else:
            self.logger.debug("No FRED API key configured, skipping FRED series")

        for dataset in EUROSTAT_DATASETS:
            url = EUROSTAT_URL.format(key=dataset.key, param=dataset.param)
            tasks.append(self._fetch_point(session, url, dataset, parse_eurostat))

        points = await asyncio.gather(*tasks)
        return sorted((p for p in points if p is not None), key=lambda p: p.index)

    async def _fetch_point(self, session, url, dataset, parse) -> Optional[DataPoint]:
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)
        try:
            async with session.get(url, timeout=timeout) as response:
                if response.status != 200:
                    self.logger.warning(f"{dataset.key}: HTTP {response.status}")
                    return None
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.warning(f"{dataset.key}: request failed: {e}")
            return None

        if not isinstance(payload, dict):
            return None
        return parse(payload, dataset)
