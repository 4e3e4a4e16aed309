from __future__ import annotations

import dataclasses
import logging
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from mvrvbot.coinmetrics import CoinmetricsWeb
from mvrvbot.config import (
  COINMETRICS_ASSET,
  COINMETRICS_METRIC,
  HISTORY_PAGE_SIZE,
  LATEST_PAGE_SIZE,
  LATEST_WINDOW_DAYS,
  MAX_PAGES,
)
from mvrvbot.errors import EmptyResultError, NoDataError, PaginationLoopError

logger = logging.getLogger(__name__)

# Coin Metrics returns nanosecond precision ("2024-01-01T00:00:00.000000000Z")
_FRACTION_RE = re.compile(r"\.(\d+)")


@dataclasses.dataclass(frozen=True)
class DataPoint:
  timestamp: datetime
  value: float


@dataclasses.dataclass(frozen=True)
class Series:
  points: Tuple[DataPoint, ...] = ()

  def __len__(self) -> int:
    return len(self.points)

  def __iter__(self) -> Iterator[DataPoint]:
    return iter(self.points)

  def __getitem__(self, idx: int) -> DataPoint:
    return self.points[idx]

  @property
  def timestamps(self) -> List[datetime]:
    return [p.timestamp for p in self.points]

  @property
  def values(self) -> npt.NDArray[np.float64]:
    return np.fromiter((p.value for p in self.points), dtype=np.float64, count=len(self.points))

  @property
  def last(self) -> Optional[DataPoint]:
    return self.points[-1] if self.points else None


def parse_time(raw: Any) -> Optional[datetime]:
  if not isinstance(raw, str) or not raw.strip():
    return None
  s = raw.strip()
  if s.endswith("Z"):
    s = s[:-1] + "+00:00"
  s = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
  try:
    dt = datetime.fromisoformat(s)
  except ValueError:
    return None
  if dt.tzinfo is None:
    dt = dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def parse_value(raw: Any) -> Optional[float]:
  if raw is None or isinstance(raw, bool):
    return None
  try:
    val = float(raw)
  except (TypeError, ValueError):
    return None
  if not math.isfinite(val):
    return None
  return val


def parse_record(record: Dict[str, Any], metric: str) -> Optional[DataPoint]:
  ts = parse_time(record.get("time"))
  val = parse_value(record.get(metric))
  if ts is None or val is None:
    return None
  return DataPoint(timestamp=ts, value=val)


def normalize_points(points: List[DataPoint]) -> Series:
  """Stable sort by timestamp; exact duplicates (same time and value) keep their first occurrence."""
  ordered = sorted(points, key=lambda p: p.timestamp)
  out: List[DataPoint] = []
  seen = set()
  for p in ordered:
    key = (p.timestamp, p.value)
    if key in seen:
      continue
    seen.add(key)
    out.append(p)
  return Series(points=tuple(out))


class SeriesFetcher:
  def __init__(self, web: CoinmetricsWeb, asset: str = COINMETRICS_ASSET, metric: str = COINMETRICS_METRIC,
               page_size: int = HISTORY_PAGE_SIZE, max_pages: int = MAX_PAGES):
    self.web = web
    self.asset = asset
    self.metric = metric
    self.page_size = page_size
    self.max_pages = max_pages

  def _fetch_raw_pages(self, start: date, end: date) -> List[Dict[str, Any]]:
    records: List[Dict[str, Any]] = []
    resp = self.web.get_asset_metrics(self.asset, self.metric, start, end, self.page_size)
    pages = 1
    visited = set()
    while True:
      batch = resp.get("data") or []
      records.extend(batch)
      next_url = resp.get("next_page_url") or ""
      logger.info("Received page %d: points=%d total=%d more=%s", pages, len(batch), len(records), bool(next_url))
      if not next_url:
        break
      if next_url in visited:
        raise PaginationLoopError(f"Continuation URL repeated after {pages} pages: {next_url}")
      if pages >= self.max_pages:
        raise PaginationLoopError(f"Pagination did not terminate within {self.max_pages} pages")
      visited.add(next_url)
      resp = self.web.get_json(next_url)
      pages += 1
    return records

  def fetch_history(self, max_lookback_days: int, now: Optional[datetime] = None) -> Series:
    now = now or datetime.now(timezone.utc)
    end = now.date()
    start = (now - timedelta(days=int(max_lookback_days))).date()
    logger.info("Requesting %s %s history %s .. %s", self.asset, self.metric, start, end)

    records = self._fetch_raw_pages(start, end)
    if not records:
      raise EmptyResultError(f"No {self.metric} points returned for {start} .. {end}")

    points: List[DataPoint] = []
    dropped = 0
    for rec in records:
      p = parse_record(rec, self.metric)
      if p is None:
        dropped += 1
        logger.warning("Dropping unparsable point time=%r value=%r", rec.get("time"), rec.get(self.metric))
        continue
      points.append(p)
    if not points:
      raise EmptyResultError(f"All {len(records)} {self.metric} points were unparsable")

    series = normalize_points(points)
    logger.info(
      "Processed history: points=%d dropped=%d first=%s last=%s",
      len(series), dropped, series[0].timestamp.date(), series[-1].timestamp.date(),
    )
    return series


class LatestValueResolver:
  def __init__(self, web: CoinmetricsWeb, fetcher: SeriesFetcher, history_days: int,
               window_days: int = LATEST_WINDOW_DAYS, page_size: int = LATEST_PAGE_SIZE):
    self.web = web
    self.fetcher = fetcher
    self.history_days = history_days
    self.window_days = window_days
    self.page_size = page_size

  def get_latest_point(self, now: Optional[datetime] = None) -> DataPoint:
    now = now or datetime.now(timezone.utc)
    end = (now - timedelta(days=1)).date()
    start = end - timedelta(days=self.window_days)
    metric = self.fetcher.metric

    # single page; a week of daily points never paginates at this page size
    resp = self.web.get_asset_metrics(self.fetcher.asset, metric, start, end, self.page_size)
    batch = resp.get("data") or []
    logger.info("Latest window %s .. %s: points=%d", start, end, len(batch))
    if batch:
      p = parse_record(batch[-1], metric)
      if p is not None:
        logger.info("Latest %s=%s at %s", metric, p.value, p.timestamp.date())
        return p

    logger.warning("No usable %s in the last %d days, falling back to history", metric, self.window_days)
    try:
      series = self.fetcher.fetch_history(self.history_days, now=now)
    except EmptyResultError as e:
      raise NoDataError(f"No {metric} value in window or history") from e
    p = series.last
    if p is None:
      raise NoDataError(f"No {metric} value in window or history")
    logger.info("Latest %s=%s at %s (from history fallback)", metric, p.value, p.timestamp.date())
    return p

  def get_latest(self, now: Optional[datetime] = None) -> float:
    return self.get_latest_point(now).value
