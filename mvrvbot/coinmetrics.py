import logging
from datetime import date
from typing import Any, Dict, Optional

import requests

from mvrvbot.config import COINMETRICS_HTTP_TIMEOUT, COINMETRICS_USER_AGENT
from mvrvbot.errors import UpstreamError

logger = logging.getLogger(__name__)

ASSET_METRICS_PATH = "timeseries/asset-metrics"


class CoinmetricsWeb:
  def __init__(self, server: str, api_key: str = "", timeout: float = COINMETRICS_HTTP_TIMEOUT,
               user_agent: str = COINMETRICS_USER_AGENT, session: Optional[requests.Session] = None):
    self.server = server.rstrip("/") + "/"
    self.api_key = api_key
    self.timeout = timeout
    self.session = session or requests.Session()
    self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})

  def asset_metrics_params(self, asset: str, metric: str, start: date, end: date, page_size: int) -> Dict[str, Any]:
    params: Dict[str, Any] = {
      "assets": asset,
      "metrics": metric,
      "start_time": start.strftime("%Y-%m-%d"),
      "end_time": end.strftime("%Y-%m-%d"),
      "page_size": int(page_size),
    }
    if self.api_key:
      params["api_key"] = self.api_key
    return params

  def get_asset_metrics(self, asset: str, metric: str, start: date, end: date, page_size: int) -> Dict[str, Any]:
    url = self.server + ASSET_METRICS_PATH
    return self.get_json(url, self.asset_metrics_params(asset, metric, start, end, page_size))

  def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """GET and decode a JSON object. Continuation URLs are passed with params=None and used verbatim."""
    try:
      r = self.session.get(url, params=params, timeout=self.timeout)
    except requests.Timeout as e:
      raise UpstreamError(f"Coinmetrics request timed out after {self.timeout}s", url=url) from e
    except requests.RequestException as e:
      raise UpstreamError(f"Coinmetrics request failed: {e}", url=url) from e

    if r.status_code >= 400:
      body_preview = (r.text or "")[:200]
      if r.status_code in (401, 403):
        body_preview = "<suppressed>"
      logger.warning("Coinmetrics API HTTP %s; body=%s", r.status_code, body_preview)
      raise UpstreamError(f"Coinmetrics API error: {r.status_code}", status_code=r.status_code, url=url)

    try:
      data = r.json()
    except ValueError as e:
      raise UpstreamError("Coinmetrics API returned invalid JSON", status_code=r.status_code, url=url) from e
    if not isinstance(data, dict):
      raise UpstreamError("Coinmetrics API response is not a JSON object", status_code=r.status_code, url=url)
    if "error" in data:
      raise UpstreamError(f"Coinmetrics API error: {data['error']}", status_code=r.status_code, url=url)
    return data
