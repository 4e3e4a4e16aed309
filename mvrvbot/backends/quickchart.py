from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from mvrvbot.backends.base import ChartBackend
from mvrvbot.chart_layout import (
  BACKGROUND,
  GRID_RGBA,
  LINE_RGB,
  LINE_WIDTH,
  ChartOptions,
  PlotGeometry,
  rgb_hex,
  rgba_css,
  x_label_indices,
)
from mvrvbot.cm_data import Series
from mvrvbot.config import QUICKCHART_TIMEOUT, QUICKCHART_URL
from mvrvbot.errors import RenderBackendError

logger = logging.getLogger(__name__)


def build_chart_config(series: Series, options: ChartOptions) -> Dict[str, Any]:
  """Chart.js v4 config: the MVRV line, one stacked filled dataset per visible zone and a name label on each band."""
  geo = PlotGeometry.from_options(options)
  n = len(series)
  values = [round(float(v), 4) for v in geo.clamp(series.values)]
  label_at = dict(x_label_indices(series.timestamps, geo.width, options.x_label_min_spacing))
  labels = [label_at.get(i, "") for i in range(n)]

  datasets: List[Dict[str, Any]] = [{
    "label": "MVRV",
    "data": values,
    "borderColor": rgba_css(LINE_RGB + (1,)),
    "borderWidth": LINE_WIDTH,
    "pointRadius": 0 if n > 1 else 4,
    "fill": False,
    "order": 0,
  }]
  zone_labels: Dict[str, Dict[str, Any]] = {}
  for i, (zone, _y_top, _y_bottom) in enumerate(geo.zone_bands(options.thresholds)):
    lo, hi = max(zone.lower, geo.y_min), min(zone.upper, geo.y_max)
    zone_labels[zone.name] = {
      "type": "label",
      "yMin": lo,
      "yMax": hi,
      "position": {"x": "start", "y": "center"},
      "xAdjust": 10,
      "content": zone.label,
      "color": "#000",
      "backgroundColor": "rgba(255,255,255,0.6)",
      "font": {"size": 16},
    }
    datasets.append({
      "label": zone.label,
      "data": [hi] * n,
      "backgroundColor": rgba_css(zone.rgba),
      "borderColor": "transparent",
      "pointRadius": 0,
      "fill": "origin" if i == 0 else "-1",
      "order": i + 1,
    })

  header = [ln for ln in options.header_lines if ln]
  return {
    "type": "line",
    "data": {"labels": labels, "datasets": datasets},
    "options": {
      "animation": False,
      "layout": {"padding": {"left": options.padding_left // 2, "right": options.padding_right,
                             "top": 10, "bottom": 10}},
      "plugins": {
        "legend": {"display": False},
        "annotation": {"annotations": zone_labels},
        "title": {"display": bool(header), "text": header, "color": "#000", "font": {"size": 24}},
      },
      "scales": {
        "x": {"grid": {"display": False},
              "ticks": {"color": "#000", "autoSkip": False, "maxRotation": 0, "font": {"size": 14}}},
        "y": {"min": geo.y_min, "max": geo.y_max,
              "grid": {"color": rgba_css(GRID_RGBA)},
              "ticks": {"color": "#000", "stepSize": 1, "font": {"size": 18}}},
      },
    },
  }


class QuickChartBackend(ChartBackend):
  """Remote chart-as-a-service tier."""

  name = "quickchart"

  def __init__(self, url: str = QUICKCHART_URL, timeout: float = QUICKCHART_TIMEOUT,
               session: Optional[requests.Session] = None):
    self.url = url
    self.timeout = timeout
    self.session = session or requests.Session()

  def render(self, series: Series, options: ChartOptions) -> bytes:
    payload = {
      "version": "4",
      "format": "png",
      "width": options.width,
      "height": options.height,
      "devicePixelRatio": 1,
      "backgroundColor": rgb_hex(BACKGROUND),
      "chart": build_chart_config(series, options),
    }
    r = self.session.post(self.url, json=payload, timeout=self.timeout)
    if not 200 <= r.status_code < 300:
      logger.warning("QuickChart HTTP %s; body=%s", r.status_code, (r.text or "")[:200])
      raise RenderBackendError(self.name, f"HTTP {r.status_code}")
    return r.content
