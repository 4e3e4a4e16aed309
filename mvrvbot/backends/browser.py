"""
Headless-browser backend.

plotly builds the figure and kaleido (1.0 and later) exports it through a
headless Chromium that it starts and shuts down inside each write_image call.
The temp file is removed on every path.
"""
from __future__ import annotations

import logging
import os
import tempfile
from typing import Any, Callable

from mvrvbot.backends.base import ChartBackend
from mvrvbot.chart_layout import (
  BACKGROUND,
  GRID_RGBA,
  LINE_RGB,
  LINE_WIDTH,
  ChartOptions,
  FontCandidate,
  PlotGeometry,
  font_file_exists,
  resolve_font_family,
  rgb_hex,
  rgba_css,
  x_label_indices,
  y_ticks,
)
from mvrvbot.cm_data import Series

logger = logging.getLogger(__name__)


def build_figure(series: Series, options: ChartOptions, font_family: str):
  import plotly.graph_objects as go

  geo = PlotGeometry.from_options(options)
  n = len(series)
  xs = list(range(n))
  ys = [float(v) for v in geo.clamp(series.values)]
  labels = x_label_indices(series.timestamps, geo.width, options.x_label_min_spacing)

  fig = go.Figure()
  if n:
    fig.add_trace(go.Scatter(
      x=xs, y=ys,
      mode="lines" if n > 1 else "markers",
      line=dict(color=rgb_hex(LINE_RGB), width=LINE_WIDTH),
      marker=dict(color=rgb_hex(LINE_RGB), size=8),
      showlegend=False,
    ))

  for zone, _y_top, _y_bottom in geo.zone_bands(options.thresholds):
    lo = max(zone.lower, geo.y_min)
    hi = min(zone.upper, geo.y_max)
    fig.add_hrect(y0=lo, y1=hi, fillcolor=rgba_css(zone.rgba), line_width=0, layer="below")
    fig.add_annotation(
      x=0, xref="paper", xanchor="left", xshift=10, y=(lo + hi) / 2.0, yref="y",
      text=zone.label, showarrow=False, bgcolor="rgba(255,255,255,0.6)",
      font=dict(family=font_family, size=16, color="#000"),
    )

  lines = [ln for ln in options.header_lines if ln]
  if lines:
    fig.add_annotation(
      x=0.5, xref="paper", xanchor="center", y=1.0, yref="paper", yanchor="bottom", yshift=12,
      text="<br>".join(lines), showarrow=False, align="center",
      bgcolor="rgba(255,255,255,0.9)", bordercolor="#000", borderwidth=1, borderpad=8,
      font=dict(family=font_family, size=24, color="#000"),
    )

  ticks = y_ticks(geo.y_min, geo.y_max)
  fig.update_layout(
    width=options.width,
    height=options.height,
    margin=dict(l=options.padding_left, r=options.padding_right, t=options.padding_top, b=options.padding_bottom),
    paper_bgcolor=rgb_hex(BACKGROUND),
    plot_bgcolor=rgb_hex(BACKGROUND),
    font=dict(family=font_family, color="#000"),
    xaxis=dict(
      range=[0, max(1, n - 1)],
      tickvals=[i for i, _ in labels],
      ticktext=[t for _, t in labels],
      tickfont=dict(size=14, color="#000"),
      showgrid=False,
      zeroline=False,
    ),
    yaxis=dict(
      range=[geo.y_min, geo.y_max],
      tickvals=ticks,
      ticktext=[str(t) for t in ticks],
      tickfont=dict(size=18, color="#000"),
      gridcolor=rgba_css(GRID_RGBA),
      zeroline=False,
    ),
  )
  return fig


def export_png(fig, width: int, height: int) -> bytes:
  fd, tmp_path = tempfile.mkstemp(suffix=".png")
  os.close(fd)
  try:
    fig.write_image(tmp_path, format="png", width=width, height=height, scale=1)
    with open(tmp_path, "rb") as f:
      return f.read()
  finally:
    os.unlink(tmp_path)


class BrowserBackend(ChartBackend):
  name = "browser"

  def __init__(self, font_probe: Callable[[FontCandidate], bool] = font_file_exists,
               exporter: Callable[[Any, int, int], bytes] = export_png):
    self.font_probe = font_probe
    self.exporter = exporter

  def render(self, series: Series, options: ChartOptions) -> bytes:
    family = resolve_font_family(options.font_candidates, self.font_probe).family
    fig = build_figure(series, options, family)
    logger.debug("plotly figure built: points=%d font=%s", len(series), family)
    return self.exporter(fig, options.width, options.height)
