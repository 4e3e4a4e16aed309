"""
SVG backend.

The chart is written as an SVG document and rasterized by resvg. Text is
shaped with the resolved font file, which also serves as the default and
generic sans-serif family.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional
from xml.sax.saxutils import escape, quoteattr

import resvg_py

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


def _text(x: float, y: float, text: str, family: str, size: int, anchor: str = "start", halo: bool = False) -> str:
  extra = ' stroke="rgba(255,255,255,0.95)" stroke-width="4" paint-order="stroke"' if halo else ""
  return (f'<text x="{x:.1f}" y="{y:.1f}" text-anchor="{anchor}" font-family={quoteattr(family)} '
          f'font-size="{size}" fill="#000"{extra}>{escape(text)}</text>')


def build_svg(series: Series, options: ChartOptions, font_family: str) -> str:
  geo = PlotGeometry.from_options(options)
  w, h = options.width, options.height
  parts: List[str] = [
    f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" viewBox="0 0 {w} {h}">',
    f'<rect x="0" y="0" width="{w}" height="{h}" fill="{rgb_hex(BACKGROUND)}"/>',
  ]

  bands = geo.zone_bands(options.thresholds)
  for zone, y_top, y_bottom in bands:
    parts.append(f'<rect x="{geo.left:.1f}" y="{y_top:.1f}" width="{geo.width:.1f}" height="{y_bottom - y_top:.1f}" '
                 f'fill="{rgba_css(zone.rgba)}"/>')

  for v in y_ticks(geo.y_min, geo.y_max):
    y = geo.value_to_y(v)
    parts.append(f'<line x1="{geo.left:.1f}" y1="{y:.1f}" x2="{geo.right:.1f}" y2="{y:.1f}" '
                 f'stroke="{rgba_css(GRID_RGBA)}" stroke-width="1"/>')
    parts.append(_text(geo.left - 20, y + 6, str(v), font_family, 18, anchor="end"))

  n = len(series)
  xs = geo.indices_to_x(n)
  ys = geo.values_to_y(series.values)
  if n == 1:
    parts.append(f'<circle cx="{xs[0]:.1f}" cy="{ys[0]:.1f}" r="4" fill="{rgb_hex(LINE_RGB)}"/>')
  elif n > 1:
    pts = " ".join(f"{x:.1f},{y:.1f}" for x, y in zip(xs, ys))
    parts.append(f'<polyline points="{pts}" fill="none" stroke="{rgb_hex(LINE_RGB)}" stroke-width="{LINE_WIDTH:g}"/>')

  for idx, label in x_label_indices(series.timestamps, geo.width, options.x_label_min_spacing):
    parts.append(_text(geo.index_to_x(idx, n), geo.bottom + 25, label, font_family, 14, anchor="middle"))

  for zone, y_top, y_bottom in bands:
    parts.append(_text(geo.left + 10, (y_top + y_bottom) / 2.0 + 5, zone.label, font_family, 16, halo=True))

  lines = [ln for ln in options.header_lines if ln]
  if lines:
    box_h = 24 + 8 * 2 + (24 if len(lines) > 1 else 0)
    box_w = max(len(ln) for ln in lines) * 13 + 16
    top = max(4.0, (options.padding_top - box_h) / 2.0)
    parts.append(f'<rect x="{(w - box_w) / 2.0:.1f}" y="{top:.1f}" width="{box_w}" height="{box_h}" '
                 f'fill="rgba(255,255,255,0.9)" stroke="#000" stroke-width="1"/>')
    y = top + 8 + 20
    for i, ln in enumerate(lines):
      parts.append(_text(w / 2.0, y, ln, font_family, 24 if i == 0 else 18, anchor="middle"))
      y += 24

  parts.append("</svg>")
  return "\n".join(parts)


def rasterize_svg(svg: str, width: int, height: int, font: Optional[FontCandidate] = None) -> bytes:
  """PNG bytes for an SVG document. A font with a file is registered as the default and sans-serif family."""
  fonts = {}
  if font is not None and font.path is not None:
    fonts = {"font_files": [str(font.path)], "font_family": font.family, "sans_serif_family": font.family}
  png = resvg_py.svg_to_bytes(svg_string=svg, width=width, height=height, **fonts)
  if not png:
    raise RuntimeError("resvg returned no image")
  return bytes(png)


class SvgBackend(ChartBackend):
  """Chart as an SVG document rasterized by resvg."""

  name = "svg"

  def __init__(self, font_probe: Callable[[FontCandidate], bool] = font_file_exists,
               rasterizer: Callable[[str, int, int, Optional[FontCandidate]], bytes] = rasterize_svg):
    self.font_probe = font_probe
    self.rasterizer = rasterizer

  def render(self, series: Series, options: ChartOptions) -> bytes:
    font = resolve_font_family(options.font_candidates, self.font_probe)
    svg = build_svg(series, options, font.family)
    logger.debug("SVG document %d bytes, font=%s", len(svg), font.family)
    return self.rasterizer(svg, options.width, options.height, font)
