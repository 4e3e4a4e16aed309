from __future__ import annotations

import dataclasses
import logging
from typing import Callable, List, Optional, Tuple

import numpy as np
import numpy.typing as npt
import skia

from mvrvbot.backends.base import ChartBackend
from mvrvbot.chart_layout import (
  BACKGROUND,
  GENERIC_FAMILY,
  GRID_RGBA,
  LINE_RGB,
  LINE_WIDTH,
  TEXT,
  ChartOptions,
  FontCandidate,
  PlotGeometry,
  font_file_exists,
  resolve_font_family,
  x_label_indices,
  y_ticks,
)
from mvrvbot.cm_data import Series

logger = logging.getLogger(__name__)


def _argb(rgb: Tuple[int, int, int], alpha: float = 1.0) -> int:
  return skia.ColorSetARGB(int(round(alpha * 255)), rgb[0], rgb[1], rgb[2])


@dataclasses.dataclass(frozen=True)
class RenderTheme:
  # Colors
  bg_color: int = _argb(BACKGROUND)
  grid_color: int = _argb(GRID_RGBA[:3], GRID_RGBA[3])
  text_color: int = _argb(TEXT)
  halo_color: int = skia.ColorSetARGB(242, 255, 255, 255)
  line_color: int = _argb(LINE_RGB)
  banner_bg: int = skia.ColorSetARGB(230, 255, 255, 255)
  banner_border: int = _argb(TEXT)

  # Font sizes
  header_font_size: float = 24.0
  subheader_font_size: float = 18.0
  y_label_font_size: float = 18.0
  x_label_font_size: float = 14.0
  zone_font_size: float = 16.0

  # Line styles
  line_width: float = LINE_WIDTH
  grid_width: float = 1.0
  halo_width: float = 4.0
  point_radius: float = 4.0

  # Offsets
  y_label_pad_left: float = 20.0
  y_label_baseline_dy: float = 6.0
  x_label_offset_dy: float = 25.0
  zone_label_dx: float = 10.0
  banner_pad: float = 8.0
  banner_line_gap: float = 6.0


class SkiaRenderer(ChartBackend):
  """Reference backend: immediate-mode raster canvas."""

  name = "skia"

  def __init__(self, theme: Optional[RenderTheme] = None,
               font_probe: Callable[[FontCandidate], bool] = font_file_exists):
    self.theme = theme or RenderTheme()
    self.font_probe = font_probe

  def _typeface(self, options: ChartOptions) -> skia.Typeface:
    chosen = resolve_font_family(options.font_candidates, self.font_probe)
    tf = None
    try:
      if chosen.path is not None:
        tf = skia.Typeface.MakeFromFile(str(chosen.path))
      if tf is None:
        tf = skia.Typeface(chosen.family)
    except (RuntimeError, ValueError, OSError) as e:
      logger.info("Font %r not loadable (%s), using %s", chosen.family, e, GENERIC_FAMILY)
      tf = None
    return tf if tf is not None else skia.Typeface(GENERIC_FAMILY)

  def _draw_zones(self, canvas: skia.Canvas, geo: PlotGeometry, options: ChartOptions, font: skia.Font):
    bands = geo.zone_bands(options.thresholds)
    for zone, y_top, y_bottom in bands:
      r, g, b, a = zone.rgba
      paint = skia.Paint(Color=_argb((r, g, b), a))
      canvas.drawRect(skia.Rect.MakeLTRB(geo.left, y_top, geo.right, y_bottom), paint)

    for zone, y_top, y_bottom in bands:
      self._draw_halo_text(canvas, zone.label, geo.left + self.theme.zone_label_dx,
                           (y_top + y_bottom) / 2.0 + font.getSize() / 3.0, font)

  def _draw_halo_text(self, canvas: skia.Canvas, text: str, x: float, y: float, font: skia.Font):
    halo = skia.Paint(AntiAlias=True, Style=skia.Paint.kStroke_Style, Color=self.theme.halo_color,
                      StrokeWidth=self.theme.halo_width)
    fill = skia.Paint(AntiAlias=True, Color=self.theme.text_color)
    canvas.drawString(text, x, y, font, halo)
    canvas.drawString(text, x, y, font, fill)

  def _draw_y_grid_and_labels(self, canvas: skia.Canvas, geo: PlotGeometry, font: skia.Font):
    grid_paint = skia.Paint(Style=skia.Paint.kStroke_Style, Color=self.theme.grid_color,
                            StrokeWidth=self.theme.grid_width)
    text_paint = skia.Paint(AntiAlias=True, Color=self.theme.text_color)
    for v in y_ticks(geo.y_min, geo.y_max):
      y = geo.value_to_y(v)
      canvas.drawLine(geo.left, y, geo.right, y, grid_paint)
      label = str(v)
      canvas.drawString(
        label,
        geo.left - self.theme.y_label_pad_left - font.measureText(label),
        y + self.theme.y_label_baseline_dy,
        font,
        text_paint,
      )

  def _draw_x_labels(self, canvas: skia.Canvas, geo: PlotGeometry, series: Series, options: ChartOptions,
                     font: skia.Font):
    text_paint = skia.Paint(AntiAlias=True, Color=self.theme.text_color)
    n = len(series)
    for idx, label in x_label_indices(series.timestamps, geo.width, options.x_label_min_spacing):
      px = geo.index_to_x(idx, n)
      w = font.measureText(label)
      # keep the label inside the canvas
      lx = min(max(px - w / 2.0, 0.0), options.width - w)
      canvas.drawString(label, lx, geo.bottom + self.theme.x_label_offset_dy, font, text_paint)

  def _draw_series(self, canvas: skia.Canvas, geo: PlotGeometry, xs: npt.NDArray[np.float64],
                   ys: npt.NDArray[np.float64]):
    if xs.shape[0] == 0:
      return
    paint = skia.Paint(Color=self.theme.line_color, AntiAlias=True)
    if xs.shape[0] == 1:
      canvas.drawCircle(float(xs[0]), float(ys[0]), self.theme.point_radius, paint)
      return
    paint.setStyle(skia.Paint.kStroke_Style)
    paint.setStrokeWidth(self.theme.line_width)
    path = skia.Path()
    path.moveTo(float(xs[0]), float(ys[0]))
    for i in range(1, xs.shape[0]):
      path.lineTo(float(xs[i]), float(ys[i]))
    canvas.drawPath(path, paint)

  def _draw_header(self, canvas: skia.Canvas, options: ChartOptions, fonts: List[skia.Font]):
    lines = [ln for ln in options.header_lines if ln]
    if not lines:
      return
    t = self.theme
    widths = [f.measureText(ln) for f, ln in zip(fonts, lines)]
    heights = [f.getSize() for f in fonts[:len(lines)]]
    box_w = max(widths) + 2 * t.banner_pad
    box_h = sum(heights) + t.banner_line_gap * (len(lines) - 1) + 2 * t.banner_pad
    left = (options.width - box_w) / 2.0
    top = max(4.0, (options.padding_top - box_h) / 2.0)
    rect = skia.Rect.MakeLTRB(left, top, left + box_w, top + box_h)
    canvas.drawRect(rect, skia.Paint(Color=t.banner_bg))
    canvas.drawRect(rect, skia.Paint(Style=skia.Paint.kStroke_Style, Color=t.banner_border, StrokeWidth=1.0))

    text_paint = skia.Paint(AntiAlias=True, Color=t.text_color)
    y = top + t.banner_pad
    for font, line, w, h in zip(fonts, lines, widths, heights):
      y += h
      canvas.drawString(line, (options.width - w) / 2.0, y - h * 0.2, font, text_paint)
      y += t.banner_line_gap

  def render_image(self, series: Series, options: ChartOptions) -> skia.Image:
    t = self.theme
    geo = PlotGeometry.from_options(options)
    tf = self._typeface(options)
    header_fonts = [skia.Font(tf, t.header_font_size), skia.Font(tf, t.subheader_font_size)]

    surface = skia.Surface(options.width, options.height)
    canvas = surface.getCanvas()
    canvas.clear(t.bg_color)

    self._draw_zones(canvas, geo, options, skia.Font(tf, t.zone_font_size))
    self._draw_y_grid_and_labels(canvas, geo, skia.Font(tf, t.y_label_font_size))

    n = len(series)
    xs = geo.indices_to_x(n)
    ys = geo.values_to_y(series.values)
    self._draw_series(canvas, geo, xs, ys)

    self._draw_x_labels(canvas, geo, series, options, skia.Font(tf, t.x_label_font_size))
    self._draw_header(canvas, options, header_fonts)
    return surface.makeImageSnapshot()

  def render(self, series: Series, options: ChartOptions) -> bytes:
    image = self.render_image(series, options)
    data = image.encodeToData(skia.kPNG, 100)
    return bytes(data) if data is not None else b""
