import struct

import numpy as np
import pytest

from fakes import daily_series
from mvrvbot.backends.base import is_png
from mvrvbot.chart_layout import ChartOptions
from mvrvbot.cm_data import Series
from mvrvbot.render import SkiaRenderer


def png_size(data: bytes):
  # IHDR follows the 8-byte signature and the 8-byte chunk header
  return struct.unpack(">II", data[16:24])


def no_fonts(_candidate):
  return False


@pytest.mark.parametrize("n", [0, 1, 2, 400])
def test_renders_valid_png_for_any_length(n):
  renderer = SkiaRenderer(font_probe=no_fonts)

  data = renderer.render(daily_series(n), ChartOptions())

  assert is_png(data)
  assert png_size(data) == (1200, 675)


def test_custom_size_and_two_header_lines():
  renderer = SkiaRenderer(font_probe=no_fonts)
  options = ChartOptions(width=800, height=450, y_max=4.5, header_lines=("Bitcoin MVRV", "last 180 days"))

  data = renderer.render(daily_series(180), options)

  assert png_size(data) == (800, 450)


def test_background_is_not_white_or_transparent():
  renderer = SkiaRenderer(font_probe=no_fonts)

  pixels = np.asarray(renderer.render_image(Series(), ChartOptions(header_lines=())).toarray())

  corner = pixels[2, 2]
  assert corner[3] == 255
  assert not (corner[:3] == 255).all()


def test_out_of_domain_values_are_clipped_not_failing():
  renderer = SkiaRenderer(font_probe=no_fonts)
  series = daily_series(10, value=7.0)

  assert is_png(renderer.render(series, ChartOptions()))
