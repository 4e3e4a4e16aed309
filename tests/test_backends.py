import os
from importlib.metadata import version

import numpy as np
import pytest
import skia

from fakes import FAKE_PNG, daily_series
from mvrvbot.backends.browser import BrowserBackend, build_figure, export_png
from mvrvbot.backends.quickchart import QuickChartBackend, build_chart_config
from mvrvbot.backends.svg import SvgBackend, build_svg, rasterize_svg
from mvrvbot.chart_layout import DEFAULT_FONT_CANDIDATES, ChartOptions, FontCandidate, resolve_font_family
from mvrvbot.cm_data import Series
from mvrvbot.errors import RenderBackendError


def test_svg_has_background_zones_line_and_labels():
  svg = build_svg(daily_series(40), ChartOptions(), "DejaVu Sans")

  assert 'fill="#e9ecef"' in svg
  for fill in ("rgba(40,167,69,0.25)", "rgba(255,193,7,0.2)", "rgba(255,102,0,0.22)", "rgba(220,53,69,0.25)"):
    assert fill in svg
  assert svg.count("<polyline") == 1
  assert ">buy zone<" in svg and ">alarming<" in svg
  assert "font-family=\"DejaVu Sans\"" in svg


def test_svg_degrades_for_short_series():
  assert "<polyline" not in build_svg(Series(), ChartOptions(), "sans-serif")
  one = build_svg(daily_series(1), ChartOptions(), "sans-serif")
  assert "<circle" in one and "<polyline" not in one


def test_svg_escapes_header_text():
  svg = build_svg(Series(), ChartOptions(header_lines=("A & B <test>",)), "sans-serif")

  assert "A &amp; B &lt;test&gt;" in svg


def test_svg_backend_passes_document_to_rasterizer():
  seen = []

  def rasterizer(svg, width, height, font):
    seen.append((svg, width, height, font))
    return FAKE_PNG

  backend = SvgBackend(font_probe=lambda c: c.family == "Liberation Sans", rasterizer=rasterizer)
  options = ChartOptions(font_candidates=(FontCandidate("Nope"), FontCandidate("Liberation Sans")))

  assert backend.render(daily_series(5), options) == FAKE_PNG
  svg, width, height, font = seen[0]
  assert (width, height) == (1200, 675)
  assert font == FontCandidate("Liberation Sans")
  assert 'font-family="Liberation Sans"' in svg


@pytest.mark.skipif(resolve_font_family(DEFAULT_FONT_CANDIDATES).path is None, reason="no bundled or system TTF")
def test_svg_rasterizer_draws_axis_labels():
  options = ChartOptions()
  font = resolve_font_family(options.font_candidates)

  png = rasterize_svg(build_svg(daily_series(40), options, font.family), options.width, options.height, font)

  image = skia.Image.MakeFromEncoded(skia.Data.MakeWithCopy(png))
  assert (image.width(), image.height()) == (1200, 675)
  pixels = np.asarray(image.toarray())
  label_strip = pixels[options.padding_top:options.height - options.padding_bottom, :options.padding_left, :3]
  dark = (label_strip.max(axis=2) < 100).sum()
  assert dark > 20


def test_browser_figure_shares_zones_and_axes():
  fig = build_figure(daily_series(60), ChartOptions(y_max=4.5, header_lines=("MVRV", "5y")), "sans-serif")

  shapes = fig.layout.shapes
  assert [(s.y0, s.y1) for s in shapes] == [(0.0, 1.0), (1.0, 3.0), (3.0, 3.5), (3.5, 4.5)]
  assert list(fig.layout.yaxis.range) == [0.0, 4.5]
  assert list(fig.layout.xaxis.range) == [0, 59]
  assert fig.layout.paper_bgcolor == "#e9ecef"
  texts = [a.text for a in fig.layout.annotations]
  assert "MVRV<br>5y" in texts
  assert "buy zone" in texts


def test_browser_backend_uses_injected_exporter():
  calls = []

  def exporter(fig, width, height):
    calls.append((width, height))
    return FAKE_PNG

  backend = BrowserBackend(font_probe=lambda c: False, exporter=exporter)

  assert backend.render(Series(), ChartOptions()) == FAKE_PNG
  assert calls == [(1200, 675)]


def test_export_png_removes_temp_file_on_failure():
  paths = []

  class BrokenFigure:
    def write_image(self, path, **kw):
      paths.append(path)
      raise RuntimeError("browser not found")

  with pytest.raises(RuntimeError):
    export_png(BrokenFigure(), 100, 100)
  assert paths and not os.path.exists(paths[0])


def test_export_png_returns_written_bytes_and_cleans_up():
  paths = []

  class Figure:
    def write_image(self, path, **kw):
      paths.append(path)
      with open(path, "wb") as f:
        f.write(FAKE_PNG)

  assert export_png(Figure(), 100, 100) == FAKE_PNG
  assert not os.path.exists(paths[0])


def test_installed_exporter_runs_chromium_per_call():
  assert int(version("kaleido").split(".")[0]) >= 1
  assert tuple(int(p) for p in version("plotly").split(".")[:2]) >= (6, 1)


class FakePostResponse:
  def __init__(self, status_code, content=b"", text=""):
    self.status_code = status_code
    self.content = content
    self.text = text


class FakePostSession:
  def __init__(self, response):
    self.response = response
    self.calls = []

  def post(self, url, json=None, timeout=None):
    self.calls.append((url, json, timeout))
    return self.response


def test_quickchart_posts_config_and_returns_png():
  session = FakePostSession(FakePostResponse(200, FAKE_PNG))
  backend = QuickChartBackend(url="https://charts.example.test/chart", timeout=7, session=session)

  assert backend.render(daily_series(30), ChartOptions()) == FAKE_PNG
  url, payload, timeout = session.calls[0]
  assert url == "https://charts.example.test/chart"
  assert timeout == 7
  assert (payload["width"], payload["height"], payload["format"]) == (1200, 675, "png")
  assert payload["backgroundColor"] == "#e9ecef"
  assert payload["chart"]["options"]["scales"]["y"]["max"] == 4.0


def test_quickchart_non_2xx_is_backend_error():
  backend = QuickChartBackend(session=FakePostSession(FakePostResponse(502, text="bad gateway")))

  with pytest.raises(RenderBackendError):
    backend.render(daily_series(3), ChartOptions())


def test_quickchart_zone_datasets_stack_in_threshold_order():
  config = build_chart_config(daily_series(3), ChartOptions())

  datasets = config["data"]["datasets"]
  assert datasets[0]["label"] == "MVRV"
  assert [d["data"][0] for d in datasets[1:]] == [1.0, 3.0, 3.5, 4.0]
  assert [d["fill"] for d in datasets[1:]] == ["origin", "-1", "-1", "-1"]


def test_quickchart_labels_each_zone_band():
  config = build_chart_config(daily_series(3), ChartOptions(y_max=4.5))

  annotations = config["options"]["plugins"]["annotation"]["annotations"]
  assert [(a["content"], a["yMin"], a["yMax"]) for a in annotations.values()] == [
    ("buy zone", 0.0, 1.0), ("neutral", 1.0, 3.0), ("high", 3.0, 3.5), ("alarming", 3.5, 4.5),
  ]
  assert all(a["type"] == "label" for a in annotations.values())
