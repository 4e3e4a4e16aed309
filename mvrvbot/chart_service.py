from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from mvrvbot.backends.base import ChartBackend, RenderResult, is_png
from mvrvbot.backends.browser import BrowserBackend
from mvrvbot.backends.quickchart import QuickChartBackend
from mvrvbot.backends.svg import SvgBackend
from mvrvbot.chart_layout import ChartOptions
from mvrvbot.cm_data import Series
from mvrvbot.config import RENDER_BACKENDS
from mvrvbot.errors import AllBackendsExhaustedError, RenderBackendError
from mvrvbot.render import SkiaRenderer

logger = logging.getLogger(__name__)

# Tried in this order when RENDER_BACKENDS is empty
DEFAULT_ORDER: Tuple[str, ...] = ("skia", "svg", "browser", "quickchart")

BACKEND_FACTORIES: Dict[str, Callable[[], ChartBackend]] = {
  "skia": SkiaRenderer,
  "svg": SvgBackend,
  "browser": BrowserBackend,
  "quickchart": QuickChartBackend,
}


def build_backends(names: Optional[Sequence[str]] = None) -> List[ChartBackend]:
  names = list(names) if names else list(RENDER_BACKENDS or DEFAULT_ORDER)
  out: List[ChartBackend] = []
  for name in names:
    factory = BACKEND_FACTORIES.get(name)
    if factory is None:
      raise ValueError(f"Unknown render backend {name!r}; expected one of {sorted(BACKEND_FACTORIES)}")
    out.append(factory())
  return out


class RenderBackendChain:
  def __init__(self, backends: Optional[Sequence[ChartBackend]] = None, options: Optional[ChartOptions] = None):
    self.backends: List[ChartBackend] = list(backends) if backends is not None else build_backends()
    self.options = options or ChartOptions()

  def _attempt(self, backend: ChartBackend, series: Series, options: ChartOptions) -> bytes:
    try:
      data = backend.render(series, options)
    except RenderBackendError:
      raise
    except Exception as e:
      raise RenderBackendError(backend.name, f"{type(e).__name__}: {e}") from e
    if not is_png(data):
      raise RenderBackendError(backend.name, f"output is not a PNG ({len(data or b'')} bytes)")
    return data

  def render(self, series: Series, options: Optional[ChartOptions] = None) -> RenderResult:
    options = options or self.options
    failures: List[Tuple[str, BaseException]] = []
    for backend in self.backends:
      t0 = time.time()
      try:
        data = self._attempt(backend, series, options)
      except RenderBackendError as e:
        logger.warning("Render backend %s failed after %.1fms: %s", backend.name, 1000 * (time.time() - t0), e)
        failures.append((backend.name, e))
        continue
      logger.info("Chart rendered by %s in %.1fms (%.1f KB, points=%d)",
                  backend.name, 1000 * (time.time() - t0), len(data) / 1024.0, len(series))
      return RenderResult(data=data, backend=backend.name)
    raise AllBackendsExhaustedError(failures)

  def render_png(self, series: Series, options: Optional[ChartOptions] = None) -> bytes:
    return self.render(series, options).data
