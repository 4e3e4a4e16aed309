from __future__ import annotations

import abc
import dataclasses

from mvrvbot.chart_layout import ChartOptions
from mvrvbot.cm_data import Series

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@dataclasses.dataclass(frozen=True)
class RenderResult:
  data: bytes
  backend: str


class ChartBackend(abc.ABC):
  """One way of turning a Series into PNG bytes. May raise anything; the chain recovers."""

  name: str = "backend"

  @abc.abstractmethod
  def render(self, series: Series, options: ChartOptions) -> bytes:
    raise NotImplementedError

  def __repr__(self) -> str:
    return f"<{type(self).__name__} {self.name}>"


def is_png(data: bytes) -> bool:
  return bool(data) and data[:8] == PNG_SIGNATURE
