"""
Visual contract shared by every chart backend.

Zones are half-open and lower-inclusive: a value v belongs to the band
[lower, upper) that contains it, so 1.0 is neutral, 3.0 is high and 3.5 is
alarming. The x axis is point-index uniform: point i of n sits at
left + i / (n - 1) * width regardless of timestamp spacing.
"""
from __future__ import annotations

import dataclasses
import math
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from mvrvbot.config import CHART_HEADER, CHART_Y_MAX, FONT_DIR, IMG_HEIGHT, IMG_WIDTH

BACKGROUND = (233, 236, 239)  # #e9ecef
TEXT = (0, 0, 0)
GRID_RGBA = (0, 0, 0, 0.1)
LINE_RGB = (0, 150, 255)
LINE_WIDTH = 3.0
GENERIC_FAMILY = "sans-serif"


@dataclasses.dataclass(frozen=True)
class Zone:
  name: str
  label: str
  lower: float  # inclusive
  upper: float  # exclusive
  rgba: Tuple[int, int, int, float]

  def contains(self, value: float) -> bool:
    return self.lower <= value < self.upper


@dataclasses.dataclass(frozen=True)
class ZoneThresholds:
  cuts: Tuple[float, float, float] = (1.0, 3.0, 3.5)

  @property
  def zones(self) -> Tuple[Zone, ...]:
    c1, c2, c3 = self.cuts
    return (
      Zone("buy", "buy zone", -math.inf, c1, (40, 167, 69, 0.25)),
      Zone("neutral", "neutral", c1, c2, (255, 193, 7, 0.20)),
      Zone("high", "high", c2, c3, (255, 102, 0, 0.22)),
      Zone("alarming", "alarming", c3, math.inf, (220, 53, 69, 0.25)),
    )

  def zone_for(self, value: float) -> Zone:
    for z in self.zones:
      if z.contains(value):
        return z
    # NaN compares false everywhere
    raise ValueError(f"Value {value!r} has no zone")


ZONE_THRESHOLDS = ZoneThresholds()


@dataclasses.dataclass(frozen=True)
class FontCandidate:
  family: str
  path: Optional[Path] = None


DEFAULT_FONT_CANDIDATES: Tuple[FontCandidate, ...] = (
  FontCandidate("DejaVu Sans", FONT_DIR / "DejaVuSans.ttf"),
  FontCandidate("DejaVu Sans", Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf")),
  FontCandidate("Liberation Sans", Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf")),
)


def font_file_exists(candidate: FontCandidate) -> bool:
  return candidate.path is not None and candidate.path.is_file()


def resolve_font_family(candidates: Sequence[FontCandidate],
                        is_available: Callable[[FontCandidate], bool] = font_file_exists) -> FontCandidate:
  """First candidate the probe accepts, else the generic sans-serif family. Probe errors count as unavailable."""
  for c in candidates:
    try:
      if is_available(c):
        return c
    except OSError:
      continue
  return FontCandidate(GENERIC_FAMILY)


@dataclasses.dataclass(frozen=True)
class ChartOptions:
  width: int = IMG_WIDTH
  height: int = IMG_HEIGHT
  header_lines: Tuple[str, ...] = (CHART_HEADER,)
  y_min: float = 0.0
  y_max: float = CHART_Y_MAX
  thresholds: ZoneThresholds = ZONE_THRESHOLDS
  font_candidates: Tuple[FontCandidate, ...] = DEFAULT_FONT_CANDIDATES
  padding_left: int = 80
  padding_right: int = 40
  padding_top: int = 80
  padding_bottom: int = 60
  x_label_min_spacing: int = 70

  def __post_init__(self):
    if len(self.header_lines) > 2:
      raise ValueError("At most two header lines are supported")
    if self.y_max <= self.y_min:
      raise ValueError(f"Empty y domain [{self.y_min}, {self.y_max}]")
    if self.width <= self.padding_left + self.padding_right or self.height <= self.padding_top + self.padding_bottom:
      raise ValueError(f"Image {self.width}x{self.height} too small for plot margins")


@dataclasses.dataclass(frozen=True)
class PlotGeometry:
  left: float
  top: float
  right: float
  bottom: float
  y_min: float
  y_max: float

  @classmethod
  def from_options(cls, options: ChartOptions) -> "PlotGeometry":
    return cls(
      left=float(options.padding_left),
      top=float(options.padding_top),
      right=float(options.width - options.padding_right),
      bottom=float(options.height - options.padding_bottom),
      y_min=options.y_min,
      y_max=options.y_max,
    )

  @property
  def width(self) -> float:
    return self.right - self.left

  @property
  def height(self) -> float:
    return self.bottom - self.top

  def clamp(self, values: npt.ArrayLike) -> npt.NDArray[np.float64]:
    return np.clip(np.asarray(values, dtype=np.float64), self.y_min, self.y_max)

  def value_to_y(self, val: float) -> float:
    v = min(max(float(val), self.y_min), self.y_max)
    norm = (v - self.y_min) / (self.y_max - self.y_min)
    return float(self.bottom - norm * self.height)

  def values_to_y(self, values: npt.ArrayLike) -> npt.NDArray[np.float64]:
    norm = (self.clamp(values) - self.y_min) / (self.y_max - self.y_min)
    return self.bottom - norm * self.height

  def index_to_x(self, idx: int, n: int) -> float:
    if n < 2:
      return self.left + self.width / 2.0
    return float(self.left + (idx / (n - 1)) * self.width)

  def indices_to_x(self, n: int) -> npt.NDArray[np.float64]:
    if n <= 0:
      return np.empty((0,), dtype=np.float64)
    if n == 1:
      return np.array([self.left + self.width / 2.0])
    return np.linspace(self.left, self.right, num=n, dtype=np.float64)

  def zone_bands(self, thresholds: ZoneThresholds) -> List[Tuple[Zone, float, float]]:
    """(zone, y_top, y_bottom) in pixels for every zone visible in the y domain, bottom band first."""
    out: List[Tuple[Zone, float, float]] = []
    for z in thresholds.zones:
      lo = max(z.lower, self.y_min)
      hi = min(z.upper, self.y_max)
      if hi <= lo:
        continue
      out.append((z, self.value_to_y(hi), self.value_to_y(lo)))
    return out


def y_ticks(y_min: float, y_max: float) -> List[int]:
  return list(range(int(math.ceil(y_min)), int(math.floor(y_max)) + 1))


def x_label_indices(timestamps: Sequence[datetime], plot_width: float, min_spacing: float = 70.0,
                    fallback_count: int = 6) -> List[Tuple[int, str]]:
  """
  Indices and texts of x-axis date labels.

  One candidate per calendar month (day-of-month == 1), thinned to every k-th
  so labels stay at least min_spacing pixels apart. Series without a month
  boundary get fallback_count evenly spaced day/month labels.
  """
  n = len(timestamps)
  if n == 0:
    return []
  max_labels = max(1, int(plot_width // max(1.0, min_spacing)))
  month_starts = [i for i, ts in enumerate(timestamps) if ts.day == 1]
  if month_starts:
    k = max(1, math.ceil(len(month_starts) / max_labels))
    return [(i, timestamps[i].strftime("%b %y")) for i in month_starts[::k]]

  step = max(1, math.ceil(n / min(fallback_count, max_labels)))
  return [(i, timestamps[i].strftime("%d/%m")) for i in range(0, n, step)]


def rgba_css(rgba: Tuple[int, int, int, float]) -> str:
  r, g, b, a = rgba
  return f"rgba({r},{g},{b},{a:g})"


def rgb_hex(rgb: Tuple[int, int, int]) -> str:
  return "#{:02x}{:02x}{:02x}".format(*rgb)
