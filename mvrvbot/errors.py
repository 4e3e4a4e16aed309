from __future__ import annotations

from typing import List, Optional, Tuple


class MvrvBotError(Exception):
  pass


class UpstreamError(MvrvBotError):
  """Metrics API answered with a non-success status or the transport failed."""

  def __init__(self, message: str, status_code: Optional[int] = None, url: str = ""):
    super().__init__(message)
    self.status_code = status_code
    self.url = url


class EmptyResultError(MvrvBotError):
  pass


class PaginationLoopError(MvrvBotError):
  pass


class NoDataError(MvrvBotError):
  pass


class RenderBackendError(MvrvBotError):
  def __init__(self, backend: str, message: str):
    super().__init__(f"{backend}: {message}")
    self.backend = backend


class AllBackendsExhaustedError(MvrvBotError):
  def __init__(self, failures: List[Tuple[str, BaseException]]):
    names = ", ".join(f"{name} ({type(exc).__name__}: {exc})" for name, exc in failures) or "no backends configured"
    super().__init__(f"All render backends failed: {names}")
    self.failures = failures
