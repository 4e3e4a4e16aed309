import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers held above the chosen level
QUIET_LOGGERS = {
  "choreographer": logging.WARNING,  # browser start/stop of the export backend
  "kaleido": logging.WARNING,
}


def setup_logging(level=logging.INFO, stream=None):
  """Send every record to a single stream handler, stdout unless told otherwise.

  `level` may be a number or a level name such as "debug".
  """
  if isinstance(level, str):
    level = logging.getLevelName(level.upper())
    if not isinstance(level, int):
      raise ValueError(f"Unknown log level: {level}")

  handler = logging.StreamHandler(stream or sys.stdout)
  handler.setFormatter(logging.Formatter(LOG_FORMAT))
  root = logging.getLogger()
  root.handlers.clear()
  root.addHandler(handler)
  root.setLevel(level)

  for name, floor in QUIET_LOGGERS.items():
    logging.getLogger(name).setLevel(max(level, floor))
  # one line per pooled connection at DEBUG
  logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
