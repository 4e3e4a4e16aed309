import io
import logging

import pytest

from mvrvbot.logging_conf import setup_logging


@pytest.fixture
def restore_root():
  root = logging.getLogger()
  saved = (root.level, list(root.handlers))
  yield
  root.setLevel(saved[0])
  root.handlers[:] = saved[1]


def test_records_go_to_one_stream_handler(restore_root):
  out = io.StringIO()

  setup_logging("warning", stream=out)
  logging.getLogger("mvrvbot.test").info("hidden")
  logging.getLogger("mvrvbot.test").warning("shown")

  assert len(logging.getLogger().handlers) == 1
  assert logging.getLogger().level == logging.WARNING
  text = out.getvalue()
  assert "hidden" not in text
  assert " - mvrvbot.test - WARNING - shown" in text


def test_debug_keeps_noisy_libraries_quieter(restore_root):
  setup_logging(logging.DEBUG, stream=io.StringIO())

  assert logging.getLogger("urllib3").level == logging.INFO
  assert logging.getLogger("kaleido").level == logging.WARNING


def test_unknown_level_name_is_rejected(restore_root):
  with pytest.raises(ValueError):
    setup_logging("chatty", stream=io.StringIO())
