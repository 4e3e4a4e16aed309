from datetime import date

import pytest
import requests

from mvrvbot.coinmetrics import CoinmetricsWeb
from mvrvbot.errors import UpstreamError


class FakeResponse:
  def __init__(self, status_code=200, payload=None, text=""):
    self.status_code = status_code
    self._payload = payload
    self.text = text

  def json(self):
    if isinstance(self._payload, Exception):
      raise self._payload
    return self._payload


class FakeSession:
  def __init__(self, responses):
    self.responses = list(responses)
    self.headers = {}
    self.calls = []

  def get(self, url, params=None, timeout=None):
    self.calls.append((url, params, timeout))
    response = self.responses.pop(0)
    if isinstance(response, Exception):
      raise response
    return response


def test_asset_metrics_request_uses_iso_dates_and_page_size():
  session = FakeSession([FakeResponse(payload={"data": []})])
  web = CoinmetricsWeb("https://api.example.test/v4/", timeout=12, session=session)

  web.get_asset_metrics("btc", "CapMVRVCur", date(2024, 1, 2), date(2024, 2, 3), 180)

  url, params, timeout = session.calls[0]
  assert url == "https://api.example.test/v4/timeseries/asset-metrics"
  assert params == {
    "assets": "btc",
    "metrics": "CapMVRVCur",
    "start_time": "2024-01-02",
    "end_time": "2024-02-03",
    "page_size": 180,
  }
  assert timeout == 12
  assert session.headers["Accept"] == "application/json"


def test_api_key_is_sent_when_configured():
  session = FakeSession([FakeResponse(payload={"data": []})])
  web = CoinmetricsWeb("https://api.example.test/v4", api_key="secret", session=session)

  web.get_asset_metrics("btc", "CapMVRVCur", date(2024, 1, 1), date(2024, 1, 2), 10)

  assert session.calls[0][1]["api_key"] == "secret"


def test_continuation_url_is_requested_verbatim():
  session = FakeSession([FakeResponse(payload={"data": []})])
  web = CoinmetricsWeb("https://api.example.test/v4", session=session)
  next_url = "https://api.example.test/v4/timeseries/asset-metrics?next_page_token=abc%3D%3D"

  web.get_json(next_url)

  assert session.calls[0][0] == next_url
  assert session.calls[0][1] is None


def test_non_success_status_raises_upstream_error():
  session = FakeSession([FakeResponse(status_code=503, payload={}, text="busy")])
  web = CoinmetricsWeb("https://api.example.test/v4", session=session)

  with pytest.raises(UpstreamError) as exc_info:
    web.get_json("https://api.example.test/v4/x")

  assert exc_info.value.status_code == 503


def test_timeout_is_a_transport_failure():
  session = FakeSession([requests.Timeout("read timed out")])
  web = CoinmetricsWeb("https://api.example.test/v4", timeout=0.5, session=session)

  with pytest.raises(UpstreamError, match="timed out"):
    web.get_json("https://api.example.test/v4/x")


def test_connection_error_is_a_transport_failure():
  session = FakeSession([requests.ConnectionError("refused")])
  web = CoinmetricsWeb("https://api.example.test/v4", session=session)

  with pytest.raises(UpstreamError):
    web.get_json("https://api.example.test/v4/x")


def test_invalid_json_raises_upstream_error():
  session = FakeSession([FakeResponse(payload=ValueError("bad json"))])
  web = CoinmetricsWeb("https://api.example.test/v4", session=session)

  with pytest.raises(UpstreamError, match="invalid JSON"):
    web.get_json("https://api.example.test/v4/x")


def test_error_object_in_body_raises_upstream_error():
  session = FakeSession([FakeResponse(payload={"error": {"type": "bad_parameter"}})])
  web = CoinmetricsWeb("https://api.example.test/v4", session=session)

  with pytest.raises(UpstreamError, match="bad_parameter"):
    web.get_json("https://api.example.test/v4/x")
