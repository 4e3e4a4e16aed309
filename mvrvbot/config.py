import os
from pathlib import Path


def _csv(val: str):
  return [x.strip().lower() for x in (val or "").split(",") if x.strip()]


BASE_DIR = Path(os.getenv("MVRVBOT_BASE_DIR", ".")).resolve()
FONT_DIR = Path(os.getenv("MVRVBOT_FONT_DIR", BASE_DIR / "assets" / "fonts")).resolve()

# Coin Metrics
COINMETRICS_URL = os.getenv("COINMETRICS_URL", "https://community-api.coinmetrics.io/v4")
COINMETRICS_API_KEY = os.getenv("COINMETRICS_API_KEY", "")  # community API needs none
COINMETRICS_ASSET = os.getenv("COINMETRICS_ASSET", "btc")
COINMETRICS_METRIC = os.getenv("COINMETRICS_METRIC", "CapMVRVCur")
COINMETRICS_HTTP_TIMEOUT = float(os.getenv("COINMETRICS_HTTP_TIMEOUT", "20"))
COINMETRICS_USER_AGENT = os.getenv("COINMETRICS_USER_AGENT", "mvrvbot/0.1 (+https://community-api.coinmetrics.io)")

# Acquisition
HISTORY_LOOKBACK_DAYS = int(os.getenv("HISTORY_LOOKBACK_DAYS", "1800"))
HISTORY_PAGE_SIZE = int(os.getenv("HISTORY_PAGE_SIZE", "180"))
LATEST_WINDOW_DAYS = int(os.getenv("LATEST_WINDOW_DAYS", "7"))
LATEST_PAGE_SIZE = int(os.getenv("LATEST_PAGE_SIZE", "1000"))
MAX_PAGES = int(os.getenv("MAX_PAGES", "10000"))

# Chart defaults
IMG_WIDTH = int(os.getenv("IMG_WIDTH", "1200"))
IMG_HEIGHT = int(os.getenv("IMG_HEIGHT", "675"))
CHART_Y_MAX = float(os.getenv("CHART_Y_MAX", "4.0"))
CHART_HEADER = os.getenv("CHART_HEADER", "Bitcoin MVRV - last 5 years")

# Backend priority, first wins
RENDER_BACKENDS = _csv(os.getenv("RENDER_BACKENDS", "skia,svg,browser,quickchart"))

QUICKCHART_URL = os.getenv("QUICKCHART_URL", "https://quickchart.io/chart")
QUICKCHART_TIMEOUT = float(os.getenv("QUICKCHART_TIMEOUT", "20"))

# Publishing (optional)
TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN", "")
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
