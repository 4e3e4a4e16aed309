from __future__ import annotations

import argparse
import asyncio
import logging
import time
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(), override=False)

from mvrvbot.chart_layout import ChartOptions
from mvrvbot.chart_service import RenderBackendChain, build_backends
from mvrvbot.cm_data import LatestValueResolver, SeriesFetcher
from mvrvbot.coinmetrics import CoinmetricsWeb
from mvrvbot.config import (
  CHART_HEADER,
  CHART_Y_MAX,
  COINMETRICS_API_KEY,
  COINMETRICS_URL,
  HISTORY_LOOKBACK_DAYS,
  IMG_HEIGHT,
  IMG_WIDTH,
  LOG_LEVEL,
  TELEGRAM_CHAT_ID,
  TELEGRAM_TOKEN,
)
from mvrvbot.errors import MvrvBotError
from mvrvbot.logging_conf import setup_logging
from mvrvbot.tg_media import format_caption, publish_chart

logger = logging.getLogger(__name__)


def _parse_args(argv=None) -> argparse.Namespace:
  p = argparse.ArgumentParser(description="Fetch Bitcoin MVRV from Coin Metrics and render the zone chart to PNG")
  p.add_argument("--out", type=Path, default=Path("mvrv.png"))
  p.add_argument("--days", type=int, default=HISTORY_LOOKBACK_DAYS, help="History lookback in days")
  p.add_argument("--width", type=int, default=IMG_WIDTH, help="Image width")
  p.add_argument("--height", type=int, default=IMG_HEIGHT, help="Image height")
  p.add_argument("--y-max", type=float, default=CHART_Y_MAX, choices=[4.0, 4.5], help="Top of the y axis")
  p.add_argument("--backends", default="", help="Comma-separated backend priority, e.g. skia,svg,browser,quickchart")
  p.add_argument("--header", action="append", default=None, help="Header line (repeat for a second line)")
  p.add_argument("--latest", action="store_true", help="Also resolve and print the latest MVRV value")
  p.add_argument("--chat-id", default=TELEGRAM_CHAT_ID, help="Telegram chat to publish the chart to")
  p.add_argument("--debug", action="store_true", help="Debug logging")
  return p.parse_args(argv)


def main(argv=None) -> int:
  args = _parse_args(argv)
  setup_logging(logging.DEBUG if args.debug else LOG_LEVEL)

  t0 = time.time()
  web = CoinmetricsWeb(COINMETRICS_URL, api_key=COINMETRICS_API_KEY)
  fetcher = SeriesFetcher(web)
  names = [x.strip().lower() for x in args.backends.split(",") if x.strip()]
  header = tuple(args.header) if args.header else (CHART_HEADER,)

  try:
    options = ChartOptions(width=args.width, height=args.height, y_max=args.y_max, header_lines=header)
    chain = RenderBackendChain(build_backends(names or None), options)

    latest = None
    if args.latest or args.chat_id:
      latest = LatestValueResolver(web, fetcher, history_days=args.days).get_latest_point()
      print(format_caption(latest))
    t_latest = time.time()

    series = fetcher.fetch_history(args.days)
    t_fetch = time.time()

    result = chain.render(series)
    t_render = time.time()
  except (MvrvBotError, ValueError) as e:
    logger.error("%s", e)
    return 1

  args.out.write_bytes(result.data)

  if args.chat_id:
    caption = format_caption(latest) if latest is not None else None
    try:
      asyncio.run(publish_chart(TELEGRAM_TOKEN, args.chat_id, result.data, caption))
    except RuntimeError as e:
      logger.error("%s", e)
      return 1

  print(
    "latest={:.1f}ms fetch={:.1f}ms render={:.1f}ms total={:.1f}ms backend={} points={} size={:.1f}KB".format(
      1000 * (t_latest - t0),
      1000 * (t_fetch - t_latest),
      1000 * (t_render - t_fetch),
      1000 * (time.time() - t0),
      result.backend,
      len(series),
      len(result.data) / 1024.0,
    )
  )
  print(f"Wrote {args.out}")
  return 0


if __name__ == "__main__":
  raise SystemExit(main())
