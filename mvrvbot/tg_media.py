from __future__ import annotations

from typing import Optional

from telegram import Bot
from telegram.error import TelegramError

from mvrvbot.chart_layout import ZONE_THRESHOLDS, ZoneThresholds
from mvrvbot.cm_data import DataPoint


def format_caption(point: DataPoint, thresholds: ZoneThresholds = ZONE_THRESHOLDS) -> str:
  zone = thresholds.zone_for(point.value)
  return f"Bitcoin MVRV: {point.value:.2f} ({zone.label}) - {point.timestamp:%Y-%m-%d}"


async def send_chart(
    bot: Bot,
    chat_id: int | str,
    image_bytes: bytes,
    caption: Optional[str] = None,
) -> tuple[int, Optional[str]]:
  """Send the chart as a photo. Returns (message_id, largest photo file_id)."""
  if not image_bytes:
    raise RuntimeError("No image bytes to send")
  msg = await bot.send_photo(chat_id=chat_id, photo=image_bytes, caption=caption)
  new_file_id: Optional[str] = None
  if msg and msg.photo:
    sizes = sorted(msg.photo, key=lambda p: p.file_size or 0)
    if sizes:
      new_file_id = sizes[-1].file_id
  return msg.message_id, new_file_id


async def publish_chart(token: str, chat_id: int | str, image_bytes: bytes,
                        caption: Optional[str] = None) -> tuple[int, Optional[str]]:
  if not token:
    raise RuntimeError("TELEGRAM_TOKEN is not set")
  try:
    async with Bot(token) as bot:
      return await send_chart(bot, chat_id, image_bytes, caption)
  except TelegramError as e:
    raise RuntimeError(f"Telegram send failed: {e}") from e
