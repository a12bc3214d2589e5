import os
import logging
from dotenv import load_dotenv
from telegram import Bot
from telegram.error import TelegramError

load_dotenv()


def _load_token():
    token = (
        os.getenv("TELEGRAM_BOT_TOKEN")
        or os.getenv("BOT_TOKEN")
        or os.getenv("TOKEN")
    )
    return token.strip().strip("'\"") if token else None


async def send_telegram_message(chat_id, text: str) -> bool:
    """Send ``text`` to a student's Telegram chat; returns whether it was delivered."""
    token = _load_token()
    if not token:
        logging.warning("TELEGRAM_BOT_TOKEN не задан; сообщение для chat_id=%s не отправлено", chat_id)
        return False
    try:
        bot = Bot(token=token)
        logging.info("Отправка сообщения в Telegram: chat_id=%s", chat_id)
        await bot.send_message(chat_id=chat_id, text=text)
    except TelegramError:
        logging.exception("Ошибка при отправке Telegram-сообщения для chat_id=%s", chat_id)
        return False
    return True
