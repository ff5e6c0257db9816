import asyncio
import logging

import redis.asyncio as redis
from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from whclient.api_client import ApiClient
from whclient.credential_store import create_store

from .handlers import router
from .service import BotService


async def tick_loop(bot: Bot, svc: BotService, interval: float):
    """Delivers notices queued by session-expired listeners."""
    while True:
        try:
            items = await svc.tick_notifications()
            for it in items:
                chat_id = it.get("chat_id")
                msg = it.get("message")
                if chat_id and msg:
                    await bot.send_message(chat_id, msg)
        except Exception as e:
            logging.warning(f"tick error: {e}")

        await asyncio.sleep(interval)


def build_service(cfg) -> BotService:
    shared_redis = None
    if cfg.CREDENTIAL_BACKEND.lower() == "redis":
        shared_redis = redis.Redis(host=cfg.REDIS_HOST, port=cfg.REDIS_PORT, decode_responses=True)

    def client_factory(chat_id: int) -> ApiClient:
        store = create_store(cfg, f"chat:{chat_id}", redis_client=shared_redis)
        return ApiClient(cfg.API_BASE_URL, store, timeout_sec=cfg.HTTP_TIMEOUT_SEC)

    return BotService(client_factory)


async def main():
    from .config import settings

    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    bot = Bot(token=settings.BOT_TOKEN)
    dp = Dispatcher(storage=MemoryStorage())

    svc = build_service(settings)

    dp["svc"] = svc

    dp.include_router(router)

    asyncio.create_task(tick_loop(bot, svc, settings.TICK_INTERVAL_SEC))

    await dp.start_polling(bot, svc=svc)


if __name__ == "__main__":
    asyncio.run(main())
