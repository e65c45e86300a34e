from aiogram.fsm.storage.base import BaseStorage
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.fsm.storage.redis import RedisStorage
from redis.asyncio import Redis
from npsbot.config.settings import settings

def make_fsm_storage() -> BaseStorage:
    # Survey sessions live in FSM storage; Redis keeps them across restarts
    if not settings.REDIS_URL:
        return MemoryStorage()
    redis = Redis.from_url(settings.REDIS_URL)
    return RedisStorage(redis=redis)
