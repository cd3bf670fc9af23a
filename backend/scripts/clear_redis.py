import asyncio
import sys
import os

# Add backend to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config.constants import PRESENCE_KEY_PREFIX
from app.config.redis import get_redis, close_redis


async def clear_presence():
    print("🧹 Clearing presence keys...")
    redis = await get_redis()
    removed = 0
    async for key in redis.scan_iter(match=f"{PRESENCE_KEY_PREFIX}*"):
        removed += await redis.delete(key)
    print(f"✅ Removed {removed} presence key(s).")
    await close_redis()

if __name__ == "__main__":
    asyncio.run(clear_presence())
