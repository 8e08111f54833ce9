# Redis缓存层实现
import redis
import json
import logging
from typing import Optional, Any, Dict, List

from ..config import REDIS_HOST, REDIS_PORT, REDIS_DB, REDIS_PASSWORD, STATS_CACHE_TTL

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """缓存相关异常"""
    pass


class StatisticsCache:
    """
    统计快照缓存

    缓存只用于报表接口，读写失败时记录日志并视为未命中，不影响计算结果。
    """

    def __init__(self, redis_client: redis.Redis, ttl: int = STATS_CACHE_TTL):
        self.redis = redis_client
        self.ttl = ttl
        self.prefix = "fitness_stats:"

    def _make_key(self, key_components: List[Any]) -> str:
        """生成缓存键"""
        return self.prefix + ":".join(str(c) for c in key_components)

    def get_snapshot(self, scope_type: str, scope_id: Optional[int], year: int) -> Optional[Dict[str, Any]]:
        """获取统计快照缓存"""
        key = self._make_key([year, scope_type, scope_id if scope_id is not None else "all"])
        try:
            cached_data = self.redis.get(key)
            if cached_data:
                logger.debug(f"Cache hit: {key}")
                return json.loads(cached_data)
            logger.debug(f"Cache miss: {key}")
            return None
        except (redis.RedisError, ValueError) as e:
            logger.error(f"读取统计缓存失败 {key}: {str(e)}")
            return None

    def set_snapshot(self, scope_type: str, scope_id: Optional[int], year: int,
                     snapshot: Dict[str, Any]) -> bool:
        """写入统计快照缓存"""
        key = self._make_key([year, scope_type, scope_id if scope_id is not None else "all"])
        try:
            return bool(self.redis.setex(key, self.ttl, json.dumps(snapshot, ensure_ascii=False)))
        except (redis.RedisError, TypeError) as e:
            logger.error(f"写入统计缓存失败 {key}: {str(e)}")
            return False

    def invalidate_year(self, year: int) -> int:
        """清除某年度的全部统计缓存（体测数据或排名变化后调用）"""
        try:
            keys = list(self.redis.scan_iter(match=f"{self.prefix}{year}:*"))
            if not keys:
                return 0
            deleted = self.redis.delete(*keys)
            logger.info(f"已清除{year}年度统计缓存 {deleted} 条")
            return deleted
        except redis.RedisError as e:
            logger.error(f"清除统计缓存失败 {year}: {str(e)}")
            return 0


def create_redis_client() -> redis.Redis:
    """创建Redis客户端"""
    redis_config = {
        "host": REDIS_HOST,
        "port": REDIS_PORT,
        "db": REDIS_DB,
        "password": REDIS_PASSWORD,
        "decode_responses": True,
        "socket_timeout": 5,
        "socket_connect_timeout": 5,
        "retry_on_timeout": True
    }

    # 移除空密码
    if redis_config["password"] is None:
        del redis_config["password"]

    try:
        client = redis.Redis(**redis_config)
        client.ping()
        logger.info("Redis client connected successfully")
        return client
    except redis.RedisError as e:
        logger.error(f"Failed to connect to Redis: {str(e)}")
        raise CacheError(f"Redis connection failed: {str(e)}")


def create_cache_manager() -> Optional[StatisticsCache]:
    """创建缓存管理器，Redis不可用时返回None"""
    try:
        return StatisticsCache(create_redis_client())
    except CacheError as e:
        logger.warning(f"Failed to create cache manager: {str(e)}")
        return None
