# 运行配置
import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# 数据库连接配置
DATABASE_HOST = os.getenv("DATABASE_HOST", "localhost")
DATABASE_PORT = os.getenv("DATABASE_PORT", "3306")
DATABASE_USER = os.getenv("DATABASE_USER", "root")
DATABASE_PASSWORD = os.getenv("DATABASE_PASSWORD", "")
DATABASE_NAME = os.getenv("DATABASE_NAME", "fitness_system")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+pymysql://{DATABASE_USER}:{DATABASE_PASSWORD}"
    f"@{DATABASE_HOST}:{DATABASE_PORT}/{DATABASE_NAME}"
    "?charset=utf8mb4"
)

# Redis缓存配置
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
STATS_CACHE_ENABLED = _env_bool("STATS_CACHE_ENABLED", "false")
STATS_CACHE_TTL = int(os.getenv("STATS_CACHE_TTL", "300"))  # 统计快照缓存5分钟

# 排名重算配置
RANKING_MAX_WORKERS = int(os.getenv("RANKING_MAX_WORKERS", "4"))
RANKING_LOCK_TIMEOUT = float(os.getenv("RANKING_LOCK_TIMEOUT", "30"))

# 综合得分是否按已评分项目权重归一到百分制
NORMALIZE_COMPOSITE = _env_bool("NORMALIZE_COMPOSITE", "true")

# 趋势分析默认年份跨度
TREND_DEFAULT_SPAN = int(os.getenv("TREND_DEFAULT_SPAN", "3"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
