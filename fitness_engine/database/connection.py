# 数据库连接配置
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool
import logging
from typing import Generator, Optional

from ..config import DATABASE_URL

logger = logging.getLogger(__name__)

# 创建声明性基类
Base = declarative_base()

# 会话工厂，引擎在首次使用时才创建
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

_engine = None


def get_engine(database_url: Optional[str] = None):
    """获取数据库引擎（首次调用时创建）"""
    global _engine
    if _engine is None:
        _engine = create_engine(
            database_url or DATABASE_URL,
            poolclass=QueuePool,
            pool_size=10,                # 连接池大小
            max_overflow=20,             # 最大溢出连接
            pool_pre_ping=True,          # 连接健康检查
            pool_recycle=3600,           # 连接回收时间(1小时)
            echo=False
        )
        SessionLocal.configure(bind=_engine)
        logger.info("数据库引擎已创建")
    return _engine


def get_db() -> Generator:
    """获取数据库会话"""
    get_engine()
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


def test_connection() -> bool:
    """测试数据库连接"""
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
            logger.info("Database connection successful")
            return True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")
        return False


def create_tables():
    """创建所有表"""
    from . import models  # noqa: F401  注册模型

    try:
        Base.metadata.create_all(bind=get_engine())
        logger.info("All tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create tables: {str(e)}")
        raise
