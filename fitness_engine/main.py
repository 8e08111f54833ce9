import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fitness_engine import __version__
from fitness_engine.api.analytics_api import router as analytics_router
from fitness_engine.config import LOG_LEVEL
from fitness_engine.database.connection import SessionLocal, test_connection, create_tables
from fitness_engine.database.default_standards import seed_default_standards
from fitness_engine.database.repositories import EvaluationStandardRepository, RepositoryError

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="学生体测评价与排名服务",
    description="体测成绩评价、排名与统计分析API文档",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境请设置具体的域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(analytics_router, prefix="/api/v1/fitness", tags=["体测分析API"])


@app.get("/")
async def root():
    return {
        "message": "学生体测评价与排名服务",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


def init_database():
    """建表并初始化默认评分标准，失败时只记录日志，不影响服务启动"""
    if not test_connection():
        return

    create_tables()
    db = SessionLocal()
    try:
        seed_default_standards(EvaluationStandardRepository(db))
    except RepositoryError as e:
        logger.error(f"初始化默认评分标准失败: {str(e)}")
    finally:
        db.close()


if __name__ == "__main__":
    import uvicorn

    init_database()
    uvicorn.run("fitness_engine.main:app", host="0.0.0.0", port=8000, reload=False)
