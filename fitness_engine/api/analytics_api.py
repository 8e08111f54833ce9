from fastapi import APIRouter, HTTPException, Query, Depends
from typing import List, Optional
from dataclasses import asdict
from sqlalchemy.orm import Session
import logging

from ..calculation.evaluation import EvaluationEngine
from ..calculation.standards import StandardCatalog
from ..config import STATS_CACHE_ENABLED
from ..database.cache import StatisticsCache, create_cache_manager
from ..database.connection import get_db
from ..database.enums import ScopeType
from ..database.repositories import (
    EvaluationStandardRepository, SportDataRepository, RosterRepository, DataIntegrityError
)
from ..database.schemas import RuleFilter
from ..exceptions import UnknownScopeError, ConcurrentRecomputeError
from ..schemas.request_schemas import (
    MeasurementSubmitRequest, BatchSubmitRequest, CompareClassesRequest, GradingRuleCreateRequest,
    GradingRuleBatchCreateRequest, GradingRuleUpdateRequest
)
from ..schemas.response_schemas import (
    ScoredRecordResponse, BatchSubmitResponse, RecomputeReportResponse, StatSnapshotResponse,
    YearPointResponse, GradingRuleResponse
)
from ..services.evaluation_service import EvaluationService
from ..services.ranking_service import RankingService
from ..services.statistics_service import StatisticsService
from ..services.trend_service import TrendService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["体测分析API"])

_cache: Optional[StatisticsCache] = None
_cache_initialized = False


# ---------------------------------------------------------------------------
# 依赖
# ---------------------------------------------------------------------------

def get_stats_cache() -> Optional[StatisticsCache]:
    """统计快照缓存（未启用或Redis不可用时为None）"""
    global _cache, _cache_initialized
    if STATS_CACHE_ENABLED and not _cache_initialized:
        _cache = create_cache_manager()
        _cache_initialized = True
    return _cache


def get_standard_repository(db: Session = Depends(get_db)) -> EvaluationStandardRepository:
    return EvaluationStandardRepository(db)


def get_statistics_service(db: Session = Depends(get_db)) -> StatisticsService:
    return StatisticsService(
        SportDataRepository(db),
        RosterRepository(db),
        StandardCatalog(EvaluationStandardRepository(db))
    )


def get_evaluation_service(db: Session = Depends(get_db)) -> EvaluationService:
    engine = EvaluationEngine(StandardCatalog(EvaluationStandardRepository(db)))
    return EvaluationService(engine, SportDataRepository(db), RosterRepository(db))


def get_ranking_service(db: Session = Depends(get_db)) -> RankingService:
    return RankingService(SportDataRepository(db))


def get_trend_service(
    statistics_service: StatisticsService = Depends(get_statistics_service)
) -> TrendService:
    return TrendService(statistics_service)


def _to_http_error(error: Exception, operation: str) -> HTTPException:
    """业务异常映射为HTTP错误"""
    if isinstance(error, UnknownScopeError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConcurrentRecomputeError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (ValueError, DataIntegrityError)):
        return HTTPException(status_code=400, detail=str(error))

    logger.error(f"{operation}失败: {str(error)}")
    return HTTPException(status_code=500, detail=f"{operation}失败: {str(error)}")


def _cached_snapshot(cache: Optional[StatisticsCache], scope_type: str, scope_id: Optional[int],
                     year: int, compute) -> dict:
    if cache is not None:
        cached = cache.get_snapshot(scope_type, scope_id, year)
        if cached is not None:
            return cached

    snapshot = compute().to_dict()
    if cache is not None:
        cache.set_snapshot(scope_type, scope_id, year, snapshot)
    return snapshot


# ---------------------------------------------------------------------------
# 体测数据提交
# ---------------------------------------------------------------------------

@router.post("/measurements", response_model=ScoredRecordResponse)
def submit_measurement(
    request: MeasurementSubmitRequest,
    service: EvaluationService = Depends(get_evaluation_service),
    cache: Optional[StatisticsCache] = Depends(get_stats_cache)
):
    """提交单个学生的年度体测数据"""
    try:
        scored = service.submit_measurement(request.student_id, request.year, request.values)
        if cache is not None:
            cache.invalidate_year(request.year)
        return ScoredRecordResponse(**scored.to_dict())
    except Exception as e:
        raise _to_http_error(e, "提交体测数据")


@router.post("/measurements/batch", response_model=BatchSubmitResponse)
def submit_batch(
    request: BatchSubmitRequest,
    service: EvaluationService = Depends(get_evaluation_service),
    cache: Optional[StatisticsCache] = Depends(get_stats_cache)
):
    """批量提交体测数据"""
    try:
        result = service.submit_batch([item.model_dump() for item in request.items])
        if cache is not None:
            for year in {item.year for item in request.items}:
                cache.invalidate_year(year)
        return BatchSubmitResponse(**result)
    except Exception as e:
        raise _to_http_error(e, "批量提交体测数据")


# ---------------------------------------------------------------------------
# 排名
# ---------------------------------------------------------------------------

@router.post("/rankings/{year}/recompute", response_model=RecomputeReportResponse)
def recompute_rankings(
    year: int,
    wait: bool = Query(False, description="同一年份正在重算时是否等待"),
    service: RankingService = Depends(get_ranking_service)
):
    """重算某年度的班级排名和年级排名"""
    try:
        return RecomputeReportResponse(**service.recompute_rankings(year, wait=wait).to_dict())
    except Exception as e:
        raise _to_http_error(e, "排名重算")


# ---------------------------------------------------------------------------
# 统计
# ---------------------------------------------------------------------------

@router.get("/statistics/class/{class_id}", response_model=StatSnapshotResponse)
def get_class_statistics(
    class_id: int,
    year: int = Query(..., description="年份"),
    service: StatisticsService = Depends(get_statistics_service),
    cache: Optional[StatisticsCache] = Depends(get_stats_cache)
):
    """班级统计"""
    try:
        return _cached_snapshot(cache, ScopeType.CLASS.value, class_id, year,
                                lambda: service.class_statistics(class_id, year))
    except Exception as e:
        raise _to_http_error(e, "获取班级统计")


@router.get("/statistics/grade/{grade_id}", response_model=StatSnapshotResponse)
def get_grade_statistics(
    grade_id: int,
    year: int = Query(..., description="年份"),
    service: StatisticsService = Depends(get_statistics_service),
    cache: Optional[StatisticsCache] = Depends(get_stats_cache)
):
    """年级统计"""
    try:
        return _cached_snapshot(cache, ScopeType.GRADE.value, grade_id, year,
                                lambda: service.grade_statistics(grade_id, year))
    except Exception as e:
        raise _to_http_error(e, "获取年级统计")


@router.get("/statistics/school", response_model=StatSnapshotResponse)
def get_school_statistics(
    year: int = Query(..., description="年份"),
    service: StatisticsService = Depends(get_statistics_service),
    cache: Optional[StatisticsCache] = Depends(get_stats_cache)
):
    """全校统计"""
    try:
        return _cached_snapshot(cache, ScopeType.SCHOOL.value, None, year,
                                lambda: service.school_statistics(year))
    except Exception as e:
        raise _to_http_error(e, "获取全校统计")


@router.post("/statistics/compare-classes", response_model=List[StatSnapshotResponse])
def compare_classes(
    request: CompareClassesRequest,
    service: StatisticsService = Depends(get_statistics_service)
):
    """班级对比（按平均分降序）"""
    try:
        return [snapshot.to_dict() for snapshot in service.compare_classes(request.class_ids, request.year)]
    except Exception as e:
        raise _to_http_error(e, "班级对比")


@router.get("/statistics/grade-rankings", response_model=List[StatSnapshotResponse])
def get_grade_rankings(
    year: int = Query(..., description="年份"),
    service: StatisticsService = Depends(get_statistics_service)
):
    """各年级统计排名"""
    try:
        return [snapshot.to_dict() for snapshot in service.grade_rankings(year)]
    except Exception as e:
        raise _to_http_error(e, "获取年级排名")


# ---------------------------------------------------------------------------
# 趋势
# ---------------------------------------------------------------------------

@router.get("/trends/{scope_type}", response_model=List[YearPointResponse])
def get_trend(
    scope_type: str,
    start_year: int = Query(..., description="起始年份"),
    end_year: int = Query(..., description="结束年份"),
    scope_id: Optional[int] = Query(None, description="年级（全校时不填）"),
    service: TrendService = Depends(get_trend_service)
):
    """年级/全校年度趋势"""
    try:
        return [point.to_dict() for point in service.trend(scope_type, scope_id, start_year, end_year)]
    except Exception as e:
        raise _to_http_error(e, "获取趋势数据")


@router.get("/trends/{scope_type}/items")
def get_item_trends(
    scope_type: str,
    start_year: int = Query(..., description="起始年份"),
    end_year: int = Query(..., description="结束年份"),
    scope_id: Optional[int] = Query(None, description="年级（全校时不填）"),
    service: TrendService = Depends(get_trend_service)
):
    """各体测项目年度平均值趋势"""
    try:
        return service.item_trends(scope_type, scope_id, start_year, end_year)
    except Exception as e:
        raise _to_http_error(e, "获取项目趋势")


# ---------------------------------------------------------------------------
# 评分标准
# ---------------------------------------------------------------------------

@router.get("/standards", response_model=List[GradingRuleResponse])
def list_standards(
    year: Optional[int] = Query(None, description="年份"),
    active_only: bool = Query(True, description="只返回启用中的标准"),
    repository: EvaluationStandardRepository = Depends(get_standard_repository)
):
    """评分标准列表"""
    try:
        rules = repository.fetch_grading_rules(RuleFilter(year=year, active_only=active_only))
        return [asdict(rule) for rule in rules]
    except Exception as e:
        raise _to_http_error(e, "获取评分标准")


@router.post("/standards", response_model=GradingRuleResponse)
def create_standard(
    request: GradingRuleCreateRequest,
    repository: EvaluationStandardRepository = Depends(get_standard_repository)
):
    """创建评分标准（与启用中的标准范围重叠时拒绝）"""
    try:
        return asdict(repository.create_rule(request.model_dump(mode="json")))
    except Exception as e:
        raise _to_http_error(e, "创建评分标准")


@router.post("/standards/batch", response_model=List[GradingRuleResponse])
def batch_create_standards(
    request: GradingRuleBatchCreateRequest,
    repository: EvaluationStandardRepository = Depends(get_standard_repository)
):
    """批量创建评分标准（任一条不合法时全部不创建）"""
    try:
        rules = repository.batch_create_rules([rule.model_dump(mode="json") for rule in request.rules])
        return [asdict(rule) for rule in rules]
    except Exception as e:
        raise _to_http_error(e, "批量创建评分标准")


@router.put("/standards/{rule_id}", response_model=GradingRuleResponse)
def update_standard(
    rule_id: int,
    request: GradingRuleUpdateRequest,
    repository: EvaluationStandardRepository = Depends(get_standard_repository)
):
    """更新评分标准（重新校验阈值顺序和范围重叠）"""
    try:
        rule = repository.update_rule(rule_id, request.model_dump(mode="json", exclude_unset=True))
    except Exception as e:
        raise _to_http_error(e, "更新评分标准")

    if rule is None:
        raise HTTPException(status_code=404, detail=f"评分标准 {rule_id} 不存在")
    return asdict(rule)
