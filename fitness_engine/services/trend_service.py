# 多年度趋势分析服务
import logging
import threading
from typing import Dict, Any, List, Optional

from ..config import TREND_DEFAULT_SPAN
from ..database.enums import ScopeType, SportItem, enum_value
from ..database.schemas import YearPoint
from .statistics_service import StatisticsService

logger = logging.getLogger(__name__)


class TrendService:
    """年级/全校多年度趋势分析，每个年度调用一次统计服务"""

    def __init__(self, statistics_service: StatisticsService):
        self.statistics_service = statistics_service

    def trend(self, scope_type: str, scope_id: Optional[int], start_year: int, end_year: int,
              cancel_event: Optional[threading.Event] = None) -> List[YearPoint]:
        """
        计算年度趋势

        Args:
            scope_type: grade 或 school
            scope_id: 年级，全校时忽略
            start_year: 起始年份（含）
            end_year: 结束年份（含）
            cancel_event: 取消信号，在两个年度之间检查，取消后返回已完成的年度

        Returns:
            按年份升序的年度点，没有提交数据的年度成绩和比率为0，学生人数仍为名单人数
        """
        scope_type = self._check_scope(scope_type, scope_id)
        self._check_years(start_year, end_year)

        points = []
        for year in range(start_year, end_year + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"趋势分析已取消，已完成{len(points)}个年度")
                break

            snapshot = self.statistics_service.get_statistics(scope_type, scope_id, year)
            if snapshot.submitted_count == 0:
                points.append(YearPoint(
                    year=year, average_score=0.0, excellent_rate=0.0,
                    pass_rate=0.0, total_students=snapshot.total_students, submitted_count=0
                ))
                continue

            points.append(YearPoint(
                year=year,
                average_score=snapshot.average_score,
                excellent_rate=snapshot.excellent_rate,
                pass_rate=snapshot.qualified_rate,
                total_students=snapshot.total_students,
                submitted_count=snapshot.submitted_count
            ))

        return points

    def recent_trend(self, scope_type: str, scope_id: Optional[int], year: int,
                     span: int = TREND_DEFAULT_SPAN,
                     cancel_event: Optional[threading.Event] = None) -> List[YearPoint]:
        """最近span个年度（含year）的趋势"""
        if span < 1:
            raise ValueError("年份跨度必须大于0")
        return self.trend(scope_type, scope_id, year - span + 1, year, cancel_event)

    def item_trends(self, scope_type: str, scope_id: Optional[int], start_year: int, end_year: int,
                    items: Optional[List[str]] = None,
                    cancel_event: Optional[threading.Event] = None) -> Dict[str, List[Dict[str, Any]]]:
        """
        各体测项目的年度平均值趋势

        Returns:
            项目 -> [{year, average, measured_count}]，没有数据的年度为0
        """
        scope_type = self._check_scope(scope_type, scope_id)
        self._check_years(start_year, end_year)
        items = [enum_value(item) for item in items] if items else [item.value for item in SportItem]

        trends: Dict[str, List[Dict[str, Any]]] = {item: [] for item in items}
        for year in range(start_year, end_year + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"项目趋势分析已取消，截止{year - 1}年")
                break

            snapshot = self.statistics_service.get_statistics(scope_type, scope_id, year)
            by_item = {entry.item: entry for entry in snapshot.item_breakdown}
            for item in items:
                entry = by_item.get(item)
                trends[item].append({
                    'year': year,
                    'average': entry.average if entry else 0.0,
                    'measured_count': entry.measured_count if entry else 0
                })

        return trends

    @staticmethod
    def _check_scope(scope_type: str, scope_id: Optional[int]) -> str:
        scope_type = enum_value(scope_type)
        if scope_type not in (ScopeType.GRADE.value, ScopeType.SCHOOL.value):
            raise ValueError(f"趋势分析只支持年级或全校范围: {scope_type}")
        if scope_type == ScopeType.GRADE.value and scope_id is None:
            raise ValueError("年级趋势需要指定年级")
        return scope_type

    @staticmethod
    def _check_years(start_year: int, end_year: int):
        if start_year > end_year:
            raise ValueError(f"起始年份{start_year}不能大于结束年份{end_year}")
