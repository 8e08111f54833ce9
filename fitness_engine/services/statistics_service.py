# 体测统计服务
import logging
import pandas as pd
from typing import Dict, List, Optional

from ..calculation.evaluation import EvaluationEngine
from ..calculation.formulas import calculate_total_distribution, calculate_bmi
from ..calculation.standards import StandardCatalog
from ..database.enums import GradeTier, ScopeType, SportItem, SPORT_ITEM_INFO
from ..database.repositories import MeasurementSource, RosterSource
from ..database.schemas import ScopeFilter, MeasurementRecord, StatSnapshot, ItemBreakdown
from ..exceptions import UnknownScopeError
from ..utils.precision_handler import format_decimal, safe_rate, safe_mean

logger = logging.getLogger(__name__)


class StatisticsService:
    """
    班级、年级、全校统计服务

    统计只读取数据，不修改任何记录。总分等级按 90/80/60 划分，
    各比率在[0, 1]之间，分母为0时为0。
    """

    def __init__(self, measurement_source: MeasurementSource, roster_source: RosterSource,
                 catalog: StandardCatalog):
        self.measurement_source = measurement_source
        self.roster_source = roster_source
        self.catalog = catalog

    def class_statistics(self, class_id: int, year: int) -> StatSnapshot:
        """
        班级统计

        Raises:
            UnknownScopeError: 班级不存在
        """
        class_info = self.roster_source.get_class(class_id)
        if class_info is None:
            raise UnknownScopeError(ScopeType.CLASS.value, class_id)

        records = self.measurement_source.fetch_measurements(
            ScopeFilter(scope_type=ScopeType.CLASS.value, scope_id=class_id), year
        )
        roster = self.roster_source.fetch_class_roster(class_id)

        snapshot = self._build_snapshot(ScopeType.CLASS.value, class_id, year, records, len(roster))
        snapshot.scope_name = class_info.class_name
        snapshot.body_metrics = self._body_metrics(records)
        return snapshot

    def grade_statistics(self, grade_id: int, year: int) -> StatSnapshot:
        """年级统计（没有数据时返回全0快照）"""
        records = self.measurement_source.fetch_measurements(
            ScopeFilter(scope_type=ScopeType.GRADE.value, scope_id=grade_id), year
        )
        roster = self.roster_source.fetch_grade_roster(grade_id)

        snapshot = self._build_snapshot(ScopeType.GRADE.value, grade_id, year, records, len(roster))
        snapshot.scope_name = f"{grade_id}年级"
        snapshot.total_classes = len(self.roster_source.list_classes(grade_id))
        snapshot.item_breakdown = self._item_breakdown(records, year)
        return snapshot

    def school_statistics(self, year: int) -> StatSnapshot:
        """全校统计（没有数据时返回全0快照）"""
        records = self.measurement_source.fetch_measurements(
            ScopeFilter(scope_type=ScopeType.SCHOOL.value), year
        )
        roster = self.roster_source.fetch_school_roster()

        snapshot = self._build_snapshot(ScopeType.SCHOOL.value, None, year, records, len(roster))
        snapshot.scope_name = "全校"
        snapshot.total_classes = len(self.roster_source.list_classes())
        snapshot.total_grades = len(self.roster_source.list_grades())
        snapshot.item_breakdown = self._item_breakdown(records, year)
        return snapshot

    def compare_classes(self, class_ids: List[int], year: int) -> List[StatSnapshot]:
        """
        班级对比，按平均分降序、班级ID升序排列

        Raises:
            UnknownScopeError: 任一班级不存在
        """
        snapshots = [self.class_statistics(class_id, year) for class_id in class_ids]
        return sorted(snapshots, key=lambda s: (-s.average_score, s.scope_id))

    def grade_rankings(self, year: int) -> List[StatSnapshot]:
        """各年级统计，按平均分降序、年级升序排列"""
        snapshots = [self.grade_statistics(grade_id, year) for grade_id in self.roster_source.list_grades()]
        return sorted(snapshots, key=lambda s: (-s.average_score, s.scope_id))

    def get_statistics(self, scope_type: str, scope_id: Optional[int], year: int) -> StatSnapshot:
        """按范围类型分派统计"""
        scope_type = ScopeType(scope_type)
        if scope_type != ScopeType.SCHOOL and scope_id is None:
            raise ValueError(f"{scope_type.value}统计需要指定范围ID")
        if scope_type == ScopeType.CLASS:
            return self.class_statistics(scope_id, year)
        if scope_type == ScopeType.GRADE:
            return self.grade_statistics(scope_id, year)
        return self.school_statistics(year)

    def _build_snapshot(self, scope_type: str, scope_id: Optional[int], year: int,
                        records: List[MeasurementRecord], total_students: int) -> StatSnapshot:
        totals = pd.Series([record.composite_total for record in records], dtype=float)
        distribution = calculate_total_distribution(totals)
        submitted_count = distribution['total_count']
        counts = distribution['counts']
        rates = distribution['rates']

        logger.debug(
            f"{year}年 {scope_type} {scope_id}: 学生{total_students}人, 提交{submitted_count}条"
        )

        return StatSnapshot(
            scope_type=scope_type,
            scope_id=scope_id,
            year=year,
            total_students=total_students,
            submitted_count=submitted_count,
            submission_rate=safe_rate(submitted_count, total_students),
            average_score=safe_mean(totals, 2),
            excellent_count=counts['excellent'],
            good_count=counts['good'],
            pass_count=counts['pass'],
            fail_count=counts['fail'],
            excellent_rate=rates['excellent'],
            good_rate=rates['good'],
            pass_rate=rates['pass'],
            fail_rate=rates['fail'],
            qualified_rate=distribution['qualified_rate']
        )

    def _item_breakdown(self, records: List[MeasurementRecord], year: int) -> List[ItemBreakdown]:
        """各体测项目统计，等级按每条记录自身适用的标准计算"""
        breakdown = []
        for item in SportItem:
            measured = []
            for record in records:
                value = format_decimal(record.values.get(item.value), 4)
                if value is not None:
                    measured.append((record, value))

            if not measured:
                continue

            values = pd.Series([value for _, value in measured])
            tier_counts = {tier: 0 for tier in GradeTier}
            ungraded = 0
            for record, value in measured:
                rule = self.catalog.resolve(year, record.grade_id, record.gender, item.value)
                if rule is None:
                    ungraded += 1
                    continue
                tier_counts[EvaluationEngine.grade_of(rule, value)] += 1

            breakdown.append(ItemBreakdown(
                item=item.value,
                item_name=SPORT_ITEM_INFO[item]['name'],
                unit=SPORT_ITEM_INFO[item]['unit'],
                measured_count=len(measured),
                average=safe_mean(values, 2),
                min=format_decimal(values.min(), 2),
                max=format_decimal(values.max(), 2),
                excellent_count=tier_counts[GradeTier.EXCELLENT],
                good_count=tier_counts[GradeTier.GOOD],
                pass_count=tier_counts[GradeTier.PASS],
                fail_count=tier_counts[GradeTier.FAIL],
                ungraded_count=ungraded
            ))

        return breakdown

    @staticmethod
    def _body_metrics(records: List[MeasurementRecord]) -> Dict[str, float]:
        """班级身体形态指标平均值"""
        df = pd.DataFrame(
            [record.values for record in records],
            columns=[SportItem.HEIGHT.value, SportItem.WEIGHT.value, SportItem.VITAL_CAPACITY.value]
        )
        heights = pd.to_numeric(df[SportItem.HEIGHT.value], errors='coerce')
        weights = pd.to_numeric(df[SportItem.WEIGHT.value], errors='coerce')

        bmi = pd.Series([
            calculate_bmi(height, weight)
            for height, weight in zip(heights, weights)
            if not pd.isna(height) and not pd.isna(weight)
        ], dtype=float)

        return {
            'avg_height': safe_mean(heights, 2),
            'avg_weight': safe_mean(weights, 2),
            'avg_bmi': safe_mean(bmi, 2),
            'avg_vital_capacity': safe_mean(df[SportItem.VITAL_CAPACITY.value], 2),
        }
