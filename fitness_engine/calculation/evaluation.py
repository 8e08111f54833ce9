# 体测成绩评价引擎
import math
import logging
from typing import Dict, Any, List, Optional, Tuple

from .formulas import ScoreBandConfig, interpolate_in_band
from .standards import StandardCatalog
from ..config import NORMALIZE_COMPOSITE
from ..database.enums import GradeTier, ItemErrorKind, TIER_NAMES, enum_value
from ..database.schemas import (
    GradingRule, MeasurementRecord, ItemScore, ItemError, CompositeScore, ScoredRecord
)
from ..exceptions import InvalidMeasurementError, NotApplicableStandardError
from ..utils.precision_handler import format_decimal

logger = logging.getLogger(__name__)

_TIER_ORDER = (GradeTier.EXCELLENT, GradeTier.GOOD, GradeTier.PASS)


class EvaluationEngine:
    """
    体测成绩评价引擎

    根据评分标准把单项原始数值转换为等级和百分制分数，并把各项分数
    合成为学生年度综合得分。引擎本身无状态，标准通过StandardCatalog注入。
    """

    def __init__(self, catalog: StandardCatalog, weights: Optional[Dict[str, float]] = None,
                 normalize_composite: bool = NORMALIZE_COMPOSITE):
        """
        Args:
            catalog: 评分标准目录
            weights: 项目权重配置，未配置的项目权重为1
            normalize_composite: 综合得分是否按已评分项目的权重和归一到百分制
        """
        if weights and any(weight < 0 for weight in weights.values()):
            raise ValueError("项目权重不能为负数")

        self.catalog = catalog
        self.weights = {enum_value(item): float(w) for item, w in (weights or {}).items()}
        self.normalize_composite = normalize_composite

    @staticmethod
    def grade_of(rule: GradingRule, raw_value: float) -> GradeTier:
        """
        根据评分标准计算等级

        时间类项目值越小越好，其余项目值越大越好；未设置的阈值直接跳过。
        """
        for tier, threshold in _defined_thresholds(rule):
            if rule.is_time_based and raw_value <= threshold:
                return tier
            if not rule.is_time_based and raw_value >= threshold:
                return tier
        return GradeTier.FAIL

    @staticmethod
    def score_band(tier: GradeTier) -> Tuple[float, float]:
        """获取等级对应的百分制分数段"""
        return ScoreBandConfig.get_band(tier)

    @classmethod
    def score_of(cls, rule: GradingRule, raw_value: float) -> Tuple[GradeTier, float]:
        """
        计算等级和百分制分数

        分数在等级分数段内按原始数值线性插值：区间下界为该等级自身的阈值，
        上界为更优一级的阈值。优秀没有上界、不及格没有下界时，按相邻等级
        的区间宽度外推；无法确定区间宽度时取分数段下限。

        Returns:
            (等级, 保留两位小数的分数)
        """
        tier = cls.grade_of(rule, raw_value)

        # 统一转换为"越大越好"的方向
        sign = -1.0 if rule.is_time_based else 1.0
        value = sign * raw_value
        bounds = [(t, sign * threshold) for t, threshold in _defined_thresholds(rule)]

        if tier == GradeTier.FAIL:
            if not bounds:
                return tier, interpolate_in_band(tier, 0.0)
            upper = bounds[-1][1]
            width = bounds[-2][1] - upper if len(bounds) >= 2 else None
            if not width or width <= 0:
                return tier, interpolate_in_band(tier, 0.0)
            return tier, interpolate_in_band(tier, (value - (upper - width)) / width)

        index = [t for t, _ in bounds].index(tier)
        lower = bounds[index][1]
        if index > 0:
            upper = bounds[index - 1][1]
        elif index + 1 < len(bounds):
            upper = lower + (lower - bounds[index + 1][1])
        else:
            upper = None

        if upper is None or upper <= lower:
            return tier, interpolate_in_band(tier, 0.0)
        return tier, interpolate_in_band(tier, (value - lower) / (upper - lower))

    def composite_total(self, item_scores: Dict[str, float],
                        weights: Optional[Dict[str, float]] = None) -> CompositeScore:
        """
        计算综合得分

        Args:
            item_scores: 已评分项目的分数，值为None的项目不参与计算
            weights: 项目权重（覆盖引擎配置），未配置的项目权重为1

        Returns:
            加权总分、参与计分的项目数以及权重和
        """
        weights = {enum_value(k): v for k, v in weights.items()} if weights else self.weights

        total = 0.0
        weight_sum = 0.0
        scored_count = 0
        for item, score in item_scores.items():
            if score is None:
                continue
            weight = weights.get(enum_value(item), 1.0)
            total += score * weight
            weight_sum += weight
            scored_count += 1

        return CompositeScore(total=total, scored_count=scored_count, weight_sum=weight_sum)

    @staticmethod
    def validate_raw_value(item, value: Any) -> float:
        """
        校验原始数值

        Raises:
            InvalidMeasurementError: 非数值、NaN或超出项目合理范围
        """
        item = enum_value(item)
        if isinstance(value, bool):
            raise InvalidMeasurementError(item, value, "不是有效数值")

        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidMeasurementError(item, value, "不是有效数值")

        if math.isnan(number) or math.isinf(number):
            raise InvalidMeasurementError(item, value, "不是有效数值")

        sanity_range = ScoreBandConfig.get_sanity_range(item)
        if sanity_range is None:
            raise InvalidMeasurementError(item, value, "未知体测项目")

        low, high = sanity_range
        if not low <= number <= high:
            raise InvalidMeasurementError(item, value, f"超出合理范围[{low}, {high}]")

        return number

    def evaluate_item(self, record: MeasurementRecord, item, raw_value: Any) -> ItemScore:
        """
        评价单个项目

        Raises:
            InvalidMeasurementError: 原始数值无效
            NotApplicableStandardError: 没有适用的评分标准
        """
        item = enum_value(item)
        number = self.validate_raw_value(item, raw_value)
        rule = self.catalog.require(record.year, record.grade_id, record.gender, item)
        tier, score = self.score_of(rule, number)

        return ItemScore(
            item=item,
            raw_value=number,
            tier=tier.value,
            tier_name=TIER_NAMES[tier],
            score=score,
            rule_id=rule.rule_id,
            unit=rule.unit
        )

    def evaluate(self, record: MeasurementRecord) -> ScoredRecord:
        """
        评价一条体测记录的全部项目

        单项错误（数值无效、没有适用标准）被收集在结果中，不影响其余项目。
        没有任何项目得分时综合得分为None。
        """
        item_scores: Dict[str, ItemScore] = {}
        errors: List[ItemError] = []

        for item, raw_value in record.values.items():
            if raw_value is None or (isinstance(raw_value, str) and raw_value.strip() == ''):
                continue

            try:
                item_scores[enum_value(item)] = self.evaluate_item(record, item, raw_value)
            except InvalidMeasurementError as e:
                logger.warning(f"学生 {record.student_id} {record.year}年 {e}")
                errors.append(ItemError(
                    item=enum_value(item),
                    kind=ItemErrorKind.INVALID_MEASUREMENT.value,
                    message=str(e),
                    raw_value=raw_value
                ))
            except NotApplicableStandardError as e:
                logger.warning(f"学生 {record.student_id} {e}")
                errors.append(ItemError(
                    item=enum_value(item),
                    kind=ItemErrorKind.NOT_APPLICABLE_STANDARD.value,
                    message=str(e),
                    raw_value=raw_value
                ))

        composite = self.composite_total({item: s.score for item, s in item_scores.items()})
        if composite.scored_count == 0:
            composite_total = None
        elif self.normalize_composite:
            composite_total = format_decimal(composite.normalized, 2)
        else:
            composite_total = format_decimal(composite.total, 2)

        return ScoredRecord(
            record_id=record.record_id,
            student_id=record.student_id,
            year=record.year,
            item_scores=item_scores,
            errors=errors,
            composite_total=composite_total,
            scored_count=composite.scored_count
        )


def _defined_thresholds(rule: GradingRule) -> List[Tuple[GradeTier, float]]:
    """按 优秀→良好→及格 顺序返回已设置的阈值"""
    thresholds = {
        GradeTier.EXCELLENT: rule.excellent_threshold,
        GradeTier.GOOD: rule.good_threshold,
        GradeTier.PASS: rule.pass_threshold,
    }
    return [(tier, float(thresholds[tier])) for tier in _TIER_ORDER if thresholds[tier] is not None]
