# 评分标准目录
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..database.enums import enum_value
from ..database.schemas import GradingRule, RuleFilter
from ..exceptions import NotApplicableStandardError

logger = logging.getLogger(__name__)


class StandardCatalog:
    """
    评分标准目录

    按年份从标准数据源加载启用中的评分标准，并解析给定
    (年份, 年级, 性别, 项目) 唯一适用的标准。同一条件命中多条标准时，
    取创建时间最新的一条。
    """

    def __init__(self, rule_source):
        self.rule_source = rule_source
        self._rules_by_year: Dict[int, Dict[Tuple[str, str], List[GradingRule]]] = {}

    def resolve(self, year: int, grade: int, gender, item) -> Optional[GradingRule]:
        """
        解析适用的评分标准

        Returns:
            适用的标准；没有适用标准时返回None（该项目视为未评分，不是错误）
        """
        gender = enum_value(gender)
        item = enum_value(item)
        candidates = [
            rule for rule in self._rules_for_year(year).get((gender, item), [])
            if rule.covers(year, grade, gender, item)
        ]

        if not candidates:
            return None

        if len(candidates) > 1:
            logger.warning(
                f"评分标准存在重叠: 年份={year}, 年级={grade}, 性别={gender}, 项目={item}, "
                f"候选={[rule.rule_id for rule in candidates]}，取最新创建的标准"
            )

        return max(candidates, key=_creation_order)

    def require(self, year: int, grade: int, gender, item) -> GradingRule:
        """解析适用的评分标准，不存在时抛出NotApplicableStandardError"""
        rule = self.resolve(year, grade, gender, item)
        if rule is None:
            raise NotApplicableStandardError(year, grade, enum_value(gender), enum_value(item))
        return rule

    def list_items(self, year: int) -> List[str]:
        """获取某年度有评分标准的项目列表"""
        return sorted({item for _, item in self._rules_for_year(year).keys()})

    def refresh(self, year: Optional[int] = None):
        """清除已加载的标准，下次解析时重新读取"""
        if year is None:
            self._rules_by_year.clear()
        else:
            self._rules_by_year.pop(year, None)

    def _rules_for_year(self, year: int) -> Dict[Tuple[str, str], List[GradingRule]]:
        if year not in self._rules_by_year:
            rules = self.rule_source.fetch_grading_rules(RuleFilter(year=year, active_only=True))
            index = defaultdict(list)
            for rule in rules:
                index[(enum_value(rule.gender), enum_value(rule.item))].append(rule)
            self._rules_by_year[year] = dict(index)
            logger.debug(f"已加载{year}年度评分标准 {len(rules)} 条")
        return self._rules_by_year[year]

    @staticmethod
    def validate_rule(rule: GradingRule) -> List[str]:
        """
        校验评分标准的阈值顺序

        非时间类项目（值越大越好）要求 优秀 ≥ 良好 ≥ 及格，
        时间类项目（值越小越好）要求 优秀 ≤ 良好 ≤ 及格。
        未设置的阈值不参与比较。

        Returns:
            错误信息列表，为空表示校验通过
        """
        errors = []

        if rule.grade_min > rule.grade_max:
            errors.append("最小年级不能大于最大年级")

        defined = [
            (label, value) for label, value in (
                ("优秀", rule.excellent_threshold),
                ("良好", rule.good_threshold),
                ("及格", rule.pass_threshold),
            )
            if value is not None
        ]

        for (better_label, better), (worse_label, worse) in zip(defined, defined[1:]):
            if rule.is_time_based and better > worse:
                errors.append(f"时间类项目：{better_label}标准应不大于{worse_label}标准")
            elif not rule.is_time_based and better < worse:
                errors.append(f"非时间类项目：{better_label}标准应不小于{worse_label}标准")

        return errors

    @staticmethod
    def find_overlaps(rule: GradingRule, existing: List[GradingRule]) -> List[GradingRule]:
        """找出与给定标准适用范围重叠的启用中标准"""
        return [
            other for other in existing
            if other.active and other.rule_id != rule.rule_id and rule.overlaps(other)
        ]


def _creation_order(rule: GradingRule):
    return (rule.created_at or datetime.min, rule.rule_id)
