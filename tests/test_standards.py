# 评分标准目录与等级公式测试
import logging
from datetime import datetime

import pandas as pd
import pytest

from fitness_engine.calculation.formulas import (
    ScoreBandConfig, tier_of_total, calculate_total_distribution, interpolate_in_band, calculate_bmi
)
from fitness_engine.calculation.standards import StandardCatalog
from fitness_engine.database.enums import Gender, GradeTier, SportItem
from fitness_engine.exceptions import NotApplicableStandardError
from fitness_engine.utils.precision_handler import format_decimal, safe_rate, safe_mean

from conftest import InMemoryRuleSource, make_rule


class TestStandardCatalog:
    """测试评分标准解析"""

    def setup_method(self):
        self.rules = [
            make_rule(1, SportItem.SIT_UP, 90, 80, 60),
            make_rule(2, SportItem.FIFTY_RUN, 8.0, 8.5, 9.0, is_time_based=True),
            make_rule(3, SportItem.SIT_UP, 45, 40, 30, gender=Gender.FEMALE),
            make_rule(4, SportItem.SIT_UP, 50, 45, 35, grade_min=7, grade_max=9),
        ]
        self.source = InMemoryRuleSource(self.rules)
        self.catalog = StandardCatalog(self.source)

    def test_resolve_matching_rule(self):
        """测试按年份、年级、性别、项目解析标准"""
        assert self.catalog.resolve(2024, 3, Gender.MALE, SportItem.SIT_UP).rule_id == 1
        assert self.catalog.resolve(2024, 3, "0", "sit_up").rule_id == 3
        assert self.catalog.resolve(2024, 8, "1", "sit_up").rule_id == 4

    def test_grade_range_is_inclusive(self):
        """测试年级区间包含边界"""
        assert self.catalog.resolve(2024, 1, "1", "sit_up").rule_id == 1
        assert self.catalog.resolve(2024, 6, "1", "sit_up").rule_id == 1
        assert self.catalog.resolve(2024, 7, "1", "sit_up").rule_id == 4

    def test_no_applicable_rule(self):
        """测试没有适用标准时返回None"""
        assert self.catalog.resolve(2024, 3, "1", "pull_up") is None
        assert self.catalog.resolve(2023, 3, "1", "sit_up") is None
        assert self.catalog.resolve(2024, 12, "1", "sit_up") is None

    def test_require_raises_not_applicable(self):
        """测试require在没有适用标准时抛出异常"""
        with pytest.raises(NotApplicableStandardError) as exc_info:
            self.catalog.require(2024, 3, "1", "pull_up")

        assert exc_info.value.item == "pull_up"
        assert exc_info.value.grade == 3

    def test_inactive_rules_are_ignored(self):
        """测试停用的标准不参与解析"""
        source = InMemoryRuleSource([make_rule(1, SportItem.SIT_UP, 90, 80, 60, active=False)])
        assert StandardCatalog(source).resolve(2024, 3, "1", "sit_up") is None

    def test_overlapping_rules_latest_wins(self, caplog):
        """测试重叠标准取最新创建的一条并记录警告"""
        source = InMemoryRuleSource([
            make_rule(1, SportItem.SIT_UP, 90, 80, 60, created_at=datetime(2024, 3, 1)),
            make_rule(2, SportItem.SIT_UP, 95, 85, 65, grade_min=3, grade_max=4,
                      created_at=datetime(2024, 1, 1)),
        ])
        catalog = StandardCatalog(source)

        with caplog.at_level(logging.WARNING):
            rule = catalog.resolve(2024, 3, "1", "sit_up")

        assert rule.rule_id == 1
        assert "重叠" in caplog.text
        # 只命中一条时不告警
        assert catalog.resolve(2024, 5, "1", "sit_up").rule_id == 1

    def test_overlapping_rules_same_creation_time(self):
        """测试创建时间相同时取ID较大的标准"""
        created = datetime(2024, 1, 1)
        source = InMemoryRuleSource([
            make_rule(7, SportItem.SIT_UP, 90, 80, 60, created_at=created),
            make_rule(3, SportItem.SIT_UP, 95, 85, 65, created_at=created),
        ])
        assert StandardCatalog(source).resolve(2024, 3, "1", "sit_up").rule_id == 7

    def test_rules_loaded_once_per_year(self):
        """测试同一年份的标准只加载一次"""
        self.catalog.resolve(2024, 3, "1", "sit_up")
        self.catalog.resolve(2024, 4, "1", "fifty_run")
        assert self.source.fetch_count == 1

        self.catalog.resolve(2023, 4, "1", "fifty_run")
        assert self.source.fetch_count == 2

        self.catalog.refresh(2024)
        self.catalog.resolve(2024, 3, "1", "sit_up")
        assert self.source.fetch_count == 3

    def test_list_items(self):
        """测试获取年度项目列表"""
        assert self.catalog.list_items(2024) == ["fifty_run", "sit_up"]
        assert self.catalog.list_items(2020) == []


class TestRuleValidation:
    """测试评分标准校验"""

    def test_valid_rules(self):
        """测试合法标准"""
        assert StandardCatalog.validate_rule(make_rule(1, SportItem.SIT_UP, 90, 80, 60)) == []
        assert StandardCatalog.validate_rule(
            make_rule(2, SportItem.FIFTY_RUN, 8.0, 8.5, 9.0, is_time_based=True)
        ) == []
        # 相等阈值允许
        assert StandardCatalog.validate_rule(make_rule(3, SportItem.SIT_UP, 80, 80, 60)) == []

    def test_invalid_threshold_order(self):
        """测试阈值顺序错误"""
        errors = StandardCatalog.validate_rule(make_rule(1, SportItem.SIT_UP, 70, 80, 60))
        assert len(errors) == 1
        assert "非时间类" in errors[0]

        errors = StandardCatalog.validate_rule(
            make_rule(2, SportItem.FIFTY_RUN, 9.0, 8.5, 8.0, is_time_based=True)
        )
        assert len(errors) == 2

    def test_undefined_thresholds_skipped(self):
        """测试未设置的阈值不参与比较"""
        assert StandardCatalog.validate_rule(make_rule(1, SportItem.SIT_UP, None, 80, 60)) == []
        assert StandardCatalog.validate_rule(make_rule(2, SportItem.SIT_UP, 90, None, 60)) == []
        assert len(StandardCatalog.validate_rule(make_rule(3, SportItem.SIT_UP, 50, None, 60))) == 1

    def test_invalid_grade_range(self):
        """测试年级区间错误"""
        errors = StandardCatalog.validate_rule(
            make_rule(1, SportItem.SIT_UP, 90, 80, 60, grade_min=6, grade_max=3)
        )
        assert errors == ["最小年级不能大于最大年级"]

    def test_find_overlaps(self):
        """测试查找适用范围重叠的标准"""
        candidate = make_rule(10, SportItem.SIT_UP, 90, 80, 60, grade_min=5, grade_max=8)
        existing = [
            make_rule(1, SportItem.SIT_UP, 90, 80, 60, grade_min=1, grade_max=6),
            make_rule(2, SportItem.SIT_UP, 90, 80, 60, grade_min=9, grade_max=12),
            make_rule(3, SportItem.SIT_UP, 90, 80, 60, gender=Gender.FEMALE),
            make_rule(4, SportItem.PULL_UP, 10, 8, 5),
            make_rule(5, SportItem.SIT_UP, 90, 80, 60, active=False),
        ]

        overlaps = StandardCatalog.find_overlaps(candidate, existing)
        assert [rule.rule_id for rule in overlaps] == [1]


class TestScoreFormulas:
    """测试总分等级划分公式"""

    def test_tier_of_total_boundaries(self):
        """测试总分等级边界"""
        assert tier_of_total(100) == GradeTier.EXCELLENT
        assert tier_of_total(90) == GradeTier.EXCELLENT
        assert tier_of_total(89.99) == GradeTier.GOOD
        assert tier_of_total(80) == GradeTier.GOOD
        assert tier_of_total(79.99) == GradeTier.PASS
        assert tier_of_total(60) == GradeTier.PASS
        assert tier_of_total(59.99) == GradeTier.FAIL
        assert tier_of_total(0) == GradeTier.FAIL

    def test_total_distribution(self):
        """测试总分分布（各等级互不重叠）"""
        scores = pd.Series([95, 90, 85, 80, 70, 60, 59.5, 30, None])
        result = calculate_total_distribution(scores)

        assert result['total_count'] == 8
        assert result['counts'] == {'excellent': 2, 'good': 2, 'pass': 2, 'fail': 2}
        assert sum(result['counts'].values()) == result['total_count']
        assert result['rates']['excellent'] == 0.25
        assert result['qualified_rate'] == 0.75
        assert result['labels']['fail'] == "不及格"

    def test_empty_distribution(self):
        """测试空数据分布比率为0"""
        result = calculate_total_distribution(pd.Series([], dtype=float))

        assert result['total_count'] == 0
        assert all(rate == 0.0 for rate in result['rates'].values())
        assert result['qualified_rate'] == 0.0

    def test_interpolate_in_band(self):
        """测试分数段内插值"""
        assert interpolate_in_band(GradeTier.GOOD, 0.5) == 84.5
        assert interpolate_in_band(GradeTier.EXCELLENT, 1.5) == 100.0
        assert interpolate_in_band(GradeTier.FAIL, -1) == 0.0

    def test_sanity_ranges(self):
        """测试项目合理范围配置"""
        assert ScoreBandConfig.get_sanity_range("height") == (120.0, 220.0)
        assert ScoreBandConfig.get_sanity_range(SportItem.SIT_AND_REACH) == (-10.0, 35.0)
        assert ScoreBandConfig.get_sanity_range("shot_put") is None
        assert len(ScoreBandConfig.SANITY_RANGES) == len(SportItem)

    def test_calculate_bmi(self):
        """测试BMI计算"""
        assert calculate_bmi(170, 57.8) == pytest.approx(20.0, abs=0.01)
        assert calculate_bmi(None, 50) is None
        assert calculate_bmi(0, 50) is None


class TestPrecisionHandler:
    """测试精度处理工具"""

    def test_format_decimal(self):
        """测试四舍五入"""
        assert format_decimal(2.675, 2) == 2.68
        assert format_decimal("84.955", 2) == 84.96
        assert format_decimal(None) is None
        assert format_decimal(float('nan')) is None
        assert format_decimal("abc") is None

    def test_safe_rate(self):
        """测试比率计算"""
        assert safe_rate(0, 0) == 0.0
        assert safe_rate(3, 4) == 0.75
        assert safe_rate(1, 3) == 0.3333
        assert safe_rate(5, 4) == 1.0

    def test_safe_mean(self):
        """测试平均值计算"""
        assert safe_mean(pd.Series([], dtype=float)) == 0.0
        assert safe_mean(pd.Series([80, 85, None])) == 82.5
