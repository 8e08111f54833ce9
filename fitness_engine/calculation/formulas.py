# 体测成绩等级划分公式
import numpy as np
import pandas as pd
import logging
from typing import Dict, Any, Optional, Tuple

from ..database.enums import GradeTier, SportItem, TIER_NAMES
from ..utils.precision_handler import format_decimal, safe_rate

logger = logging.getLogger(__name__)


class ScoreBandConfig:
    """分数段配置类"""

    # 各等级对应的百分制分数段（互不重叠）
    SCORE_BANDS = {
        GradeTier.EXCELLENT: (90.0, 100.0),
        GradeTier.GOOD: (80.0, 89.0),
        GradeTier.PASS: (60.0, 79.0),
        GradeTier.FAIL: (0.0, 59.0),
    }

    # 总分等级阈值：优秀≥90, 良好80-89, 及格60-79, 不及格<60
    TOTAL_SCORE_THRESHOLDS = {
        GradeTier.EXCELLENT: 90.0,
        GradeTier.GOOD: 80.0,
        GradeTier.PASS: 60.0,
    }

    # 各项目原始数值的合理范围
    SANITY_RANGES = {
        SportItem.HEIGHT: (120.0, 220.0),
        SportItem.WEIGHT: (25.0, 200.0),
        SportItem.VITAL_CAPACITY: (500.0, 8000.0),
        SportItem.FIFTY_RUN: (5.0, 20.0),
        SportItem.STANDING_LONG_JUMP: (50.0, 350.0),
        SportItem.SIT_AND_REACH: (-10.0, 35.0),
        SportItem.EIGHT_HUNDRED_RUN: (120.0, 800.0),
        SportItem.ONE_THOUSAND_RUN: (150.0, 1000.0),
        SportItem.SIT_UP: (0.0, 100.0),
        SportItem.PULL_UP: (0.0, 50.0),
    }

    @classmethod
    def get_band(cls, tier: GradeTier) -> Tuple[float, float]:
        """获取等级对应的分数段"""
        return cls.SCORE_BANDS[GradeTier(tier)]

    @classmethod
    def get_sanity_range(cls, item: str) -> Optional[Tuple[float, float]]:
        """获取项目原始数值的合理范围，未知项目返回None"""
        try:
            return cls.SANITY_RANGES[SportItem(item)]
        except ValueError:
            return None


def tier_of_total(score: float) -> GradeTier:
    """按总分划分等级（与单项等级无关）"""
    thresholds = ScoreBandConfig.TOTAL_SCORE_THRESHOLDS
    if score >= thresholds[GradeTier.EXCELLENT]:
        return GradeTier.EXCELLENT
    elif score >= thresholds[GradeTier.GOOD]:
        return GradeTier.GOOD
    elif score >= thresholds[GradeTier.PASS]:
        return GradeTier.PASS
    return GradeTier.FAIL


def calculate_total_distribution(scores: pd.Series) -> Dict[str, Any]:
    """
    计算总分等级分布

    Args:
        scores: 总分序列（空值会被忽略）

    Returns:
        各等级人数、比率以及及格以上比率，分母为0时比率为0
    """
    scores_array = pd.to_numeric(scores, errors='coerce').dropna().values
    total_count = len(scores_array)
    thresholds = ScoreBandConfig.TOTAL_SCORE_THRESHOLDS

    excellent_mask = scores_array >= thresholds[GradeTier.EXCELLENT]
    good_mask = (scores_array >= thresholds[GradeTier.GOOD]) & \
                (scores_array < thresholds[GradeTier.EXCELLENT])
    pass_mask = (scores_array >= thresholds[GradeTier.PASS]) & \
                (scores_array < thresholds[GradeTier.GOOD])
    fail_mask = scores_array < thresholds[GradeTier.PASS]

    counts = {
        'excellent': int(np.sum(excellent_mask)),
        'good': int(np.sum(good_mask)),
        'pass': int(np.sum(pass_mask)),
        'fail': int(np.sum(fail_mask)),
    }

    return {
        'total_count': total_count,
        'counts': counts,
        'rates': {key: safe_rate(count, total_count) for key, count in counts.items()},
        'qualified_rate': safe_rate(total_count - counts['fail'], total_count),
        'labels': {key: TIER_NAMES[GradeTier(key)] for key in counts},
    }


def interpolate_in_band(tier: GradeTier, fraction: float) -> float:
    """
    在等级分数段内按比例线性插值

    Args:
        tier: 等级
        fraction: 原始数值在该等级区间内的相对位置，会被截断到[0, 1]

    Returns:
        保留两位小数的分数
    """
    low, high = ScoreBandConfig.get_band(tier)
    fraction = min(1.0, max(0.0, float(fraction)))
    return format_decimal(low + fraction * (high - low), 2)


def calculate_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> Optional[float]:
    """根据身高(cm)和体重(kg)计算BMI"""
    if not height_cm or not weight_kg or height_cm <= 0:
        return None
    height_m = height_cm / 100.0
    return weight_kg / (height_m * height_m)
