# 体测成绩计算模块
from .formulas import (
    ScoreBandConfig,
    tier_of_total,
    calculate_total_distribution,
    interpolate_in_band,
    calculate_bmi
)
from .standards import StandardCatalog
from .evaluation import EvaluationEngine

__all__ = [
    'ScoreBandConfig',
    'tier_of_total',
    'calculate_total_distribution',
    'interpolate_in_band',
    'calculate_bmi',
    'StandardCatalog',
    'EvaluationEngine'
]
