# 业务服务模块
from .evaluation_service import EvaluationService
from .ranking_service import RankingService, assign_competition_ranks
from .statistics_service import StatisticsService
from .trend_service import TrendService

__all__ = [
    'EvaluationService',
    'RankingService',
    'assign_competition_ranks',
    'StatisticsService',
    'TrendService'
]
