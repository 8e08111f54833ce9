# 班级/年级排名服务
import time
import threading
import logging
import pandas as pd
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

from ..config import RANKING_MAX_WORKERS, RANKING_LOCK_TIMEOUT
from ..database.enums import ScopeType
from ..database.repositories import MeasurementSource
from ..database.schemas import ScopeFilter, RankAssignment, RecomputeReport
from ..exceptions import ConcurrentRecomputeError
from ..utils.precision_handler import format_decimal

logger = logging.getLogger(__name__)

# 每个年份一把锁，同一年份的重算互斥
_year_locks: Dict[int, threading.Lock] = {}
_registry_lock = threading.Lock()


def _lock_for_year(year: int) -> threading.Lock:
    with _registry_lock:
        if year not in _year_locks:
            _year_locks[year] = threading.Lock()
        return _year_locks[year]


def assign_competition_ranks(entries: List[Tuple[int, float]]) -> Dict[int, int]:
    """
    分配排名，处理并列情况

    按总分降序、记录ID升序排序；总分（保留两位小数后）相同的记录排名相同，
    下一个不同分数的排名等于其位置，例如 [95, 95, 90] -> [1, 1, 3]。

    Args:
        entries: (记录ID, 总分) 列表

    Returns:
        记录ID -> 排名
    """
    ordered = sorted(
        ((record_id, format_decimal(total, 2)) for record_id, total in entries),
        key=lambda entry: (-entry[1], entry[0])
    )

    ranks = {}
    previous_total = None
    rank = 0
    for position, (record_id, total) in enumerate(ordered, start=1):
        # 并列使用相同排名
        if total != previous_total:
            rank = position
            previous_total = total
        ranks[record_id] = rank
    return ranks


class RankingService:
    """班级/年级排名服务，排名重算是唯一写入排名的入口"""

    def __init__(self, measurement_source: MeasurementSource,
                 max_workers: int = RANKING_MAX_WORKERS,
                 lock_timeout: float = RANKING_LOCK_TIMEOUT):
        self.measurement_source = measurement_source
        self.max_workers = max(1, max_workers)
        self.lock_timeout = lock_timeout

    def recompute_rankings(self, year: int, wait: bool = False) -> RecomputeReport:
        """
        全量重算某年度的班级排名和年级排名

        没有综合得分的记录排名被清除。结果一次性批量写回，重复执行结果不变。

        Args:
            year: 年份
            wait: 同一年份正在重算时是否等待（最多lock_timeout秒）

        Raises:
            ConcurrentRecomputeError: 同一年份正在重算
        """
        lock = _lock_for_year(year)
        acquired = lock.acquire(timeout=self.lock_timeout) if wait else lock.acquire(blocking=False)
        if not acquired:
            logger.warning(f"{year}年度排名正在重算，拒绝并发请求")
            raise ConcurrentRecomputeError(year)

        try:
            start_time = time.time()
            logger.info(f"开始重算{year}年度排名")

            records = self.measurement_source.fetch_measurements(
                ScopeFilter(scope_type=ScopeType.SCHOOL.value), year
            )

            ranks: Dict[int, Tuple[Optional[int], Optional[int]]] = {
                record.record_id: (None, None) for record in records
            }

            df = pd.DataFrame([
                {
                    'record_id': record.record_id,
                    'class_id': record.class_id,
                    'grade_id': record.grade_id,
                    'total': record.composite_total
                }
                for record in records if record.composite_total is not None
            ], columns=['record_id', 'class_id', 'grade_id', 'total'])

            class_ranks = self._rank_partitions(df, 'class_id')
            grade_ranks = self._rank_partitions(df, 'grade_id')

            for assignment in class_ranks:
                ranks[assignment.record_id] = (assignment.rank, ranks[assignment.record_id][1])
            for assignment in grade_ranks:
                ranks[assignment.record_id] = (ranks[assignment.record_id][0], assignment.rank)

            records_updated = self.measurement_source.save_ranks(ranks)

            report = RecomputeReport(
                year=year,
                classes_updated=int(df['class_id'].nunique()),
                grades_updated=int(df['grade_id'].nunique()),
                records_updated=records_updated,
                duration=round(time.time() - start_time, 3)
            )
            logger.info(
                f"{year}年度排名重算完成: 班级{report.classes_updated}个, "
                f"年级{report.grades_updated}个, 记录{report.records_updated}条, "
                f"耗时{report.duration}秒"
            )
            return report
        finally:
            lock.release()

    def _rank_partitions(self, df: pd.DataFrame, partition_column: str) -> List[RankAssignment]:
        """按分区并行计算排名"""
        if df.empty:
            return []

        scope_type = ScopeType.CLASS.value if partition_column == 'class_id' else ScopeType.GRADE.value
        assignments = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(
                    assign_competition_ranks,
                    list(zip(group['record_id'].tolist(), group['total'].tolist()))
                ): int(scope_id)
                for scope_id, group in df.groupby(partition_column)
            }

            for future in as_completed(futures):
                scope_id = futures[future]
                for record_id, rank in future.result().items():
                    assignments.append(RankAssignment(
                        record_id=record_id,
                        scope_id=scope_id,
                        scope_type=scope_type,
                        rank=rank
                    ))

        return assignments
