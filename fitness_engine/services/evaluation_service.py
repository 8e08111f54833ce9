# 体测数据提交与评价服务
import logging
from typing import Dict, Any, List

from ..calculation.evaluation import EvaluationEngine
from ..database.enums import ItemErrorKind, enum_value
from ..database.repositories import MeasurementSource, RosterSource
from ..database.schemas import MeasurementRecord, ScoredRecord, ItemError
from ..exceptions import FitnessEngineError, InvalidMeasurementError, UnknownScopeError

logger = logging.getLogger(__name__)


class EvaluationService:
    """体测数据提交服务：保存原始数据、评价并写入综合得分"""

    def __init__(self, engine: EvaluationEngine, measurement_source: MeasurementSource,
                 roster_source: RosterSource):
        self.engine = engine
        self.measurement_source = measurement_source
        self.roster_source = roster_source

    def evaluate(self, record: MeasurementRecord) -> ScoredRecord:
        """评价一条记录（不写入数据）"""
        return self.engine.evaluate(record)

    def submit_measurement(self, student_id: int, year: int, values: Dict[str, Any]) -> ScoredRecord:
        """
        提交学生某年度的体测数据

        先校验本次提交的数值，只把有效数值合并到已有记录后重新评价；
        无效数值被拒绝，已保存的同项目数值保持不变。值为空表示清除该项目。
        排名需要通过排名重算更新。

        Raises:
            UnknownScopeError: 学生不存在
        """
        student = self.roster_source.get_student(student_id)
        if student is None:
            raise UnknownScopeError("student", student_id)

        existing = self.measurement_source.get_measurement(student_id, year)
        merged = dict(existing.values) if existing else {}

        rejected: List[ItemError] = []
        for item, value in values.items():
            item = enum_value(item)
            if value is None or (isinstance(value, str) and value.strip() == ''):
                merged.pop(item, None)
                continue
            try:
                self.engine.validate_raw_value(item, value)
            except InvalidMeasurementError as e:
                logger.warning(f"学生 {student_id} {year}年 {e}")
                rejected.append(ItemError(
                    item=item,
                    kind=ItemErrorKind.INVALID_MEASUREMENT.value,
                    message=str(e),
                    raw_value=value
                ))
                continue
            merged[item] = value

        record = MeasurementRecord(
            record_id=existing.record_id if existing else None,
            student_id=student_id,
            year=year,
            class_id=student.class_id,
            grade_id=student.grade_id,
            gender=student.gender,
            values=merged
        )
        scored = self.engine.evaluate(record)
        scored.errors = rejected + scored.errors

        record.composite_total = scored.composite_total
        saved = self.measurement_source.upsert_measurement(record)
        scored.record_id = saved.record_id

        logger.info(
            f"学生 {student_id} {year}年体测数据已提交: 评分项目{scored.scored_count}个, "
            f"综合得分{scored.composite_total}, 错误{len(scored.errors)}个"
        )
        return scored

    def submit_batch(self, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        批量提交体测数据，单条失败不影响其他记录

        Args:
            items: [{student_id, year, values}]

        Returns:
            {success: 成功条数, failed: [{student_id, error}]}
        """
        success = 0
        failed = []

        for item in items:
            student_id = item.get('student_id')
            try:
                self.submit_measurement(student_id, item['year'], item.get('values') or {})
                success += 1
            except (FitnessEngineError, KeyError, ValueError) as e:
                logger.warning(f"学生 {student_id} 体测数据提交失败: {str(e)}")
                failed.append({'student_id': student_id, 'error': str(e)})

        logger.info(f"批量提交完成: 成功{success}条, 失败{len(failed)}条")
        return {'success': success, 'failed': failed}
