# 数据仓库层
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_, asc
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from datetime import datetime
import logging

from .enums import SportItem, ScopeType, enum_value
from .models import ClassInfo, Student, SportData, EvaluationStandard
from .schemas import (
    GradingRule, RuleFilter, ScopeFilter, MeasurementRecord, StudentProfile, ClassSummary
)
from ..exceptions import FitnessEngineError

logger = logging.getLogger(__name__)

ITEM_COLUMNS = [item.value for item in SportItem]


class RepositoryError(FitnessEngineError):
    """Repository层异常基类"""
    pass


class DataIntegrityError(RepositoryError):
    """数据完整性异常"""
    pass


# ---------------------------------------------------------------------------
# 数据源接口：计算核心只依赖这些接口，不直接访问ORM
# ---------------------------------------------------------------------------

class GradingRuleSource(ABC):
    """评分标准数据源"""

    @abstractmethod
    def fetch_grading_rules(self, rule_filter: RuleFilter) -> List[GradingRule]:
        pass


class MeasurementSource(ABC):
    """体测数据源"""

    @abstractmethod
    def fetch_measurements(self, scope_filter: ScopeFilter, year: int) -> List[MeasurementRecord]:
        """按范围获取某年度的全部体测记录"""
        pass

    @abstractmethod
    def get_measurement(self, student_id: int, year: int) -> Optional[MeasurementRecord]:
        pass

    @abstractmethod
    def save_ranks(self, ranks: Dict[int, Tuple[Optional[int], Optional[int]]]) -> int:
        """
        批量写回排名

        Args:
            ranks: record_id -> (班级排名, 年级排名)，None表示清除排名

        Returns:
            更新的记录数
        """
        pass

    @abstractmethod
    def upsert_measurement(self, record: MeasurementRecord) -> MeasurementRecord:
        """按 (学生, 年份) 插入或更新体测记录及综合得分"""
        pass


class RosterSource(ABC):
    """学籍数据源"""

    @abstractmethod
    def fetch_class_roster(self, class_id: int) -> List[StudentProfile]:
        pass

    @abstractmethod
    def fetch_grade_roster(self, grade_id: int) -> List[StudentProfile]:
        pass

    @abstractmethod
    def fetch_school_roster(self) -> List[StudentProfile]:
        pass

    @abstractmethod
    def get_class(self, class_id: int) -> Optional[ClassSummary]:
        pass

    @abstractmethod
    def list_classes(self, grade_id: Optional[int] = None) -> List[ClassSummary]:
        pass

    @abstractmethod
    def list_grades(self) -> List[int]:
        pass

    @abstractmethod
    def get_student(self, student_id: int) -> Optional[StudentProfile]:
        pass


# ---------------------------------------------------------------------------
# SQLAlchemy实现
# ---------------------------------------------------------------------------

class BaseRepository:
    """基础仓库类"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def _handle_db_error(self, error: Exception, operation: str) -> None:
        """统一处理数据库异常"""
        if isinstance(error, RepositoryError):
            self.db.rollback()
            raise error

        logger.error(f"Database error in {operation}: {str(error)}")
        self.db.rollback()

        if isinstance(error, IntegrityError):
            raise DataIntegrityError(f"数据完整性错误: {str(error)}")
        elif isinstance(error, SQLAlchemyError):
            raise RepositoryError(f"数据库操作失败: {str(error)}")
        else:
            raise RepositoryError(f"未知数据库错误: {str(error)}")


class EvaluationStandardRepository(BaseRepository, GradingRuleSource):
    """评分标准数据仓库"""

    def fetch_grading_rules(self, rule_filter: RuleFilter) -> List[GradingRule]:
        """按条件获取评分标准"""
        try:
            query = self.db.query(EvaluationStandard)
            if rule_filter.year is not None:
                query = query.filter(EvaluationStandard.year == rule_filter.year)
            if rule_filter.grade is not None:
                query = query.filter(and_(
                    EvaluationStandard.grade_min <= rule_filter.grade,
                    EvaluationStandard.grade_max >= rule_filter.grade
                ))
            if rule_filter.gender is not None:
                query = query.filter(EvaluationStandard.gender == enum_value(rule_filter.gender))
            if rule_filter.item is not None:
                query = query.filter(EvaluationStandard.sport_item == enum_value(rule_filter.item))
            if rule_filter.active_only:
                query = query.filter(EvaluationStandard.is_active.is_(True))

            return [_to_rule(row) for row in query.order_by(asc(EvaluationStandard.id)).all()]
        except Exception as e:
            self._handle_db_error(e, "fetch_grading_rules")

    def get_rule(self, rule_id: int) -> Optional[GradingRule]:
        """获取评分标准"""
        try:
            row = self.db.query(EvaluationStandard).filter(EvaluationStandard.id == rule_id).first()
            return _to_rule(row) if row else None
        except Exception as e:
            self._handle_db_error(e, "get_rule")

    def create_rule(self, rule_data: Dict[str, Any]) -> GradingRule:
        """
        创建评分标准

        阈值顺序不合法，或与启用中的标准适用范围重叠时拒绝创建。

        Raises:
            DataIntegrityError: 标准不合法或与现有标准重叠
        """
        try:
            candidate = _rule_from_data(rule_data)
            self._check_rule(candidate)

            row = EvaluationStandard(description=rule_data.get('description'))
            _apply_rule(row, candidate, datetime.now())
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"创建评分标准 {row.id}: {row.name}")
            return _to_rule(row)
        except Exception as e:
            self._handle_db_error(e, "create_rule")

    def batch_create_rules(self, rules_data: List[Dict[str, Any]]) -> List[GradingRule]:
        """
        批量创建评分标准

        先校验全部标准（包括批次内部的范围重叠），全部通过后在一个事务内插入。

        Raises:
            DataIntegrityError: 任一标准不合法或范围重叠，此时不插入任何标准
        """
        try:
            candidates = [_rule_from_data(data) for data in rules_data]

            errors = []
            for index, candidate in enumerate(candidates):
                rule_errors = self._rule_errors(candidate)
                if rule_errors:
                    errors.append(f"第{index + 1}条: {'; '.join(rule_errors)}")
                for other_index in range(index + 1, len(candidates)):
                    other = candidates[other_index]
                    if candidate.active and other.active and candidate.overlaps(other):
                        errors.append(f"第{index + 1}条与第{other_index + 1}条适用范围重叠")
            if errors:
                raise DataIntegrityError(f"批量创建评分标准失败: {'; '.join(errors)}")

            now = datetime.now()
            rows = []
            for candidate, data in zip(candidates, rules_data):
                row = EvaluationStandard(description=data.get('description'))
                _apply_rule(row, candidate, now)
                rows.append(row)

            self.db.add_all(rows)
            self.db.commit()
            for row in rows:
                self.db.refresh(row)
            logger.info(f"批量创建评分标准 {len(rows)} 条")
            return [_to_rule(row) for row in rows]
        except Exception as e:
            self._handle_db_error(e, "batch_create_rules")

    def update_rule(self, rule_id: int, updates: Dict[str, Any]) -> Optional[GradingRule]:
        """
        更新评分标准

        更新后的标准重新校验阈值顺序和适用范围重叠（不与自身比较）。

        Returns:
            更新后的标准，标准不存在时返回None

        Raises:
            DataIntegrityError: 更新后的标准不合法或与其他标准重叠
        """
        try:
            row = self.db.query(EvaluationStandard).filter(EvaluationStandard.id == rule_id).first()
            if row is None:
                return None

            current = _to_rule(row)
            merged = {
                'year': current.year,
                'grade_min': current.grade_min,
                'grade_max': current.grade_max,
                'gender': current.gender,
                'item': current.item,
                'excellent_threshold': current.excellent_threshold,
                'good_threshold': current.good_threshold,
                'pass_threshold': current.pass_threshold,
                'fail_max': current.fail_max,
                'is_time_based': current.is_time_based,
                'unit': current.unit,
                'active': current.active,
                'name': current.name,
            }
            merged.update({key: value for key, value in updates.items() if key in merged})

            candidate = _rule_from_data(merged, rule_id=rule_id)
            self._check_rule(candidate)

            _apply_rule(row, candidate, datetime.now(), creating=False)
            if 'description' in updates:
                row.description = updates['description']
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"更新评分标准 {rule_id}")
            return _to_rule(row)
        except Exception as e:
            self._handle_db_error(e, "update_rule")

    def deactivate_rule(self, rule_id: int) -> bool:
        """停用评分标准"""
        try:
            row = self.db.query(EvaluationStandard).filter(EvaluationStandard.id == rule_id).first()
            if row:
                row.is_active = False
                row.updated_at = datetime.now()
                self.db.commit()
                return True
            return False
        except Exception as e:
            self._handle_db_error(e, "deactivate_rule")

    def _rule_errors(self, candidate: GradingRule) -> List[str]:
        """阈值顺序和与启用中标准的重叠检查"""
        # 延迟导入，避免数据库层与计算层循环引用
        from ..calculation.standards import StandardCatalog

        errors = StandardCatalog.validate_rule(candidate)
        if candidate.active:
            existing = self.fetch_grading_rules(RuleFilter(
                year=candidate.year, gender=candidate.gender,
                item=candidate.item, active_only=True
            ))
            overlaps = StandardCatalog.find_overlaps(candidate, existing)
            if overlaps:
                errors.append(f"适用范围与现有标准重叠: {[rule.rule_id for rule in overlaps]}")
        return errors

    def _check_rule(self, candidate: GradingRule):
        errors = self._rule_errors(candidate)
        if errors:
            raise DataIntegrityError(f"评分标准不合法: {'; '.join(errors)}")


class SportDataRepository(BaseRepository, MeasurementSource):
    """体测数据仓库"""

    def _base_query(self):
        return self.db.query(SportData, Student.gender).join(
            Student, Student.id == SportData.student_id
        )

    def fetch_measurements(self, scope_filter: ScopeFilter, year: int) -> List[MeasurementRecord]:
        """按范围获取某年度的全部体测记录"""
        try:
            query = self._base_query().filter(SportData.year == year)

            scope_type = ScopeType(enum_value(scope_filter.scope_type))
            if scope_type == ScopeType.CLASS:
                query = query.filter(SportData.class_id == scope_filter.scope_id)
            elif scope_type == ScopeType.GRADE:
                query = query.filter(SportData.grade_id == scope_filter.scope_id)

            rows = query.order_by(asc(SportData.id)).all()
            return [_to_record(row, gender) for row, gender in rows]
        except Exception as e:
            self._handle_db_error(e, "fetch_measurements")

    def get_measurement(self, student_id: int, year: int) -> Optional[MeasurementRecord]:
        """获取学生某年度的体测记录"""
        try:
            result = self._base_query().filter(and_(
                SportData.student_id == student_id,
                SportData.year == year
            )).first()
            return _to_record(*result) if result else None
        except Exception as e:
            self._handle_db_error(e, "get_measurement")

    def save_ranks(self, ranks: Dict[int, Tuple[Optional[int], Optional[int]]]) -> int:
        """在一个事务内批量写回班级/年级排名"""
        if not ranks:
            return 0

        try:
            mappings = [
                {'id': record_id, 'class_rank': class_rank, 'grade_rank': grade_rank}
                for record_id, (class_rank, grade_rank) in ranks.items()
            ]
            self.db.bulk_update_mappings(SportData, mappings)
            self.db.commit()
            return len(mappings)
        except Exception as e:
            self._handle_db_error(e, "save_ranks")

    def upsert_measurement(self, record: MeasurementRecord) -> MeasurementRecord:
        """插入或更新体测记录"""
        try:
            existing = self.db.query(SportData).filter(and_(
                SportData.student_id == record.student_id,
                SportData.year == record.year
            )).first()

            values = {item: record.values.get(item) for item in ITEM_COLUMNS}
            if existing:
                for key, value in values.items():
                    setattr(existing, key, value)
                existing.class_id = record.class_id
                existing.grade_id = record.grade_id
                existing.total_score = record.composite_total
                existing.updated_at = datetime.now()
                row = existing
            else:
                row = SportData(
                    student_id=record.student_id,
                    year=record.year,
                    class_id=record.class_id,
                    grade_id=record.grade_id,
                    total_score=record.composite_total,
                    **values
                )
                self.db.add(row)

            self.db.commit()
            self.db.refresh(row)
            return _to_record(row, record.gender)
        except Exception as e:
            self._handle_db_error(e, "upsert_measurement")


class RosterRepository(BaseRepository, RosterSource):
    """学籍数据仓库"""

    def _student_query(self):
        return self.db.query(Student, ClassInfo.grade).join(
            ClassInfo, ClassInfo.id == Student.class_id
        ).filter(and_(
            Student.is_deleted.is_(False),
            ClassInfo.is_deleted.is_(False)
        ))

    def fetch_class_roster(self, class_id: int) -> List[StudentProfile]:
        try:
            rows = self._student_query().filter(Student.class_id == class_id).all()
            return [_to_profile(student, grade) for student, grade in rows]
        except Exception as e:
            self._handle_db_error(e, "fetch_class_roster")

    def fetch_grade_roster(self, grade_id: int) -> List[StudentProfile]:
        try:
            rows = self._student_query().filter(ClassInfo.grade == grade_id).all()
            return [_to_profile(student, grade) for student, grade in rows]
        except Exception as e:
            self._handle_db_error(e, "fetch_grade_roster")

    def fetch_school_roster(self) -> List[StudentProfile]:
        try:
            rows = self._student_query().all()
            return [_to_profile(student, grade) for student, grade in rows]
        except Exception as e:
            self._handle_db_error(e, "fetch_school_roster")

    def get_class(self, class_id: int) -> Optional[ClassSummary]:
        try:
            row = self.db.query(ClassInfo).filter(and_(
                ClassInfo.id == class_id,
                ClassInfo.is_deleted.is_(False)
            )).first()
            return _to_class(row) if row else None
        except Exception as e:
            self._handle_db_error(e, "get_class")

    def list_classes(self, grade_id: Optional[int] = None) -> List[ClassSummary]:
        try:
            query = self.db.query(ClassInfo).filter(ClassInfo.is_deleted.is_(False))
            if grade_id is not None:
                query = query.filter(ClassInfo.grade == grade_id)
            return [_to_class(row) for row in query.order_by(asc(ClassInfo.id)).all()]
        except Exception as e:
            self._handle_db_error(e, "list_classes")

    def list_grades(self) -> List[int]:
        try:
            rows = self.db.query(ClassInfo.grade).filter(
                ClassInfo.is_deleted.is_(False)
            ).distinct().order_by(asc(ClassInfo.grade)).all()
            return [grade for (grade,) in rows]
        except Exception as e:
            self._handle_db_error(e, "list_grades")

    def get_student(self, student_id: int) -> Optional[StudentProfile]:
        try:
            result = self._student_query().filter(Student.id == student_id).first()
            return _to_profile(*result) if result else None
        except Exception as e:
            self._handle_db_error(e, "get_student")


def _to_rule(row: EvaluationStandard) -> GradingRule:
    return GradingRule(
        rule_id=row.id,
        year=row.year,
        grade_min=row.grade_min,
        grade_max=row.grade_max,
        gender=row.gender,
        item=row.sport_item,
        excellent_threshold=_optional_float(row.excellent_min),
        good_threshold=_optional_float(row.good_min),
        pass_threshold=_optional_float(row.pass_min),
        fail_max=_optional_float(row.fail_max),
        is_time_based=bool(row.is_time_based),
        unit=row.unit or "",
        active=bool(row.is_active),
        created_at=row.created_at,
        name=row.name or ""
    )


def _to_record(row: SportData, gender: str) -> MeasurementRecord:
    values = {
        item: getattr(row, item) for item in ITEM_COLUMNS
        if getattr(row, item) is not None
    }
    return MeasurementRecord(
        record_id=row.id,
        student_id=row.student_id,
        year=row.year,
        class_id=row.class_id,
        grade_id=row.grade_id,
        gender=gender,
        values=values,
        composite_total=row.total_score,
        class_rank=row.class_rank,
        grade_rank=row.grade_rank
    )


def _to_profile(student: Student, grade: int) -> StudentProfile:
    return StudentProfile(
        student_id=student.id,
        name=student.name,
        gender=student.gender,
        class_id=student.class_id,
        grade_id=grade
    )


def _to_class(row: ClassInfo) -> ClassSummary:
    return ClassSummary(class_id=row.id, class_name=row.class_name, grade_id=row.grade)


def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _rule_from_data(rule_data: Dict[str, Any], rule_id: int = 0) -> GradingRule:
    return GradingRule(
        rule_id=rule_id,
        year=int(rule_data['year']),
        grade_min=int(rule_data['grade_min']),
        grade_max=int(rule_data['grade_max']),
        gender=enum_value(rule_data['gender']),
        item=enum_value(rule_data['item']),
        excellent_threshold=rule_data.get('excellent_threshold'),
        good_threshold=rule_data.get('good_threshold'),
        pass_threshold=rule_data.get('pass_threshold'),
        fail_max=rule_data.get('fail_max'),
        is_time_based=bool(rule_data.get('is_time_based', False)),
        unit=rule_data.get('unit') or '',
        active=bool(rule_data.get('active', True)),
        name=rule_data.get('name') or ''
    )


def _apply_rule(row: EvaluationStandard, rule: GradingRule, now: datetime, creating: bool = True):
    row.name = rule.name or f"{rule.year}年{rule.item}标准"
    row.year = rule.year
    row.grade_min = rule.grade_min
    row.grade_max = rule.grade_max
    row.gender = rule.gender
    row.sport_item = rule.item
    row.excellent_min = rule.excellent_threshold
    row.good_min = rule.good_threshold
    row.pass_min = rule.pass_threshold
    row.fail_max = rule.fail_max
    row.is_time_based = rule.is_time_based
    row.unit = rule.unit
    row.is_active = rule.active
    if creating:
        row.created_at = now
    row.updated_at = now
