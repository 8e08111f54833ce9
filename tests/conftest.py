# 测试公共夹具：内存数据源
import copy
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest

from fitness_engine.calculation.evaluation import EvaluationEngine
from fitness_engine.calculation.standards import StandardCatalog
from fitness_engine.database.enums import Gender, ScopeType, SportItem, enum_value
from fitness_engine.database.repositories import GradingRuleSource, MeasurementSource, RosterSource
from fitness_engine.database.schemas import (
    GradingRule, RuleFilter, ScopeFilter, MeasurementRecord, StudentProfile, ClassSummary
)


class InMemoryRuleSource(GradingRuleSource):
    """内存评分标准数据源"""

    def __init__(self, rules: Optional[List[GradingRule]] = None):
        self.rules = list(rules or [])
        self.fetch_count = 0

    def fetch_grading_rules(self, rule_filter: RuleFilter) -> List[GradingRule]:
        self.fetch_count += 1
        return [
            rule for rule in self.rules
            if (rule_filter.year is None or rule.year == rule_filter.year)
            and (not rule_filter.active_only or rule.active)
        ]


class InMemoryMeasurementSource(MeasurementSource):
    """内存体测数据源"""

    def __init__(self, records: Optional[List[MeasurementRecord]] = None):
        self.records: Dict[int, MeasurementRecord] = {}
        self.save_calls: List[Dict[int, Tuple[Optional[int], Optional[int]]]] = []
        self._next_id = 1
        for record in records or []:
            self.add(record)

    def add(self, record: MeasurementRecord) -> MeasurementRecord:
        if record.record_id is None:
            record.record_id = self._next_id
        self._next_id = max(self._next_id, record.record_id + 1)
        self.records[record.record_id] = record
        return record

    def fetch_measurements(self, scope_filter: ScopeFilter, year: int) -> List[MeasurementRecord]:
        scope_type = enum_value(scope_filter.scope_type)
        result = []
        for record in sorted(self.records.values(), key=lambda r: r.record_id):
            if record.year != year:
                continue
            if scope_type == ScopeType.CLASS.value and record.class_id != scope_filter.scope_id:
                continue
            if scope_type == ScopeType.GRADE.value and record.grade_id != scope_filter.scope_id:
                continue
            result.append(copy.deepcopy(record))
        return result

    def get_measurement(self, student_id: int, year: int) -> Optional[MeasurementRecord]:
        for record in self.records.values():
            if record.student_id == student_id and record.year == year:
                return copy.deepcopy(record)
        return None

    def save_ranks(self, ranks: Dict[int, Tuple[Optional[int], Optional[int]]]) -> int:
        self.save_calls.append(dict(ranks))
        for record_id, (class_rank, grade_rank) in ranks.items():
            self.records[record_id].class_rank = class_rank
            self.records[record_id].grade_rank = grade_rank
        return len(ranks)

    def upsert_measurement(self, record: MeasurementRecord) -> MeasurementRecord:
        existing = self.get_measurement(record.student_id, record.year)
        stored = copy.deepcopy(record)
        stored.record_id = existing.record_id if existing else None
        return copy.deepcopy(self.add(stored))

    def ranks(self) -> Dict[int, Tuple[Optional[int], Optional[int]]]:
        return {
            record_id: (record.class_rank, record.grade_rank)
            for record_id, record in self.records.items()
        }


class InMemoryRosterSource(RosterSource):
    """内存学籍数据源"""

    def __init__(self, classes: Optional[List[ClassSummary]] = None,
                 students: Optional[List[StudentProfile]] = None):
        self.classes = list(classes or [])
        self.students = list(students or [])

    def fetch_class_roster(self, class_id: int) -> List[StudentProfile]:
        return [s for s in self.students if s.class_id == class_id]

    def fetch_grade_roster(self, grade_id: int) -> List[StudentProfile]:
        return [s for s in self.students if s.grade_id == grade_id]

    def fetch_school_roster(self) -> List[StudentProfile]:
        return list(self.students)

    def get_class(self, class_id: int) -> Optional[ClassSummary]:
        return next((c for c in self.classes if c.class_id == class_id), None)

    def list_classes(self, grade_id: Optional[int] = None) -> List[ClassSummary]:
        return [c for c in self.classes if grade_id is None or c.grade_id == grade_id]

    def list_grades(self) -> List[int]:
        return sorted({c.grade_id for c in self.classes})

    def get_student(self, student_id: int) -> Optional[StudentProfile]:
        return next((s for s in self.students if s.student_id == student_id), None)


def make_rule(rule_id: int = 1, item=SportItem.SIT_UP, excellent=None, good=None, passing=None,
              is_time_based: bool = False, year: int = 2024, grade_min: int = 1, grade_max: int = 6,
              gender=Gender.MALE, active: bool = True, created_at: Optional[datetime] = None,
              unit: str = "") -> GradingRule:
    """构造评分标准"""
    return GradingRule(
        rule_id=rule_id,
        year=year,
        grade_min=grade_min,
        grade_max=grade_max,
        gender=enum_value(gender),
        item=enum_value(item),
        excellent_threshold=excellent,
        good_threshold=good,
        pass_threshold=passing,
        is_time_based=is_time_based,
        unit=unit,
        active=active,
        created_at=created_at or datetime(2024, 1, 1)
    )


def make_record(record_id: Optional[int], student_id: int, class_id: int = 1, grade_id: int = 3,
                total: Optional[float] = None, year: int = 2024, gender=Gender.MALE,
                values: Optional[Dict] = None) -> MeasurementRecord:
    """构造体测记录"""
    return MeasurementRecord(
        record_id=record_id,
        student_id=student_id,
        year=year,
        class_id=class_id,
        grade_id=grade_id,
        gender=enum_value(gender),
        values=dict(values or {}),
        composite_total=total
    )


@pytest.fixture
def standard_rules() -> List[GradingRule]:
    """2024年 1-6年级男生标准"""
    return [
        make_rule(1, SportItem.SIT_UP, 90, 80, 60, unit="个"),
        make_rule(2, SportItem.FIFTY_RUN, 8.0, 8.5, 9.0, is_time_based=True, unit="秒"),
        make_rule(3, SportItem.STANDING_LONG_JUMP, 200, 180, 150, unit="cm"),
    ]


@pytest.fixture
def rule_source(standard_rules) -> InMemoryRuleSource:
    return InMemoryRuleSource(standard_rules)


@pytest.fixture
def catalog(rule_source) -> StandardCatalog:
    return StandardCatalog(rule_source)


@pytest.fixture
def engine(catalog) -> EvaluationEngine:
    return EvaluationEngine(catalog)


@pytest.fixture
def roster() -> InMemoryRosterSource:
    """两个三年级班级、一个四年级班级"""
    classes = [
        ClassSummary(class_id=1, class_name="三年级1班", grade_id=3),
        ClassSummary(class_id=2, class_name="三年级2班", grade_id=3),
        ClassSummary(class_id=3, class_name="四年级1班", grade_id=4),
    ]
    students = []
    student_id = 1
    for class_info in classes:
        for _ in range(4):
            students.append(StudentProfile(
                student_id=student_id,
                name=f"学生{student_id}",
                gender=Gender.MALE.value,
                class_id=class_info.class_id,
                grade_id=class_info.grade_id
            ))
            student_id += 1
    return InMemoryRosterSource(classes, students)
