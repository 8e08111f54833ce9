# 领域数据模型和结果类
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field, asdict
from datetime import datetime

from .enums import enum_value


@dataclass
class GradingRule:
    """评分标准（适用范围：年份、年级区间、性别、项目）"""
    rule_id: int
    year: int
    grade_min: int
    grade_max: int
    gender: str
    item: str
    excellent_threshold: Optional[float] = None
    good_threshold: Optional[float] = None
    pass_threshold: Optional[float] = None
    fail_max: Optional[float] = None
    is_time_based: bool = False
    unit: str = ""
    active: bool = True
    created_at: Optional[datetime] = None
    name: str = ""

    def covers(self, year: int, grade: int, gender: str, item: str) -> bool:
        """判断标准是否适用于给定的查询条件"""
        return (
            self.active
            and self.year == year
            and self.grade_min <= grade <= self.grade_max
            and enum_value(self.gender) == enum_value(gender)
            and enum_value(self.item) == enum_value(item)
        )

    def overlaps(self, other: "GradingRule") -> bool:
        """判断两个标准的适用范围是否重叠"""
        return (
            self.year == other.year
            and enum_value(self.gender) == enum_value(other.gender)
            and enum_value(self.item) == enum_value(other.item)
            and self.grade_min <= other.grade_max
            and other.grade_min <= self.grade_max
        )


@dataclass
class RuleFilter:
    """评分标准查询条件"""
    year: Optional[int] = None
    grade: Optional[int] = None
    gender: Optional[str] = None
    item: Optional[str] = None
    active_only: bool = True


@dataclass
class ScopeFilter:
    """体测数据查询范围"""
    scope_type: str
    scope_id: Optional[int] = None


@dataclass
class StudentProfile:
    """学生基本信息"""
    student_id: int
    name: str
    gender: str
    class_id: int
    grade_id: int


@dataclass
class ClassSummary:
    """班级基本信息"""
    class_id: int
    class_name: str
    grade_id: int


@dataclass
class MeasurementRecord:
    """学生年度体测记录"""
    record_id: Optional[int]
    student_id: int
    year: int
    class_id: int
    grade_id: int
    gender: str
    values: Dict[str, Any] = field(default_factory=dict)
    composite_total: Optional[float] = None
    class_rank: Optional[int] = None
    grade_rank: Optional[int] = None


@dataclass
class ItemScore:
    """单项评价结果"""
    item: str
    raw_value: float
    tier: str
    tier_name: str
    score: float
    rule_id: int
    unit: str = ""


@dataclass
class ItemError:
    """单项评价错误"""
    item: str
    kind: str
    message: str
    raw_value: Any = None


@dataclass
class CompositeScore:
    """综合得分"""
    total: float
    scored_count: int
    weight_sum: float

    @property
    def normalized(self) -> float:
        """按已评分项目权重归一后的百分制得分"""
        if self.weight_sum <= 0:
            return 0.0
        return self.total / self.weight_sum


@dataclass
class ScoredRecord:
    """单条记录的评价结果（部分项目可能带错误）"""
    record_id: Optional[int]
    student_id: int
    year: int
    item_scores: Dict[str, ItemScore]
    errors: List[ItemError]
    composite_total: Optional[float]
    scored_count: int

    @property
    def is_complete(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RankAssignment:
    """排名分配结果（不单独持久化）"""
    record_id: int
    scope_id: int
    scope_type: str
    rank: int


@dataclass
class RecomputeReport:
    """排名重算结果"""
    year: int
    classes_updated: int
    grades_updated: int
    records_updated: int
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ItemBreakdown:
    """单个体测项目的统计"""
    item: str
    item_name: str
    unit: str
    measured_count: int
    average: float
    min: float
    max: float
    excellent_count: int = 0
    good_count: int = 0
    pass_count: int = 0
    fail_count: int = 0
    ungraded_count: int = 0


@dataclass
class StatSnapshot:
    """某范围某年度的统计快照"""
    scope_type: str
    scope_id: Optional[int]
    year: int
    total_students: int
    submitted_count: int
    submission_rate: float
    average_score: float
    excellent_count: int
    good_count: int
    pass_count: int
    fail_count: int
    excellent_rate: float
    good_rate: float
    pass_rate: float
    fail_rate: float
    qualified_rate: float
    scope_name: Optional[str] = None
    total_classes: Optional[int] = None
    total_grades: Optional[int] = None
    item_breakdown: List[ItemBreakdown] = field(default_factory=list)
    body_metrics: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class YearPoint:
    """趋势序列中的一个年度点"""
    year: int
    average_score: float
    excellent_rate: float
    pass_rate: float
    total_students: int
    submitted_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
