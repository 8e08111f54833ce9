from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime


class ItemScoreResponse(BaseModel):
    """单项评价响应模型"""
    item: str
    raw_value: float
    tier: str
    tier_name: str
    score: float = Field(..., ge=0.0, le=100.0)
    rule_id: int
    unit: str = ""

    class Config:
        from_attributes = True


class ItemErrorResponse(BaseModel):
    """单项错误响应模型"""
    item: str
    kind: str
    message: str
    raw_value: Any = None

    class Config:
        from_attributes = True


class ScoredRecordResponse(BaseModel):
    """评价结果响应模型"""
    record_id: Optional[int]
    student_id: int
    year: int
    item_scores: Dict[str, ItemScoreResponse]
    errors: List[ItemErrorResponse]
    composite_total: Optional[float]
    scored_count: int

    class Config:
        from_attributes = True


class BatchSubmitResponse(BaseModel):
    """批量提交响应模型"""
    success: int
    failed: List[Dict[str, Any]]


class RecomputeReportResponse(BaseModel):
    """排名重算响应模型"""
    year: int
    classes_updated: int
    grades_updated: int
    records_updated: int
    duration: float

    class Config:
        from_attributes = True


class ItemBreakdownResponse(BaseModel):
    """项目统计响应模型"""
    item: str
    item_name: str
    unit: str
    measured_count: int
    average: float
    min: float
    max: float
    excellent_count: int
    good_count: int
    pass_count: int
    fail_count: int
    ungraded_count: int

    class Config:
        from_attributes = True


class StatSnapshotResponse(BaseModel):
    """统计快照响应模型"""
    scope_type: str
    scope_id: Optional[int]
    scope_name: Optional[str] = None
    year: int
    total_students: int
    submitted_count: int
    submission_rate: float = Field(..., ge=0.0, le=1.0, description="提交率")
    average_score: float = Field(..., description="平均分")
    excellent_count: int
    good_count: int
    pass_count: int
    fail_count: int
    excellent_rate: float = Field(..., ge=0.0, le=1.0, description="优秀率")
    good_rate: float = Field(..., ge=0.0, le=1.0, description="良好率")
    pass_rate: float = Field(..., ge=0.0, le=1.0, description="及格率（及格档）")
    fail_rate: float = Field(..., ge=0.0, le=1.0, description="不及格率")
    qualified_rate: float = Field(..., ge=0.0, le=1.0, description="及格以上比率")
    total_classes: Optional[int] = None
    total_grades: Optional[int] = None
    item_breakdown: List[ItemBreakdownResponse] = []
    body_metrics: Optional[Dict[str, float]] = None

    class Config:
        from_attributes = True


class YearPointResponse(BaseModel):
    """趋势年度点响应模型"""
    year: int
    average_score: float
    excellent_rate: float
    pass_rate: float
    total_students: int
    submitted_count: int

    class Config:
        from_attributes = True


class GradingRuleResponse(BaseModel):
    """评分标准响应模型"""
    rule_id: int
    name: str
    year: int
    grade_min: int
    grade_max: int
    gender: str
    item: str
    excellent_threshold: Optional[float]
    good_threshold: Optional[float]
    pass_threshold: Optional[float]
    fail_max: Optional[float]
    is_time_based: bool
    unit: str
    active: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ErrorResponse(BaseModel):
    """错误响应模型"""
    error: str
    detail: Optional[str] = None
