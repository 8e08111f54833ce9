from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any

from ..database.enums import Gender, SportItem


class MeasurementSubmitRequest(BaseModel):
    """提交体测数据请求模型"""
    student_id: int = Field(..., description="学生ID", gt=0)
    year: int = Field(..., description="年份", ge=2000, le=2100)
    values: Dict[str, Any] = Field(..., description="项目原始数值，键为项目代码")

    @field_validator('values')
    @classmethod
    def validate_items(cls, v):
        """验证项目代码"""
        known = {item.value for item in SportItem}
        unknown = [key for key in v if key not in known]
        if unknown:
            raise ValueError(f'未知体测项目: {unknown}')
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "student_id": 1001,
                "year": 2024,
                "values": {"height": 165.5, "weight": 52.0, "fifty_run": 8.2, "sit_up": 40}
            }
        }


class BatchSubmitRequest(BaseModel):
    """批量提交体测数据请求模型"""
    items: List[MeasurementSubmitRequest] = Field(..., description="体测数据列表", min_length=1)


class CompareClassesRequest(BaseModel):
    """班级对比请求模型"""
    class_ids: List[int] = Field(..., description="班级ID列表", min_length=1)
    year: int = Field(..., description="年份")


class GradingRuleCreateRequest(BaseModel):
    """创建评分标准请求模型"""
    name: str = Field("", description="标准名称", max_length=100)
    description: Optional[str] = Field(None, description="标准描述")
    year: int = Field(..., description="适用年份")
    grade_min: int = Field(..., description="最小年级", ge=1, le=12)
    grade_max: int = Field(..., description="最大年级", ge=1, le=12)
    gender: Gender = Field(..., description="性别(0女 1男)")
    item: SportItem = Field(..., description="体测项目")
    excellent_threshold: Optional[float] = Field(None, description="优秀标准")
    good_threshold: Optional[float] = Field(None, description="良好标准")
    pass_threshold: Optional[float] = Field(None, description="及格标准")
    fail_max: Optional[float] = Field(None, description="不及格最高标准")
    is_time_based: bool = Field(False, description="是否时间类项目（值越小越好）")
    unit: str = Field("", description="单位", max_length=20)


class GradingRuleBatchCreateRequest(BaseModel):
    """批量创建评分标准请求模型"""
    rules: List[GradingRuleCreateRequest] = Field(..., description="评分标准列表", min_length=1)


class GradingRuleUpdateRequest(BaseModel):
    """更新评分标准请求模型（只更新提交的字段）"""
    name: Optional[str] = Field(None, description="标准名称", max_length=100)
    description: Optional[str] = Field(None, description="标准描述")
    grade_min: Optional[int] = Field(None, description="最小年级", ge=1, le=12)
    grade_max: Optional[int] = Field(None, description="最大年级", ge=1, le=12)
    excellent_threshold: Optional[float] = Field(None, description="优秀标准")
    good_threshold: Optional[float] = Field(None, description="良好标准")
    pass_threshold: Optional[float] = Field(None, description="及格标准")
    fail_max: Optional[float] = Field(None, description="不及格最高标准")
    is_time_based: Optional[bool] = Field(None, description="是否时间类项目")
    unit: Optional[str] = Field(None, description="单位", max_length=20)
    active: Optional[bool] = Field(None, description="是否启用")
