# 默认评分标准初始化
import logging
from typing import List, Dict, Any

from .enums import Gender, SportItem
from .repositories import EvaluationStandardRepository
from .schemas import RuleFilter

logger = logging.getLogger(__name__)

DEFAULT_STANDARD_YEAR = 2024

# (学段, 最小年级, 最大年级, 性别, 项目, 优秀, 良好, 及格, 是否时间类, 单位)
DEFAULT_STANDARDS = [
    # 小学1-6年级
    ("小学生", 1, 6, Gender.MALE, SportItem.HEIGHT, 130, 125, 120, False, "cm"),
    ("小学生", 1, 6, Gender.FEMALE, SportItem.HEIGHT, 128, 123, 118, False, "cm"),
    ("小学生", 1, 6, Gender.MALE, SportItem.WEIGHT, 35, 30, 25, False, "kg"),
    ("小学生", 1, 6, Gender.FEMALE, SportItem.WEIGHT, 32, 28, 24, False, "kg"),
    ("小学生", 1, 6, Gender.MALE, SportItem.VITAL_CAPACITY, 2000, 1800, 1500, False, "mL"),
    ("小学生", 1, 6, Gender.FEMALE, SportItem.VITAL_CAPACITY, 1800, 1600, 1400, False, "mL"),
    ("小学生", 1, 6, Gender.MALE, SportItem.FIFTY_RUN, 8.5, 9.0, 9.5, True, "秒"),
    ("小学生", 1, 6, Gender.FEMALE, SportItem.FIFTY_RUN, 9.0, 9.5, 10.0, True, "秒"),
    ("小学生", 1, 6, Gender.MALE, SportItem.SIT_AND_REACH, 15, 12, 8, False, "cm"),
    ("小学生", 1, 6, Gender.FEMALE, SportItem.SIT_AND_REACH, 18, 15, 12, False, "cm"),
    # 初中7-9年级
    ("初中生", 7, 9, Gender.FEMALE, SportItem.EIGHT_HUNDRED_RUN, 240, 270, 300, True, "秒"),
    ("初中生", 7, 9, Gender.MALE, SportItem.ONE_THOUSAND_RUN, 210, 240, 270, True, "秒"),
    ("初中生", 7, 9, Gender.MALE, SportItem.FIFTY_RUN, 7.5, 8.0, 8.5, True, "秒"),
    ("初中生", 7, 9, Gender.FEMALE, SportItem.FIFTY_RUN, 8.0, 8.5, 9.0, True, "秒"),
    ("初中生", 7, 9, Gender.MALE, SportItem.VITAL_CAPACITY, 3500, 3200, 2800, False, "mL"),
    ("初中生", 7, 9, Gender.FEMALE, SportItem.VITAL_CAPACITY, 2800, 2500, 2200, False, "mL"),
    ("初中生", 7, 9, Gender.MALE, SportItem.SIT_AND_REACH, 18, 15, 12, False, "cm"),
    ("初中生", 7, 9, Gender.FEMALE, SportItem.SIT_AND_REACH, 20, 17, 14, False, "cm"),
]


def build_default_standards(year: int = DEFAULT_STANDARD_YEAR) -> List[Dict[str, Any]]:
    """生成某年度的默认评分标准数据"""
    standards = []
    for (stage, grade_min, grade_max, gender, item, excellent, good, passing,
         is_time_based, unit) in DEFAULT_STANDARDS:
        gender_name = "男" if gender == Gender.MALE else "女"
        standards.append({
            'name': f"{year}年{stage}{item.value}标准({gender_name})",
            'year': year,
            'grade_min': grade_min,
            'grade_max': grade_max,
            'gender': gender.value,
            'item': item.value,
            'excellent_threshold': excellent,
            'good_threshold': good,
            'pass_threshold': passing,
            'is_time_based': is_time_based,
            'unit': unit,
            'active': True,
        })
    return standards


def seed_default_standards(repository: EvaluationStandardRepository,
                           year: int = DEFAULT_STANDARD_YEAR) -> int:
    """
    初始化默认评分标准

    该年度已有评分标准（含已停用）时不做任何修改。

    Returns:
        新建的标准数量
    """
    if repository.fetch_grading_rules(RuleFilter(year=year, active_only=False)):
        logger.info(f"{year}年度已有评分标准，跳过默认标准初始化")
        return 0

    created = repository.batch_create_rules(build_default_standards(year))
    logger.info(f"成功初始化 {len(created)} 个{year}年度默认评分标准")
    return len(created)
