# 枚举定义
import enum


class Gender(str, enum.Enum):
    """性别枚举（与学籍数据保持一致：1男，0女）"""
    MALE = "1"
    FEMALE = "0"


class SportItem(str, enum.Enum):
    """体测项目枚举（与SportData字段对应）"""
    HEIGHT = "height"
    WEIGHT = "weight"
    VITAL_CAPACITY = "vital_capacity"
    FIFTY_RUN = "fifty_run"
    STANDING_LONG_JUMP = "standing_long_jump"
    SIT_AND_REACH = "sit_and_reach"
    EIGHT_HUNDRED_RUN = "eight_hundred_run"
    ONE_THOUSAND_RUN = "one_thousand_run"
    SIT_UP = "sit_up"
    PULL_UP = "pull_up"


class GradeTier(str, enum.Enum):
    """等级枚举"""
    EXCELLENT = "excellent"
    GOOD = "good"
    PASS = "pass"
    FAIL = "fail"


class ScopeType(str, enum.Enum):
    """统计/排名范围"""
    CLASS = "class"
    GRADE = "grade"
    SCHOOL = "school"


class ItemErrorKind(str, enum.Enum):
    """单项评价错误类型"""
    NOT_APPLICABLE_STANDARD = "not_applicable_standard"
    INVALID_MEASUREMENT = "invalid_measurement"


# 等级中文名称
TIER_NAMES = {
    GradeTier.EXCELLENT: "优秀",
    GradeTier.GOOD: "良好",
    GradeTier.PASS: "及格",
    GradeTier.FAIL: "不及格",
}

# 项目名称与单位
SPORT_ITEM_INFO = {
    SportItem.HEIGHT: {"name": "身高", "unit": "cm"},
    SportItem.WEIGHT: {"name": "体重", "unit": "kg"},
    SportItem.VITAL_CAPACITY: {"name": "肺活量", "unit": "mL"},
    SportItem.FIFTY_RUN: {"name": "50米跑", "unit": "秒"},
    SportItem.STANDING_LONG_JUMP: {"name": "立定跳远", "unit": "cm"},
    SportItem.SIT_AND_REACH: {"name": "坐位体前屈", "unit": "cm"},
    SportItem.EIGHT_HUNDRED_RUN: {"name": "800米跑", "unit": "秒"},
    SportItem.ONE_THOUSAND_RUN: {"name": "1000米跑", "unit": "秒"},
    SportItem.SIT_UP: {"name": "仰卧起坐", "unit": "个"},
    SportItem.PULL_UP: {"name": "引体向上", "unit": "个"},
}


def enum_value(value) -> str:
    """统一取枚举值（字符串枚举与普通字符串混用时作为字典键）"""
    if isinstance(value, enum.Enum):
        return value.value
    return str(value)
