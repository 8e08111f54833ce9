# 评价引擎异常定义


class FitnessEngineError(Exception):
    """评价引擎异常基类"""
    pass


class NotApplicableStandardError(FitnessEngineError):
    """没有适用的评分标准，该项目不参与计分"""

    def __init__(self, year: int, grade: int, gender: str, item: str):
        self.year = year
        self.grade = grade
        self.gender = gender
        self.item = item
        super().__init__(
            f"未找到适用的评分标准: 年份={year}, 年级={grade}, 性别={gender}, 项目={item}"
        )


class InvalidMeasurementError(FitnessEngineError):
    """体测原始数值无效（非数值或超出合理范围）"""

    def __init__(self, item: str, value, reason: str):
        self.item = item
        self.value = value
        self.reason = reason
        super().__init__(f"{item}数值无效({value}): {reason}")


class UnknownScopeError(FitnessEngineError):
    """请求的班级/年级/学生不存在"""

    def __init__(self, scope_type: str, scope_id):
        self.scope_type = scope_type
        self.scope_id = scope_id
        super().__init__(f"{scope_type} {scope_id} 不存在")


class ConcurrentRecomputeError(FitnessEngineError):
    """同一年份的排名重算正在进行"""

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"{year}年度排名正在重算，请稍后再试")
