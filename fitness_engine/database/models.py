# SQLAlchemy模型定义
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Text, Float, Boolean, CHAR,
    Numeric, ForeignKey, UniqueConstraint, Index, func
)
from .connection import Base


class ClassInfo(Base):
    """班级信息"""
    __tablename__ = "class_info"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_name = Column(String(50), nullable=False)
    grade = Column(Integer, nullable=False, index=True, comment="年级(1-12)")
    department = Column(String(50))
    academic_year = Column(Integer, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Student(Base):
    """学生信息"""
    __tablename__ = "student_info"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    register_number = Column(String(50), nullable=False, unique=True)
    name = Column(String(50), nullable=False, index=True)
    gender = Column(CHAR(1), nullable=False, comment="0女 1男")
    class_id = Column(Integer, ForeignKey("class_info.id"), nullable=False, index=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class SportData(Base):
    """学生年度体测数据"""
    __tablename__ = "sport_data"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    student_id = Column(BigInteger, ForeignKey("student_info.id"), nullable=False)
    year = Column(Integer, nullable=False)
    grade_id = Column(Integer, nullable=False)
    class_id = Column(Integer, nullable=False)

    # 体测项目原始数值
    height = Column(Float)
    weight = Column(Float)
    vital_capacity = Column(Float)
    fifty_run = Column(Float)
    standing_long_jump = Column(Float)
    sit_and_reach = Column(Float)
    eight_hundred_run = Column(Float)
    one_thousand_run = Column(Float)
    sit_up = Column(Float)
    pull_up = Column(Float)

    # 派生结果
    total_score = Column(Float)
    class_rank = Column(Integer)
    grade_rank = Column(Integer)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('student_id', 'year', name='uk_student_year'),
        Index('idx_year_class', 'year', 'class_id'),
        Index('idx_year_grade', 'year', 'grade_id'),
    )


class EvaluationStandard(Base):
    """体测评分标准"""
    __tablename__ = "evaluation_standards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    year = Column(Integer, nullable=False)
    grade_min = Column(Integer, nullable=False)
    grade_max = Column(Integer, nullable=False)
    gender = Column(CHAR(1), nullable=False)
    sport_item = Column(String(50), nullable=False)
    excellent_min = Column(Numeric(10, 2, asdecimal=False))
    good_min = Column(Numeric(10, 2, asdecimal=False))
    pass_min = Column(Numeric(10, 2, asdecimal=False))
    fail_max = Column(Numeric(10, 2, asdecimal=False))
    is_time_based = Column(Boolean, nullable=False, default=False)
    unit = Column(String(20), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_standard_lookup', 'year', 'gender', 'sport_item', 'is_active'),
    )
