# 数据精度处理工具
import pandas as pd
import numpy as np
from typing import Union, Optional
from decimal import Decimal, ROUND_HALF_UP
import logging

logger = logging.getLogger(__name__)


def format_decimal(value: Union[float, int, str, None], decimal_places: int = 2) -> Optional[float]:
    """
    格式化数值到指定小数位数

    Args:
        value: 需要格式化的数值
        decimal_places: 小数位数，默认2位

    Returns:
        格式化后的浮点数，无法解析时返回None
    """
    if value is None:
        return None

    if isinstance(value, str):
        if value.strip() == '' or value.strip().lower() in ['null', 'none', 'nan']:
            return None
        try:
            value = float(value)
        except ValueError:
            logger.warning(f"数值格式化失败: {value}")
            return None

    if not isinstance(value, (int, float, Decimal, np.integer, np.floating)):
        return None

    if pd.isna(value) or np.isinf(float(value)):
        return None

    # 使用Decimal四舍五入，避免浮点误差
    decimal_value = Decimal(str(value))
    rounded = decimal_value.quantize(
        Decimal(1).scaleb(-decimal_places),
        rounding=ROUND_HALF_UP
    )
    return float(rounded)


def safe_rate(numerator: Union[int, float], denominator: Union[int, float],
              decimal_places: int = 4) -> float:
    """
    计算比率，分母为0时返回0

    结果限制在[0, 1]区间内
    """
    if not denominator:
        return 0.0

    rate = float(numerator) / float(denominator)
    if rate < 0:
        logger.warning(f"比率小于0: {numerator}/{denominator}")
        rate = 0.0
    elif rate > 1:
        logger.warning(f"比率大于1: {numerator}/{denominator}")
        rate = 1.0

    return format_decimal(rate, decimal_places)


def safe_mean(values: pd.Series, decimal_places: int = 2) -> float:
    """计算平均值，空序列返回0"""
    values = pd.to_numeric(values, errors='coerce').dropna()
    if values.empty:
        return 0.0
    return format_decimal(values.mean(), decimal_places)
