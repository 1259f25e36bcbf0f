"""模型公共基类与金额工具

对外 JSON 使用 camelCase 字段名，Python 内部保持 snake_case。
"""

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..config import MONEY_SCALE


class ApiModel(BaseModel):
    """所有领域模型的基类 -- camelCase 别名，允许按字段名构造"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


def quantize_money(value: Decimal | int | str) -> Decimal:
    """金额统一保留两位小数（四舍五入）"""
    return Decimal(value).quantize(Decimal(MONEY_SCALE), rounding=ROUND_HALF_UP)
