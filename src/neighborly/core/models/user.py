"""User Domain Model

users 表保存资料与派生统计（评分均值、完成数、帮助次数）。
身份本身由上游认证代理提供，这里只保存稳定的 user id。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from .base import ApiModel


class UserProfile(ApiModel):
    """公开资料 -- 嵌入在任务、消息、会话响应中"""

    id: str = Field(description="用户 ID（来自身份提供方）")
    first_name: str | None = Field(default=None, description="名")
    last_name: str | None = Field(default=None, description="姓")
    profile_image_url: str | None = Field(default=None, description="头像 URL")
    rating: Decimal = Field(default=Decimal("0.00"), description="评分均值，两位小数")
    completed_tasks: int = Field(default=0, description="完成的任务数")
    help_given: int = Field(default=0, description="提供帮助次数")
    help_received: int = Field(default=0, description="获得帮助次数")


class User(UserProfile):
    """完整资料 -- 仅本人可见"""

    email: str | None = Field(default=None, description="邮箱")
    phone: str | None = Field(default=None, description="电话")
    address: str | None = Field(default=None, description="地址")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    def to_profile(self) -> UserProfile:
        """裁剪为公开资料"""
        return UserProfile.model_validate(self.model_dump(include=set(UserProfile.model_fields)))
