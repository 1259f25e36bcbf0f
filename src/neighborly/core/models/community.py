"""Community Domain Model"""

from datetime import datetime

from pydantic import Field

from .base import ApiModel
from .enums import VerificationMethod


class Community(ApiModel):
    """社区 -- 任务的归属范围，只有成员可读写其中的任务"""

    id: str = Field(description="唯一标识，ULID 格式")
    name: str = Field(description="社区名称")
    description: str | None = Field(default=None, description="社区简介")
    verification_method: VerificationMethod = Field(description="加入验证方式")
    verification_data: str | None = Field(
        default=None,
        exclude=True,
        description="验证数据（口令等），永不对外返回",
    )
    show_real_names: bool = Field(default=False, description="是否展示真实姓名")
    show_addresses: bool = Field(default=False, description="是否展示地址")
    member_count: int = Field(default=0, description="成员数（缓存值）")
    creator_id: str = Field(description="创建者 ID")
    created_at: datetime = Field(description="创建时间")


class CommunityMember(ApiModel):
    """社区成员关系"""

    id: str = Field(description="唯一标识，ULID 格式")
    user_id: str
    community_id: str
    joined_at: datetime
