"""领域异常体系

路由层统一捕获并转换为 {"error": {"code", "message"}} 响应，
status_code 为对应的 HTTP 状态码。
"""


class NeighborlyError(Exception):
    """领域基础异常"""

    status_code: int = 500
    default_code: str = "OPERATION_FAILED"

    def __init__(self, message: str, code: str | None = None) -> None:
        """
        Args:
            message: 面向客户端的错误描述
            code: 机器可读错误码，缺省使用类的 default_code
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationFailedError(NeighborlyError):
    """输入不合法（可修改后重新提交）"""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class UnauthorizedError(NeighborlyError):
    """缺少身份或身份已过期，需要重新认证"""

    status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(NeighborlyError):
    """操作者无权执行该操作"""

    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(NeighborlyError):
    """引用的资源不存在"""

    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str) -> None:
        """
        Args:
            resource: 资源名称，如 "Task"
            resource_id: 资源 ID
        """
        super().__init__(
            f"{resource} with id {resource_id} does not exist",
            code=f"{resource.upper()}_NOT_FOUND",
        )
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(NeighborlyError):
    """与已有数据冲突（如任务已被他人接受、重复评分）"""

    status_code = 409
    default_code = "CONFLICT"


class InvalidStateError(NeighborlyError):
    """当前状态下不允许该操作"""

    status_code = 409
    default_code = "INVALID_STATE"
