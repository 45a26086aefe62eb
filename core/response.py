"""
统一响应格式定义

POS 前端依赖扁平的 JSON 结构（`{"error": ...}` / `{"success": true, ...}`），
因此这里不再包裹 code/message/data 信封。
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class ErrorBody(BaseModel):
    """错误响应体"""
    error: str


class IntentCreatedBody(BaseModel):
    payment_intent: str


class ProcessResultBody(BaseModel):
    success: bool
    payment_intent: dict[str, Any]


class SuccessBody(BaseModel):
    success: bool = True


class WebhookAckBody(BaseModel):
    received: bool = True


class HealthBody(BaseModel):
    status: str = "healthy"
    version: Optional[str] = None

    model_config = ConfigDict(extra="allow")


def error_response(message: str) -> dict:
    """
    创建错误响应

    Args:
        message: 错误消息（网关错误时原样透传）

    Returns:
        dict: `{"error": message}`
    """
    return ErrorBody(error=message).model_dump()


def success_response(**data: Any) -> dict:
    """
    创建成功响应

    Args:
        data: 附加字段，例如 payment_intent

    Returns:
        dict: `{"success": True, **data}`
    """
    return {"success": True, **data}
