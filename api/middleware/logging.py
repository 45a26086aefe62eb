"""
请求/响应日志中间件（纯 ASGI 实现）
记录所有HTTP请求和响应，包括耗时统计

请求体通过包装 receive 旁路采样，不提前消费、不改写字节流；
签名校验依赖原始字节的路径（/webhook）完全不采样。
"""
import json
import time
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.logging_config import get_logger, redact
from core.config import settings


logger = get_logger(__name__)


class LoggingMiddleware:
    """
    日志记录中间件

    功能：
    1. 记录请求信息（方法、路径、参数等）
    2. 记录响应信息（状态码、耗时等）
    3. 记录异常信息
    """

    # 跳过日志的路径
    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    # 不采样请求体的路径
    SKIP_BODY_PATHS = {"/webhook"}

    def __init__(self, app: ASGIApp):
        self.app = app
        self.enable_body_log_default: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_log_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http" or scope["path"] in self.SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        headers = Headers(scope=scope)
        request_info = self._get_request_info(scope, headers)
        logger.info("request_started", **request_info)

        capture_body = self._should_log_body(scope, headers)
        body_chunks: list[bytes] = []
        status_holder: dict[str, int] = {}

        async def receive_wrapper() -> Message:
            message = await receive()
            if capture_body and message["type"] == "http.request":
                captured = sum(len(c) for c in body_chunks)
                if captured < self.max_body_log_bytes:
                    body_chunks.append(message.get("body", b"")[: self.max_body_log_bytes - captured])
            return message

        async def send_wrapper(message: Message):
            if message["type"] == "http.response.start":
                status_holder["status_code"] = message["status"]
                duration = time.time() - start_time
                MutableHeaders(scope=message)["X-Process-Time"] = f"{duration:.3f}"
            await send(message)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.time() - start_time,
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

        if capture_body and body_chunks:
            request_info["body"] = self._sanitize_body(b"".join(body_chunks), headers)
        self._log_response(status_holder.get("status_code", 500), time.time() - start_time, request_info)

    def _get_request_info(self, scope: Scope, headers: Headers) -> dict:
        info: dict[str, Any] = {
            "method": scope["method"],
            "path": scope["path"],
        }
        query = scope.get("query_string", b"").decode("latin-1")
        if query:
            info["query"] = query
        user_agent = headers.get("User-Agent")
        if user_agent:
            info["user_agent"] = user_agent
        return info

    def _should_log_body(self, scope: Scope, headers: Headers) -> bool:
        if scope["method"] not in {"POST", "PUT", "PATCH"} or scope["path"] in self.SKIP_BODY_PATHS:
            return False
        # X-Log-Body: true/false 可按请求覆盖默认值
        header = (headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.enable_body_log_default and settings.DEBUG)

    def _sanitize_body(self, body: bytes, headers: Headers) -> Any:
        text = body.decode("utf-8", errors="ignore")
        if "application/json" not in headers.get("content-type", "").lower():
            return text
        try:
            parsed = json.loads(text)
        except ValueError:
            return text
        return redact(parsed)

    def _log_response(self, status_code: int, duration: float, request_info: dict):
        log_data = {
            "status_code": status_code,
            "duration": duration,
            **request_info,
        }
        if status_code < 400:
            logger.info("request_completed", **log_data)
        elif status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
