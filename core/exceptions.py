"""
自定义异常映射与全局异常处理器
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse, PlainTextResponse
import traceback
from starlette import status as http_status

from .response import error_response
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException


# 非标准状态码：客户端在轮询结束前断开连接
HTTP_499_CLIENT_CLOSED_REQUEST = 499


def business_code_to_http_status(code: int) -> int:
    """根据业务码映射HTTP状态码（默认400）。"""
    mapping = {
        BusinessCode.PARAM_MISSING: http_status.HTTP_400_BAD_REQUEST,
        BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_400_BAD_REQUEST,

        PaymentCode.PROVIDER_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        PaymentCode.PROVIDER_RECOVERABLE: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        PaymentCode.CONFIGURATION_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        PaymentCode.SIGNATURE_ERROR: http_status.HTTP_400_BAD_REQUEST,
        PaymentCode.POLL_TIMEOUT: http_status.HTTP_504_GATEWAY_TIMEOUT,
        PaymentCode.PAYMENT_CANCELED: http_status.HTTP_409_CONFLICT,
        PaymentCode.POLL_ABORTED: HTTP_499_CLIENT_CLOSED_REQUEST,
    }
    return mapping.get(code, http_status.HTTP_400_BAD_REQUEST)


def register_exception_handlers(app: FastAPI):
    """
    注册全局异常处理器

    Args:
        app: FastAPI应用实例
    """

    logger = get_logger(__name__)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        """处理业务异常：消息原样透传为 {"error": message}"""
        status_code = business_code_to_http_status(exc.code)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "business_exception",
            code=int(exc.code),
            error_type=exc.error_type,
            error=exc.message,
            details=exc.details,
            status_code=status_code,
        )
        return JSONResponse(status_code=status_code, content=error_response(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理参数验证异常"""
        errors = exc.errors()

        # 提取第一个错误的详细信息
        first_error = errors[0] if errors else {}
        field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])
        reason = first_error.get("msg", "invalid request")
        message = f"Invalid {field}: {reason}" if field else f"Invalid request: {reason}"

        logger.warning("request_validation_failed", field=field, reason=reason)
        return JSONResponse(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            content=error_response(message),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """处理HTTP异常；未匹配的路径返回纯文本 404"""
        if exc.status_code == http_status.HTTP_404_NOT_FOUND:
            return PlainTextResponse("Page not found.", status_code=exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """处理所有未捕获的异常"""
        request_id = getattr(getattr(request, "state", object()), "request_id", None)

        logger.error(
            "unhandled_exception",
            request_id=request_id,
            error=str(exc),
            exc_info=True,
        )

        content = error_response("Internal server error")
        # 开发环境附带堆栈，便于排查
        if app.debug:
            content["traceback"] = traceback.format_exc()
        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
        )
