"""
Structlog 日志配置模块

structlog 与标准库 logging 共用一条处理链：DEBUG 下控制台渲染，否则输出 JSON。
事件字段中的收据邮箱、电话、密钥等在渲染前统一脱敏，请求体日志复用同一份字段表。
"""
import json
import logging
from typing import Any, List, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter
from structlog.types import EventDict, WrappedLogger

from core.config import Settings, settings as default_settings


REDACTED = "***"

# 日志中需要脱敏的字段（小写比较）
SENSITIVE_KEYS = frozenset({
    "receipt_email",
    "email",
    "phone",
    "secret",
    "api_key",
    "token",
    "authorization",
    "stripe_secret_key",
    "stripe_webhook_secret",
})

# 每个请求都会打 INFO 的第三方 logger
THIRD_PARTY_LOGGERS = ("stripe", "httpx", "httpcore", "uvicorn.access")


def redact(value: Any) -> Any:
    """递归脱敏 dict/list 中的敏感字段。"""
    if isinstance(value, dict):
        return {
            k: (REDACTED if isinstance(k, str) and k.lower() in SENSITIVE_KEYS else redact(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def redact_sensitive(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog 处理器：事件字段脱敏。"""
    return redact(event_dict)


def resolve_level(app_settings: Settings) -> int:
    if app_settings.LOG_LEVEL:
        return logging.getLevelName(app_settings.LOG_LEVEL.upper())
    return logging.DEBUG if app_settings.DEBUG else logging.INFO


def get_renderer(app_settings: Settings) -> Any:
    if app_settings.DEBUG:
        return ConsoleRenderer(colors=True)

    # structlog 会向 serializer 传入 default/sort_keys 等参数
    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def configure_logging(app_settings: Optional[Settings] = None) -> None:
    """配置 structlog 并桥接标准库 logging（uvicorn、stripe SDK）到同一处理链。"""
    app_settings = app_settings or default_settings

    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_sensitive,
    ]

    structlog.configure(
        processors=[*shared_pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[ProcessorFormatter.remove_processors_meta, get_renderer(app_settings)],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolve_level(app_settings))

    # 访问日志由 LoggingMiddleware 负责；SDK 请求行只在需要时打开
    third_party_level = logging.getLevelName(app_settings.LOG_LEVEL_THIRD_PARTY.upper())
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """获取 structlog logger 实例。"""
    return structlog.get_logger(name)
