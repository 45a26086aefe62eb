"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import pages as pages_routes
from api.routes import payments as payments_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.ports.payment_gateway import TerminalGateway
from core.config import Settings, settings as default_settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger, configure_logging
from core.response import HealthBody
from core.settings import PaymentSettings, load_payment_settings
from infrastructure.external.payments import get_payment_gateway


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging(default_settings)
logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    payment_settings: Optional[PaymentSettings] = None,
    gateway: Optional[TerminalGateway] = None,
) -> FastAPI:
    """组装应用：配置只构建一次，挂到 app.state，由依赖项注入到各处理函数。"""
    settings = settings or default_settings
    payment_settings = payment_settings or load_payment_settings()
    gateway = gateway or get_payment_gateway(payment_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        if not payment_settings.stripe_secret_key:
            logger.warning("payment_secret_key_missing", message="STRIPE_SECRET_KEY not set; payment endpoints will fail")
        if not payment_settings.reader_id:
            logger.warning("payment_reader_missing", message="READER_ID not set; reader endpoints will fail")
        if not payment_settings.stripe_webhook_secret:
            logger.warning("webhook_secret_missing", message="STRIPE_WEBHOOK_SECRET not set; webhooks will be rejected")
        logger.info(
            "application_started",
            port=settings.PORT,
            reader_id=payment_settings.reader_id,
            poll_interval=payment_settings.terminal.poll_interval_seconds,
            poll_timeout=payment_settings.terminal.poll_timeout_seconds,
        )
        yield
        await app.state.payment_gateway.aclose()
        logger.info("application_shutdown", message="Application shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="Card-present POS bridge for Stripe Terminal readers",
    )
    app.state.settings = settings
    app.state.payment_settings = payment_settings
    app.state.payment_gateway = gateway

    # 添加中间件（注意顺序：后添加的在外层，先执行）
    # 1. 日志中间件（依赖request_id上下文）
    app.add_middleware(LoggingMiddleware)
    # 2. Request ID中间件（为日志绑定request_id）
    app.add_middleware(RequestIDMiddleware)

    # 3. CORS中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册全局异常处理器
    register_exception_handlers(app)

    # 注册路由
    app.include_router(pages_routes.router)
    app.include_router(payments_routes.router)

    @app.get("/health", tags=["Health"], response_model=HealthBody)
    async def health_check():
        """健康检查端点"""
        return {"status": "healthy", "version": settings.VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level="debug" if default_settings.DEBUG else "info",
    )
