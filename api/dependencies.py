"""
API依赖项 - 从应用状态取出配置与网关，按请求组装应用服务
"""
from fastapi import Depends, Request

from application.ports.payment_gateway import TerminalGateway
from application.services.payment_service import PaymentService
from application.services.webhook_relay import WebhookRelay
from core.config import Settings
from core.settings import PaymentSettings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_payment_settings(request: Request) -> PaymentSettings:
    return request.app.state.payment_settings


def get_terminal_gateway(request: Request) -> TerminalGateway:
    return request.app.state.payment_gateway


async def get_payment_service(
    settings: PaymentSettings = Depends(get_payment_settings),
    gateway: TerminalGateway = Depends(get_terminal_gateway),
) -> PaymentService:
    return PaymentService(gateway=gateway, settings=settings)


async def get_webhook_relay(
    settings: PaymentSettings = Depends(get_payment_settings),
    gateway: TerminalGateway = Depends(get_terminal_gateway),
) -> WebhookRelay:
    return WebhookRelay(gateway=gateway, secret=settings.stripe_webhook_secret)
