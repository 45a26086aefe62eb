"""
配置文件 - 项目配置管理
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Terminal POS Bridge")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)

    # 监听地址（默认端口 4242）
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=4242)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["*"])

    # 静态页面目录（index.html / pos.html）
    STATIC_DIR: str = Field(default="public")

    # 日志级别；为空时 DEBUG 模式用 DEBUG，否则 INFO
    LOG_LEVEL: Optional[str] = Field(default=None)
    # 第三方 SDK（stripe/httpx）的日志级别，默认只保留告警
    LOG_LEVEL_THIRD_PARTY: str = Field(default="WARNING")

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
