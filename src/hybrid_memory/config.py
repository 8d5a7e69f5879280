"""记忆引擎配置管理 - 基于 pydantic-settings

配置优先级（从高到低）：
1. 代码传入参数
2. .env 文件
3. 系统环境变量
4. 默认值
"""

import os
from typing import Optional, Dict, Any, Literal, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource

from .memory.models import SessionConfig, DEFAULT_MAX_MESSAGES, DEFAULT_SESSION_TTL_MS
from .context.base import ContextBuildOptions


class Settings(BaseSettings):
    """配置类 - 支持.env文件和环境变量"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HYBRID_MEMORY_",
        case_sensitive=False,
        extra="ignore",
    )

    # 会话记忆
    max_messages: int = Field(default=DEFAULT_MAX_MESSAGES, ge=1, description="单个会话保留的最大消息数")
    session_ttl_ms: int = Field(default=DEFAULT_SESSION_TTL_MS, ge=1, description="会话过期时间(毫秒)")

    # 上下文构建
    max_context_tokens: int = Field(default=4096, ge=1, description="上下文 token 预算")
    context_max_messages: int = Field(default=20, ge=0, description="构建上下文时读取的最近消息数")
    include_persona_prompt: bool = Field(default=True, description="是否包含人设提示词")
    include_memories: bool = Field(default=True, description="是否检索语义记忆")
    memory_search_limit: int = Field(default=5, ge=1, description="语义检索返回条数")

    # 语义记忆 (Mem0)
    default_importance: float = Field(default=0.5, ge=0.0, le=1.0, description="记忆默认重要度")
    mem0_api_key: Optional[str] = Field(default=None, validate_default=True, description="Mem0 API密钥")
    mem0_api_base: str = Field(default="https://api.mem0.ai", description="Mem0 API基础URL")
    mem0_timeout: float = Field(default=30.0, gt=0, description="Mem0 请求超时(秒)")

    # 日志
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """自定义配置源优先级：代码传入 > .env文件 > 环境变量 > 默认值"""
        return init_settings, dotenv_settings, env_settings, file_secret_settings

    @field_validator("mem0_api_key", mode="before")
    @classmethod
    def validate_mem0_api_key(cls, v: Optional[str]) -> Optional[str]:
        """加载 API Key，支持 MEM0_API_KEY"""
        if v:
            return v
        return os.getenv("MEM0_API_KEY") or None

    @field_validator("mem0_api_base")
    @classmethod
    def strip_api_base(cls, v: str) -> str:
        return v.rstrip("/")

    def session_config(self) -> SessionConfig:
        return SessionConfig(max_messages=self.max_messages, ttl=self.session_ttl_ms)

    def context_options(self) -> ContextBuildOptions:
        return ContextBuildOptions(
            max_tokens=self.max_context_tokens,
            max_messages=self.context_max_messages,
            include_persona_prompt=self.include_persona_prompt,
            include_memories=self.include_memories,
            memory_limit=self.memory_search_limit,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """从字典创建配置"""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（隐藏敏感信息）"""
        data = self.model_dump()
        if data.get("mem0_api_key"):
            key = data["mem0_api_key"]
            data["mem0_api_key"] = "***" + key[-4:] if len(key) > 4 else "***"
        return data
