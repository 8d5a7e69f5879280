"""混合记忆引擎：会话消息、语义记忆与上下文构建"""

from .memory import *
from .memory import __all__ as _memory_all
from .context import (
    BuildContext,
    ContextBuildOptions,
    ContextBuilder,
    PersonaProvider,
    StaticPersonaProvider,
    FunctionPersonaProvider,
    estimate_tokens,
)
from .config import Settings

__version__ = "0.1.0"
__all__ = _memory_all + [
    "BuildContext",
    "ContextBuildOptions",
    "ContextBuilder",
    "PersonaProvider",
    "StaticPersonaProvider",
    "FunctionPersonaProvider",
    "estimate_tokens",
    "Settings",
]
