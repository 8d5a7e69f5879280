"""上下文构建模块"""

from .base import BuildContext, ContextBuildOptions
from .persona import PersonaProvider, StaticPersonaProvider, FunctionPersonaProvider
from .utils import estimate_tokens, format_context, truncate_context
from .builder import ContextBuilder

__all__ = [
    "BuildContext",
    "ContextBuildOptions",
    "PersonaProvider",
    "StaticPersonaProvider",
    "FunctionPersonaProvider",
    "estimate_tokens",
    "format_context",
    "truncate_context",
    "ContextBuilder",
]
