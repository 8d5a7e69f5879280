"""人设提示词提供者接口"""

from abc import ABC, abstractmethod
from typing import Callable


class PersonaProvider(ABC):
    """返回当前系统提示词（未配置时返回空字符串）"""

    @abstractmethod
    def get_system_prompt(self) -> str:
        pass


class StaticPersonaProvider(PersonaProvider):
    """固定文本的人设提示词"""

    def __init__(self, prompt: str = ""):
        self.prompt = prompt

    def get_system_prompt(self) -> str:
        return self.prompt


class FunctionPersonaProvider(PersonaProvider):
    """由零参数函数动态生成提示词"""

    def __init__(self, func: Callable[[], str]):
        self.func = func

    def get_system_prompt(self) -> str:
        return self.func()
