from __future__ import annotations

"""
错误上报（最小版本）。

当前提供：
- `ErrorReporter` Protocol：定义 report 接口
- `LoggingErrorReporter`：写到日志（带 traceback），CI 日志里可直接看到

后续扩展点：
- 接入 Sentry 等错误追踪服务
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class ErrorReporter(Protocol):
    """错误上报接口协议（用于依赖倒置，方便替换实现）。"""

    def report(self, error: BaseException) -> None: ...


class LoggingErrorReporter:
    """默认实现：只记日志，不向外发送。"""

    def report(self, error: BaseException) -> None:
        logger.error("Unexpected error reported", exc_info=(type(error), error, error.__traceback__))


@dataclass
class InMemoryErrorReporter:
    """内存实现：只用于开发/测试。"""

    errors: list[BaseException] = field(default_factory=list)

    def report(self, error: BaseException) -> None:
        self.errors.append(error)
