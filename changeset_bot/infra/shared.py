from __future__ import annotations

"""
只执行一次、可被多方 await 的异步结果。

用法：多个并发分支依赖同一个网络请求时，用 `SharedTask` 包一层，
第一次 `result()` 时才启动，之后所有调用方拿到同一个 `asyncio.Task` 的结果（或异常）。
单个调用方被取消时，底层 task 照常跑完，其他调用方不受影响。
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class SharedTask(Generic[T]):
    """memoized task：factory 最多被调用一次。"""

    def __init__(self, factory: Callable[[], Awaitable[T]]) -> None:
        self._factory = factory
        self._task: asyncio.Future[T] | None = None

    async def result(self) -> T:
        if self._task is None:
            self._task = asyncio.ensure_future(self._factory())
        return await asyncio.shield(self._task)
