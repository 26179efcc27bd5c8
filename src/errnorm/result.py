"""
Result 包装器：把"可能抛异常的调用"变成显式的成功/失败值。

    result = try_catch(lambda: int(raw))
    if result.ok:
        use(result.value)
    else:
        logger.warning(result.error.to_text())

失败时捕获到的异常一律先经过 normalize()，再交给可选的 map_error 转换。

# [Design Decision] 只捕获 Exception：KeyboardInterrupt、SystemExit
# 和 asyncio.CancelledError 必须继续向外传播。
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from errnorm.config.schema import NormalizeOptions
from errnorm.engine.normalizer import normalize
from errnorm.std_error import StdError

T = TypeVar("T")
E = TypeVar("E")

OptionsLike = NormalizeOptions | Mapping[str, Any] | None


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """
    调用结果。

    属性:
        ok: 是否成功
        value: 成功时的返回值（失败时为 None）
        error: 失败时的错误（成功时为 None）
    """

    ok: bool
    value: T | None = None
    error: E | None = None

    @classmethod
    def success(cls, value: T) -> Result[T, E]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: E) -> Result[T, E]:
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        """
        返回成功值；失败时抛出错误。

        异常:
            error 本身（若它是异常），否则为包装了它的 StdError
        """
        if self.ok:
            return self.value  # type: ignore[return-value]
        if isinstance(self.error, BaseException):
            raise self.error
        raise normalize(self.error)


def _fail(exc: Exception, map_error: Callable[[StdError], Any] | None, options: OptionsLike) -> Result[Any, Any]:
    normalized = normalize(exc, options)
    return Result.failure(map_error(normalized) if map_error is not None else normalized)


def try_catch(
    fn: Callable[[], Any],
    map_error: Callable[[StdError], Any] | None = None,
    *,
    options: OptionsLike = None,
) -> Result[Any, Any] | Awaitable[Result[Any, Any]]:
    """
    调用 fn 并把结果包装为 Result。

    fn 返回可等待对象（例如调用了一个 async 函数）时，返回一个协程，
    await 后得到 Result。

    参数:
        fn: 无参可调用对象
        map_error: 对归一化后的错误做进一步转换
        options: 传给 normalize() 的 Options

    示例::

        result = try_catch(lambda: json.loads(payload))
        result = await try_catch(lambda: client.fetch(url))
    """
    try:
        value = fn()
    except Exception as exc:
        return _fail(exc, map_error, options)

    if inspect.isawaitable(value):
        return try_catch_async(value, map_error, options=options)
    return Result.success(value)


async def try_catch_async(
    awaitable: Awaitable[Any],
    map_error: Callable[[StdError], Any] | None = None,
    *,
    options: OptionsLike = None,
) -> Result[Any, Any]:
    """
    await 一个可等待对象并把结果包装为 Result。

    示例::

        result = await try_catch_async(session.get(url))
    """
    try:
        value = await awaitable
    except Exception as exc:
        return _fail(exc, map_error, options)
    return Result.success(value)
