"""
测试套件共享 Fixtures 和配置。

本文件定义了所有测试中可复用的 fixtures 和输入样本。
"""

from __future__ import annotations

from typing import Any

import pytest

from errnorm import reset_default_options
from errnorm.engine import construct


# === 全局状态隔离 ===


@pytest.fixture(autouse=True)
def _isolate_global_state() -> Any:
    """每个测试前后恢复进程级默认 Options 和异常类型注册表。"""
    reset_default_options()
    registered = dict(construct._error_types)
    yield
    reset_default_options()
    construct._error_types.clear()
    construct._error_types.update(registered)
    construct._hybrid_types.clear()


# === 输入样本 Fixtures ===


def _raise(exc: BaseException) -> BaseException:
    try:
        raise exc
    except BaseException as caught:
        return caught


@pytest.fixture
def raised_error() -> Exception:
    """带 traceback 的 ValueError。"""
    return _raise(ValueError("invalid amount"))  # type: ignore[return-value]


@pytest.fixture
def chained_error() -> Exception:
    """通过 raise ... from ... 建立因果链的异常。"""
    try:
        try:
            raise ConnectionError("socket closed")
        except ConnectionError as inner:
            raise RuntimeError("fetch failed") from inner
    except RuntimeError as outer:
        return outer


@pytest.fixture
def error_record() -> dict[str, Any]:
    """一个典型的错误形状字典（来自 JSON API）。"""
    return {
        "name": "PaymentError",
        "message": "card declined",
        "code": "E_CARD",
        "status": 402,
        "cause": {"name": "GatewayError", "message": "timeout"},
    }


@pytest.fixture
def cyclic_record() -> dict[str, Any]:
    """cause 指向自身的记录。"""
    record: dict[str, Any] = {"name": "LoopError", "message": "self reference"}
    record["cause"] = record
    return record


def build_cause_chain(length: int) -> dict[str, Any]:
    """构造长度为 length 的 cause 链（根为 level0）。"""
    root: dict[str, Any] = {"message": "level0"}
    current = root
    for level in range(1, length):
        nxt: dict[str, Any] = {"message": f"level{level}"}
        current["cause"] = nxt
        current = nxt
    return root


@pytest.fixture
def cause_chain_factory() -> Any:
    return build_cause_chain
