"""
运行时能力探测。

构造器在选择构造路径时询问这两个问题。结果在进程生命周期内不变，
导入时计算一次并缓存为 HAS_EXCEPTION_GROUPS / HAS_NATIVE_CAUSE。
"""

from __future__ import annotations

import builtins


def supports_exception_groups() -> bool:
    """当前解释器是否提供原生 ExceptionGroup（Python 3.11+）。"""
    return isinstance(getattr(builtins, "ExceptionGroup", None), type)


def supports_native_cause() -> bool:
    """当前解释器的异常是否支持原生因果链（__cause__）。"""
    sample = Exception("sample")
    try:
        sample.__cause__ = Exception("cause")
    except (AttributeError, TypeError):
        return False
    return sample.__cause__ is not None


HAS_EXCEPTION_GROUPS = supports_exception_groups()
HAS_NATIVE_CAUSE = supports_native_cause()
