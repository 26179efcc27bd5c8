"""
errnorm — 错误归一化与渲染引擎。

把任意"被抛出的东西"（异常、字典、对象、原始值、环形结构……）
转换为规范的错误形状，并提供两种确定性的渲染：
人类可读的文本，以及可直接 JSON 序列化的结构。

快速上手::

    from errnorm import normalize

    try:
        charge(order)
    except Exception as exc:
        err = normalize(exc)
        logger.error(err.to_text())
        payload = err.to_structured()

Result 包装::

    from errnorm import try_catch

    result = try_catch(lambda: int(raw))
    if not result.ok:
        print(result.error.to_text())
"""

from errnorm.capabilities import supports_exception_groups, supports_native_cause
from errnorm.config import (
    NormalizeOptions,
    get_default_options,
    load_options,
    reset_default_options,
    set_default_options,
    validate_options_file,
)
from errnorm.engine.classify import UNDEFINED
from errnorm.engine.construct import (
    ConstructionState,
    register_error_type,
    unregister_error_type,
)
from errnorm.engine.normalizer import normalize
from errnorm.errors import (
    ConfigLoadError,
    ErrnormError,
    OptionsValidationError,
    TruncationWarning,
)
from errnorm.render import render_structured, render_text
from errnorm.result import Result, try_catch, try_catch_async
from errnorm.std_error import StdError, StdExceptionGroup, json_default

__version__ = "0.1.0"

__all__ = [
    # 顶层入口
    "normalize",
    "StdError",
    "StdExceptionGroup",
    "UNDEFINED",
    # 渲染
    "render_text",
    "render_structured",
    "json_default",
    # Result 包装
    "Result",
    "try_catch",
    "try_catch_async",
    # 配置
    "NormalizeOptions",
    "get_default_options",
    "set_default_options",
    "reset_default_options",
    "load_options",
    "validate_options_file",
    # 构造
    "ConstructionState",
    "register_error_type",
    "unregister_error_type",
    # 能力探测
    "supports_exception_groups",
    "supports_native_cause",
    # 异常
    "ErrnormError",
    "OptionsValidationError",
    "ConfigLoadError",
    "TruncationWarning",
    # 版本
    "__version__",
]
