"""
errnorm 配置模块。

提供 NormalizeOptions Schema、YAML 加载和进程级默认值。
"""

from errnorm.config.loader import (
    get_default_options,
    load_options,
    reset_default_options,
    resolve_options,
    set_default_options,
    validate_options_file,
)
from errnorm.config.schema import NormalizeOptions

__all__ = [
    "NormalizeOptions",
    "get_default_options",
    "load_options",
    "reset_default_options",
    "resolve_options",
    "set_default_options",
    "validate_options_file",
]
