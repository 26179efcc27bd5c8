"""
errnorm 结构化异常体系。

所有异常遵循"三段式"规范：What / Why / How to fix。
"""

from errnorm.errors.exceptions import (
    ConfigLoadError,
    ErrnormError,
    OptionsValidationError,
    TruncationWarning,
)

__all__ = [
    "ConfigLoadError",
    "ErrnormError",
    "OptionsValidationError",
    "TruncationWarning",
]
