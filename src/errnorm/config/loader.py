"""
Options 加载、校验与进程级默认值。

本模块负责：
1. 从 YAML 文件加载 NormalizeOptions（显式路径或默认搜索路径）
2. 使用 Pydantic Schema 校验，并给出字段级的错误信息
3. 维护进程级的默认 Options（一个不可变对象，整体替换）
4. 把调用方传入的 options / 覆盖项解析为最终的 NormalizeOptions

# [DX Decision] 校验失败时的错误信息必须精确到字段级别，
# 告诉用户哪个字段、什么值有问题、应该改成什么。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from errnorm.config.defaults import MAX_DEPTH_CEILING
from errnorm.config.schema import NormalizeOptions
from errnorm.errors import ConfigLoadError, OptionsValidationError

logger = logging.getLogger(__name__)

# 默认 Options 文件搜索路径
_SEARCH_PATHS = [
    Path("errnorm.yaml"),
    Path("errnorm.yml"),
    Path(".errnorm/options.yaml"),
]

# 进程级默认 Options。
# [Design Decision] 只允许整体替换，不允许逐字段修改：
# 每次调用在入口处读取一次，之后整个遍历都使用同一个不可变对象。
_default_options = NormalizeOptions()


def get_default_options() -> NormalizeOptions:
    """返回当前的进程级默认 Options。"""
    return _default_options


def set_default_options(
    options: NormalizeOptions | Mapping[str, Any] | None = None,
    **fields: Any,
) -> NormalizeOptions:
    """
    替换进程级默认 Options。

    参数:
        options: 完整的 Options 对象或字典；None 时以当前默认值为基础
        **fields: 逐字段覆盖

    返回:
        新的默认 Options

    异常:
        OptionsValidationError: 字段校验失败

    示例::

        set_default_options(max_depth=4)
        normalize(err).to_text()  # 按 4 层渲染
    """
    global _default_options
    base = options if options is not None else _default_options
    _default_options = resolve_options(base, fields)
    return _default_options


def reset_default_options() -> NormalizeOptions:
    """恢复出厂默认 Options。"""
    global _default_options
    _default_options = NormalizeOptions()
    return _default_options


def resolve_options(
    options: NormalizeOptions | Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> NormalizeOptions:
    """
    把调用方的 options 与覆盖项解析为最终的 NormalizeOptions。

    None 表示使用调用时刻的进程级默认值。

    异常:
        OptionsValidationError: 类型或取值不合法
    """
    if options is None:
        options = get_default_options()

    if isinstance(options, NormalizeOptions):
        if not overrides:
            return options
        raw = options.model_dump()
    elif isinstance(options, Mapping):
        raw = dict(options)
    else:
        raise OptionsValidationError(
            what="无法识别的 options 参数。",
            why=f"期望 NormalizeOptions 或字典，实际类型为 {type(options).__name__}。",
            how="传入 NormalizeOptions(...)、一个字典，或直接使用关键字参数。",
        )

    if overrides:
        raw.update(overrides)
    return _validate_options(raw, "<runtime>")


def load_options(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> NormalizeOptions:
    """
    从 YAML 文件加载并校验 Options。

    加载优先级：
    1. 显式指定的路径
    2. 当前目录下的默认搜索路径
    3. 内置默认值

    参数:
        path: YAML 文件路径。None 时自动搜索默认路径。
        overrides: 运行时覆盖的配置项（合并到 YAML 配置之上）

    异常:
        ConfigLoadError: 文件不存在或格式错误
        OptionsValidationError: 配置校验失败
    """
    raw_config: dict[str, Any] = {}

    if path is not None:
        raw_config = _load_yaml_file(Path(path))
    else:
        for search_path in _SEARCH_PATHS:
            if search_path.exists():
                logger.info("自动发现 Options 文件：%s", search_path)
                raw_config = _load_yaml_file(search_path)
                break
        if not raw_config:
            logger.info("未找到 Options 文件，使用默认配置。")

    if overrides:
        raw_config = _deep_merge(raw_config, dict(overrides))

    return _validate_options(raw_config, str(path) if path else "<default>")


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """加载并解析 YAML 文件。"""
    if not path.exists():
        raise ConfigLoadError(
            what=f"Options 文件 '{path}' 不存在。",
            why=f"在路径 '{path.absolute()}' 下未找到该文件。",
            how="请检查文件路径是否正确，或省略 path 参数以使用默认配置。",
            file_path=str(path),
        )

    try:
        content = path.read_text(encoding="utf-8")
    except Exception as e:
        raise ConfigLoadError(
            what=f"无法读取 Options 文件 '{path}'。",
            why=str(e),
            how="请检查文件权限和编码（需要 UTF-8）。",
            file_path=str(path),
        ) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(
            what=f"Options 文件 '{path}' 的 YAML 格式无效。",
            why=str(e),
            how="请使用 YAML 格式校验工具检查文件语法。",
            file_path=str(path),
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            what=f"Options 文件 '{path}' 的根元素必须是字典（mapping）。",
            why=f"实际类型为 {type(data).__name__}。",
            how="请确保 YAML 文件的根元素是键值对形式，例如：\n"
                "  max_depth: 8\n"
                "  max_properties: 1000",
            file_path=str(path),
        )

    return data


def _validate_options(raw: dict[str, Any], source: str) -> NormalizeOptions:
    """使用 Pydantic 校验 Options 字典。"""
    try:
        return NormalizeOptions(**raw)
    except ValidationError as e:
        error_details = []
        field_paths = []
        for err in e.errors():
            field_path = " → ".join(str(loc) for loc in err["loc"])
            field_paths.append(field_path)
            error_details.append(f"  字段 '{field_path}': {err['msg']}")

        raise OptionsValidationError(
            what=f"NormalizeOptions '{source}' 校验失败（{len(e.errors())} 个错误）。",
            why="\n".join(error_details),
            how=f"max_depth 必须是 1 到 {MAX_DEPTH_CEILING} 之间的整数，"
                "max_properties / max_array_length 必须是非负整数，"
                "其余开关必须是布尔值。",
            field_path=", ".join(field_paths),
        ) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """深度合并两个字典。override 中的值优先。"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def validate_options_file(path: str | Path) -> list[str]:
    """
    校验 Options 文件，返回错误列表。

    这个方法不会抛出异常，而是收集所有错误并返回，便于在 CI 中使用。

    返回:
        错误信息列表（空列表表示校验通过）
    """
    errors: list[str] = []

    try:
        load_options(path=path)
    except ConfigLoadError as e:
        errors.append(e.full_message)
    except OptionsValidationError as e:
        errors.append(e.full_message)

    return errors
