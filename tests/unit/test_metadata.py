"""
安全元数据复制器单元测试。

覆盖范围:
- engine/metadata.py: copy_metadata(), is_denied(), custom_keys()
- 黑名单、截断警告、恶意 getter、资源耗尽异常
"""

from __future__ import annotations

import warnings
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any

import pytest

from errnorm.engine.classify import MISSING, UNDEFINED
from errnorm.engine.metadata import STRUCTURAL_DENYLIST, copy_metadata, custom_keys, is_denied
from errnorm.errors import TruncationWarning


class Color(Enum):
    RED = "red"


class FlakyMapping(Mapping):
    """读取 "bad" 键时抛异常。"""

    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    def __getitem__(self, key: str) -> Any:
        if key == "bad":
            raise RuntimeError("getter exploded")
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


def _copy(source: Any, **kwargs: Any) -> dict[Any, Any]:
    target: dict[Any, Any] = {}
    kwargs.setdefault("max_properties", 1000)
    copy_metadata(source, target, **kwargs)
    return target


# === 黑名单测试（~4 tests）===


class TestDenylist:
    """结构性保留键测试。"""

    def test_denylisted_keys_dropped(self) -> None:
        """测试黑名单键永远不会被复制。"""
        source = {
            "code": 1,
            "__class__": "Evil",
            "__proto__": {},
            "constructor": "c",
            "to_text": "t",
            "toJSON": "j",
            "valueOf": "v",
        }
        assert _copy(source) == {"code": 1}

    def test_all_dunders_denied(self) -> None:
        """测试任意双下划线名称都被拒绝。"""
        assert is_denied("__weird__")
        assert not is_denied("code")
        assert not is_denied("_private")

    def test_exclusions_unioned(self) -> None:
        """测试调用方排除集合与黑名单取并集。"""
        assert _copy({"name": "x", "code": 1}, exclude=("name",)) == {"code": 1}

    def test_denylist_contents(self) -> None:
        """测试黑名单覆盖类型链接、构造函数和渲染方法。"""
        for key in ("__class__", "__dict__", "constructor", "prototype", "to_structured", "__str__"):
            assert key in STRUCTURAL_DENYLIST


# === 复制行为测试（~7 tests）===


class TestCopyMetadata:
    """copy_metadata() 测试。"""

    def test_callables_and_undefined_skipped(self) -> None:
        """测试可调用值和 UNDEFINED 被跳过，None 保留。"""
        source = {"fn": len, "cls": dict, "u": UNDEFINED, "n": None, "ok": True}
        assert _copy(source) == {"n": None, "ok": True}

    def test_truncation_warns(self) -> None:
        """测试键数量超限时发出警告并截断。"""
        source = {f"k{i}": i for i in range(5)}
        with pytest.warns(TruncationWarning) as record:
            result = _copy(source, max_properties=2)
        assert result == {"k0": 0, "k1": 1}
        assert record[0].message.limit_name == "max_properties"
        assert record[0].message.actual == 5

    def test_no_warning_within_limit(self) -> None:
        """测试未超限时不发出警告。"""
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            _copy({"a": 1}, max_properties=1)
        assert not [w for w in caught if issubclass(w.category, TruncationWarning)]

    def test_opaque_keys_converted(self) -> None:
        """测试非 str 键默认转为文本。"""
        assert _copy({1: "one", Color.RED: "r"}) == {"1": "one", "Color.RED": "r"}

    def test_opaque_keys_preserved(self) -> None:
        """测试关闭转换时保留原始键。"""
        assert _copy({1: "one"}, convert_opaque_keys=False) == {1: "one"}

    def test_failing_getter_skipped(self) -> None:
        """测试单个键读取失败时跳过该键。"""
        source = FlakyMapping({"good": 1, "bad": 2, "also": 3})
        assert _copy(source) == {"good": 1, "also": 3}

    def test_transform_applied(self) -> None:
        """测试 transform 结果写入目标，返回 MISSING 时丢弃。"""
        def transform(value: Any) -> Any:
            return MISSING if value == 2 else value * 10

        assert _copy({"a": 1, "b": 2}, transform=transform) == {"a": 10}

    def test_resource_exhaustion_reraised(self) -> None:
        """测试资源耗尽类异常不会被吞掉。"""
        def transform(value: Any) -> Any:
            raise RecursionError("too deep")

        with pytest.raises(RecursionError):
            _copy({"a": 1}, transform=transform)

    def test_hidden_keys_toggle(self) -> None:
        """测试 include_hidden 控制下划线属性。"""
        class Payload:
            def __init__(self) -> None:
                self.visible = 1
                self._hidden = 2

        assert _copy(Payload()) == {"visible": 1, "_hidden": 2}
        assert _copy(Payload(), include_hidden=False) == {"visible": 1}


class TestCustomKeys:
    """custom_keys() 测试。"""

    def test_core_fields_excluded(self) -> None:
        """测试渲染用的键不含核心字段和黑名单键。"""
        record = {"name": "E", "message": "m", "cause": None, "code": 1, "__class__": "x"}
        assert custom_keys(record) == ["code"]
