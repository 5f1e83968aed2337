"""Bencode 编码器实现.

该模块提供向任意字节汇增量写入的 `DataWriter` 和
将 Python 对象序列化为 Bencode 的 `BencodeEncoder`.
字典总是按原始键字节升序输出 (规范顺序), 与源映射的插入顺序无关.
"""

import dataclasses
import io
from collections.abc import Mapping
from typing import IO, Any

from .config import BencodeConfig
from .const import (
    BENCODE_DICT,
    BENCODE_END,
    BENCODE_LIST,
    BENCODE_NIL,
    INT64_MIN,
    UINT64_MAX,
)
from .exceptions import BencodeEncodeError, BencodeTypeError, BencodeValueError
from .log import logger


class DataWriter:
    """Bencode 数据的增量写入器.

    每个值在编码时立即写入底层字节汇, 不需要整体缓冲.
    未提供字节汇时写入内存缓冲区.
    """

    __slots__ = ("_sink", "_write")

    _sink: IO[bytes]

    def __init__(self, sink: IO[bytes] | None = None):
        self._sink = sink if sink is not None else io.BytesIO()
        self._write = self._sink.write

    def get_bytes(self) -> bytes:
        """返回累积的字节 (仅适用于内存缓冲区)."""
        if not isinstance(self._sink, io.BytesIO):
            raise TypeError("get_bytes() requires an in-memory sink")
        return self._sink.getvalue()

    def write_int(self, value: int) -> None:
        """写入整数: i<十进制>e."""
        if not INT64_MIN <= value <= UINT64_MAX:
            raise BencodeValueError(f"Integer out of range: {value}")
        self._write(b"i%de" % value)

    def write_bytes(self, value: bytes) -> None:
        """写入字节串: <长度>:<原始字节>."""
        self._write(b"%d:" % len(value))
        self._write(value)

    def write_list_begin(self) -> None:
        """列表开始标记."""
        self._write(bytes((BENCODE_LIST,)))

    def write_dict_begin(self) -> None:
        """字典开始标记."""
        self._write(bytes((BENCODE_DICT,)))

    def write_end(self) -> None:
        """列表/字典结束标记."""
        self._write(bytes((BENCODE_END,)))


def _encode_key(key: Any) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8", "surrogateescape")
    if isinstance(key, bytes | bytearray | memoryview):
        return bytes(key)
    raise BencodeTypeError(
        f"Dictionary keys must be str or bytes, got {type(key).__name__}"
    )


class BencodeEncoder:
    """具有循环引用检测的递归 Bencode 编码器."""

    __slots__ = (
        "_config",
        "_encoding_stack",
        "_writer",
    )

    _writer: DataWriter
    _config: BencodeConfig

    def __init__(self, config: BencodeConfig, sink: IO[bytes] | None = None):
        self._config = config
        self._writer = DataWriter(sink)
        # 跟踪正在编码的容器以检测循环引用
        self._encoding_stack: set[int] = set()

    @property
    def writer(self) -> DataWriter:
        """底层写入器."""
        return self._writer

    def encode(self, obj: Any) -> None:
        """编码入口, 把 obj 完整写入字节汇."""
        try:
            self.encode_value(obj)
        except BencodeEncodeError as e:
            logger.error("Encoding failed: %s", e)
            raise

    def encode_value(self, value: Any) -> None:
        """按运行时类型分派编码单个值.

        Raises:
            BencodeTypeError: 值的类型没有对应的线格式映射.
            BencodeValueError: 整数越界, 键冲突或循环引用.
        """
        if value is None:
            self._writer.write_bytes(BENCODE_NIL)
        elif isinstance(value, int):
            # bool 是 int 的子类: True -> i1e
            self._writer.write_int(int(value))
        elif isinstance(value, float):
            # 没有原生浮点类型: 格式化为定点小数后作为字节串
            self._writer.write_bytes(f"{value:f}".encode("ascii"))
        elif isinstance(value, str):
            self._writer.write_bytes(value.encode("utf-8", "surrogateescape"))
        elif isinstance(value, bytes | bytearray | memoryview):
            self._writer.write_bytes(bytes(value))
        elif isinstance(value, list | tuple | Mapping) or _is_record(value):
            obj_id = id(value)
            if obj_id in self._encoding_stack:
                raise BencodeValueError(f"Circular reference in {type(value)}")

            self._encoding_stack.add(obj_id)
            try:
                self._encode_container(value)
            finally:
                self._encoding_stack.discard(obj_id)
        elif self._config.default is not None:
            self.encode_value(self._config.default(value))
        else:
            raise BencodeTypeError(f"Cannot encode type: {type(value).__name__}")

    def _encode_container(self, value: Any) -> None:
        """编码容器类型 (列表, 映射或记录)."""
        if isinstance(value, list | tuple):
            self._writer.write_list_begin()
            for item in value:
                self.encode_value(item)
            self._writer.write_end()
        elif isinstance(value, Mapping):
            self._encode_pairs(value.items())
        else:
            self._encode_pairs(self._record_items(value))

    def _record_items(self, obj: Any) -> list[tuple[Any, Any]]:
        """展开记录: 字段外部名称 -> 字段值 (按声明顺序)."""
        fields = getattr(type(obj), "bencode_fields", None)
        if fields is not None:
            items = [
                (field.key, getattr(obj, name)) for name, field in fields().items()
            ]
        else:
            items = [(f.name, getattr(obj, f.name)) for f in dataclasses.fields(obj)]

        if self._config.omit_none:
            return [(key, val) for key, val in items if val is not None]
        return items

    def _encode_pairs(self, items: Any) -> None:
        pairs: dict[bytes, Any] = {}
        for key, val in items:
            raw_key = _encode_key(key)
            if raw_key in pairs:
                raise BencodeValueError(f"Duplicate dictionary key: {raw_key!r}")
            pairs[raw_key] = val

        self._writer.write_dict_begin()
        for raw_key in sorted(pairs):
            self._writer.write_bytes(raw_key)
            self.encode_value(pairs[raw_key])
        self._writer.write_end()


def _is_record(value: Any) -> bool:
    if hasattr(type(value), "bencode_fields"):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)
