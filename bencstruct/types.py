"""Bencode 目标类型模块.

解码得到的通用值只有四种: bytes, int, list 和 dict.
本模块定义了把这些值转换为更具体 Python 类型时使用的目标形状,
包括各种宽度的整数 (INT8..UINT64), 字符串, 浮点数, 列表和映射.

形状可以直接使用, 也可以由 `resolve_shape()` 从类型注解推断:
    >>> resolve_shape(list[int]).describe()
    'LIST[INT64]'
"""

import abc
import re
import struct
import types as stdlib_types
from functools import lru_cache
from typing import (
    Any,
    ClassVar,
    ForwardRef,
    Union,
    get_args,
    get_origin,
)

from .const import INT64_MAX, INT64_MIN, UINT64_MAX
from .exceptions import BencodeCoercionError

_SIGNED_RE = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_RE = re.compile(r"\+?[0-9]+")


def kind_of(value: Any) -> str:
    """返回值的类别名称, 用于错误信息."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, bytes | bytearray | memoryview):
        return "string"
    if isinstance(value, str):
        return "text"
    if isinstance(value, float):
        return "float"
    if isinstance(value, list | tuple):
        return "list"
    if isinstance(value, dict):
        return "dict"
    return type(value).__name__


def coerce_at(loc: str | int, shape: "type[BencodeType]", value: Any) -> Any:
    """转换嵌套值, 失败时把 loc 记录到错误路径的最前面."""
    try:
        return shape.coerce(value)
    except BencodeCoercionError as e:
        e.loc.insert(0, loc)
        raise


def _text_of(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return bytes(value).decode("ascii")
    except UnicodeDecodeError as e:
        raise BencodeCoercionError(f"non-ASCII numeric text {bytes(value)!r}") from e


class BencodeType(abc.ABC):
    """目标形状的基类.

    所有具体形状 (如 `INT32`, `STRING`, `LIST` 等) 都继承自此类,
    `BencodeStruct` 也是它的子类。
    """

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> Any:
        from pydantic_core import core_schema

        return core_schema.any_schema()

    @classmethod
    @abc.abstractmethod
    def coerce(cls, value: Any) -> Any:
        """把通用值转换为该形状.

        Raises:
            BencodeCoercionError: 没有适用的转换规则, 或文本解析失败.
        """
        raise NotImplementedError

    @classmethod
    def zero(cls) -> Any:
        """字段缺失且没有默认值时使用的零值."""
        return None

    @classmethod
    def describe(cls) -> str:
        """形状名称, 用于错误信息."""
        return cls.__name__

    @classmethod
    def _fail(cls, value: Any) -> BencodeCoercionError:
        return BencodeCoercionError(
            f"don't know how to coerce {kind_of(value)} to {cls.describe()}"
        )


class ANY(BencodeType):
    """不做任何转换, 原样返回."""

    @classmethod
    def coerce(cls, value: Any) -> Any:
        return value


class INT(BencodeType):
    """整数形状.

    整数源会按目标宽度和符号截断 (二进制补码回绕),
    字节串/文本源按十进制解析后再截断。
    `INT` 本身等价于 `INT64`。
    """

    bits: ClassVar[int] = 64
    signed: ClassVar[bool] = True

    @classmethod
    def coerce(cls, value: Any) -> int:
        if isinstance(value, int):
            return cls.wrap(int(value))
        if isinstance(value, bytes | bytearray | memoryview | str):
            return cls.wrap(cls._parse(_text_of(value)))
        raise cls._fail(value)

    @classmethod
    def zero(cls) -> int:
        return 0

    @classmethod
    def wrap(cls, value: int) -> int:
        """把任意整数截断到该形状的宽度."""
        value &= (1 << cls.bits) - 1
        if cls.signed and value >= 1 << (cls.bits - 1):
            value -= 1 << cls.bits
        return value

    @classmethod
    def _parse(cls, text: str) -> int:
        if cls.signed:
            if not _SIGNED_RE.fullmatch(text):
                raise BencodeCoercionError(
                    f"invalid integer {text!r} for {cls.describe()}"
                )
            value = int(text)
            if not INT64_MIN <= value <= INT64_MAX:
                raise BencodeCoercionError(
                    f"integer {text!r} out of range for {cls.describe()}"
                )
            return value

        if not _UNSIGNED_RE.fullmatch(text):
            raise BencodeCoercionError(
                f"invalid unsigned integer {text!r} for {cls.describe()}"
            )
        value = int(text)
        if value > UINT64_MAX:
            raise BencodeCoercionError(
                f"integer {text!r} out of range for {cls.describe()}"
            )
        return value


class INT8(INT):
    """1 字节有符号整数, 范围 -128 到 127."""

    bits = 8


class INT16(INT):
    """2 字节有符号整数, 范围 -32768 到 32767."""

    bits = 16


class INT32(INT):
    """4 字节有符号整数."""

    bits = 32


class INT64(INT):
    """8 字节有符号整数."""

    bits = 64


class UINT8(INT):
    """1 字节无符号整数, 范围 0 到 255."""

    bits = 8
    signed = False


class UINT16(INT):
    bits = 16
    signed = False


class UINT32(INT):
    bits = 32
    signed = False


class UINT64(INT):
    bits = 64
    signed = False


class BOOL(BencodeType):
    """布尔形状.

    线格式没有布尔类型, 按整数处理后取真值: i0e -> False, 其他 -> True.
    """

    @classmethod
    def coerce(cls, value: Any) -> bool:
        return bool(INT64.coerce(value))

    @classmethod
    def zero(cls) -> bool:
        return False


class DOUBLE(BencodeType):
    """双精度浮点数形状.

    接受浮点数, 整数 (扩宽) 以及可解析为浮点数的字节串/文本。
    """

    @classmethod
    def coerce(cls, value: Any) -> float:
        if isinstance(value, float):
            return value
        if isinstance(value, int):
            try:
                return float(value)
            except OverflowError as e:
                raise BencodeCoercionError(
                    f"integer too large for {cls.describe()}"
                ) from e
        if isinstance(value, bytes | bytearray | memoryview | str):
            text = _text_of(value)
            if "_" in text or text != text.strip():
                raise BencodeCoercionError(f"invalid float {text!r}")
            try:
                return float(text)
            except ValueError as e:
                raise BencodeCoercionError(f"invalid float {text!r}") from e
        raise cls._fail(value)

    @classmethod
    def zero(cls) -> float:
        return 0.0


class FLOAT(DOUBLE):
    """单精度浮点数形状, 结果会舍入到 4 字节精度."""

    @classmethod
    def coerce(cls, value: Any) -> float:
        result = super().coerce(value)
        try:
            return struct.unpack(">f", struct.pack(">f", result))[0]
        except OverflowError as e:
            raise BencodeCoercionError(f"{result!r} out of range for FLOAT") from e


class STRING(BencodeType):
    """文本字符串形状.

    字节串按 UTF-8 解码 (无法解码的字节以 surrogateescape 保留),
    整数按十进制格式化, 浮点数使用最短的往返表示。
    """

    @classmethod
    def coerce(cls, value: Any) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, bytes | bytearray | memoryview):
            return bytes(value).decode("utf-8", "surrogateescape")
        if isinstance(value, int):
            return str(int(value))
        if isinstance(value, float):
            return repr(value)
        raise cls._fail(value)

    @classmethod
    def zero(cls) -> str:
        return ""


class BYTES(BencodeType):
    """原始字节形状."""

    @classmethod
    def coerce(cls, value: Any) -> bytes:
        if isinstance(value, bytes | bytearray | memoryview):
            return bytes(value)
        if isinstance(value, str):
            return value.encode("utf-8", "surrogateescape")
        raise cls._fail(value)

    @classmethod
    def zero(cls) -> bytes:
        return b""


class _Container(BencodeType):
    """带元素形状的容器基类, 通过下标参数化: `LIST[INT32]`."""

    item: ClassVar[type[BencodeType]] = ANY

    def __class_getitem__(cls, item: Any) -> type[BencodeType]:
        return _specialize(cls, resolve_shape(item))

    @classmethod
    def describe(cls) -> str:
        base = cls.__name__.split("[", 1)[0]
        return f"{base}[{cls.item.describe()}]"


@lru_cache(maxsize=None)
def _specialize(base: type[_Container], item: type[BencodeType]) -> type[BencodeType]:
    name = f"{base.__name__}[{item.describe()}]"
    return type(name, (base,), {"item": item, "__module__": base.__module__})


class LIST(_Container):
    """列表形状.

    源必须是列表; 结果是等长的新列表, 每个元素递归转换为元素形状。
    """

    @classmethod
    def coerce(cls, value: Any) -> list[Any]:
        if not isinstance(value, list | tuple):
            raise cls._fail(value)
        return [coerce_at(i, cls.item, v) for i, v in enumerate(value)]

    @classmethod
    def zero(cls) -> list[Any]:
        return []


class MAP(_Container):
    """以文本为键的映射形状.

    源必须是字典; 键解码为 str, 值递归转换为元素形状。
    """

    @classmethod
    def coerce(cls, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise cls._fail(value)
        result = {}
        for key, val in value.items():
            text_key = STRING.coerce(key) if not isinstance(key, str) else key
            result[text_key] = coerce_at(text_key, cls.item, val)
        return result

    @classmethod
    def zero(cls) -> dict[str, Any]:
        return {}


class OPTIONAL(_Container):
    """可空形状: None 原样通过, 其他值按元素形状转换."""

    @classmethod
    def coerce(cls, value: Any) -> Any:
        if value is None:
            return None
        return cls.item.coerce(value)


def resolve_shape(annotation: Any) -> type[BencodeType]:
    """根据类型注解推断目标形状.

    Raises:
        TypeError: 注解没有对应的形状 (如多成员 Union).
    """
    if annotation is Any or annotation is object:
        return ANY
    if isinstance(annotation, type) and issubclass(annotation, BencodeType):
        return annotation
    if isinstance(annotation, str | ForwardRef):
        raise TypeError(f"Unresolved forward reference: {annotation}")

    origin = get_origin(annotation)
    args = get_args(annotation)

    # 处理 Optional
    if origin is Union or origin is stdlib_types.UnionType:
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return OPTIONAL[non_none[0]]
        raise TypeError(f"Union type not supported: {annotation}")

    if annotation is bool:
        return BOOL
    if annotation is int:
        return INT64
    if annotation is float:
        return DOUBLE
    if annotation is str:
        return STRING
    if annotation is bytes or annotation is bytearray:
        return BYTES

    if annotation is list or origin is list:
        return LIST[args[0]] if args else LIST
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return LIST[args[0]]
        raise TypeError(f"Only homogeneous tuple[T, ...] is supported: {annotation}")
    if annotation is dict or origin is dict:
        if args and args[0] not in (str, bytes):
            raise TypeError(f"Mapping keys must be str: {annotation}")
        return MAP[args[1]] if args else MAP

    raise TypeError(f"Unsupported type for {annotation}")
