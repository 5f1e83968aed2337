"""Bencode 类型适配器.

提供类似于 Pydantic TypeAdapter 的接口,
用于把 Bencode 数据解码并转换为任意类型注解描述的值.
"""

from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter

from .api import dumps, loads
from .coerce import coerce
from .options import BencodeOption
from .types import resolve_shape

T = TypeVar("T")


class BencodeTypeAdapter(Generic[T]):
    """Bencode 类型适配器.

    先用转换引擎把通用值转换为目标形状 (处理字节串到文本, 文本到数字等),
    再交给 `pydantic.TypeAdapter` 做最终验证.

    支持的类型:
        - `BencodeStruct` 子类
        - 基础类型 (`int`, `str`, `bytes`, `float`, `bool`)
        - 容器类型 (`list[T]`, `tuple[T, ...]`, `dict[str, T]`)
        - `T | None` 以及形状类 (如 `types.UINT16`)

    Examples:
        >>> adapter = BencodeTypeAdapter(list[int])
        >>> data = adapter.dump_bencode([1, 2, 3])
        >>> adapter.validate_bencode(data)
        [1, 2, 3]
    """

    def __init__(self, type_: type[T] | Any):
        """初始化 Bencode 类型适配器.

        Args:
            type_: 目标类型 (如 BencodeStruct 子类, list[int], int 等).

        Raises:
            TypeError: 如果类型没有对应的形状.
        """
        self._type = type_
        self._shape = resolve_shape(type_)
        self._pydantic_adapter = TypeAdapter(type_)

    def validate_python(self, value: Any) -> T:
        """转换并验证预先解码的通用值."""
        return self._pydantic_adapter.validate_python(coerce(self._shape, value))

    def validate_bencode(
        self,
        data: bytes | bytearray | memoryview | str,
        *,
        option: BencodeOption = BencodeOption.NONE,
    ) -> T:
        """解码并验证 Bencode 数据.

        Raises:
            BencodeDecodeError: 数据格式错误.
            BencodeCoercionError: 无法转换为目标类型.
            ValueError: 输入为空.
        """
        tree = loads(data, option=option)
        if tree is None:
            raise ValueError("No bencode value in input")
        return self.validate_python(tree)

    def dump_bencode(
        self, obj: T, *, option: BencodeOption = BencodeOption.NONE
    ) -> bytes:
        """序列化为 Bencode 数据."""
        return dumps(obj, option=option)
