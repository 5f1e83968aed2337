"""Bencode 配置对象."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from .const import DEFAULT_MAX_DEPTH
from .options import BencodeOption

BytesMode = Literal["raw", "string", "auto"]


@dataclass(frozen=True)
class BencodeConfig:
    """序列化/反序列化配置 (不可变).

    这是所有配置的统一容器, 在 API 入口层创建,
    然后传递给 Encoder/Decoder 内核.

    Attributes:
        flags: 选项标志 (IntFlag).
        default: 编码器遇到未知类型时调用的回退函数.
        bytes_mode: 反序列化时字节数据的处理模式.
        max_depth: 解码时允许的最大嵌套深度.
    """

    flags: BencodeOption = BencodeOption.NONE
    default: Callable[[Any], Any] | None = None
    bytes_mode: BytesMode = "raw"
    max_depth: int = DEFAULT_MAX_DEPTH

    @classmethod
    def from_params(
        cls,
        option: BencodeOption | int = BencodeOption.NONE,
        default: Callable[[Any], Any] | None = None,
        bytes_mode: BytesMode = "raw",
        max_depth: int | None = None,
    ) -> "BencodeConfig":
        """从参数构建配置对象.

        Args:
            option: BencodeOption 枚举.
            default: 未知类型的回退序列化函数.
            bytes_mode: 反序列化时字节数据的处理模式.
            max_depth: 最大嵌套深度, None 表示使用默认值.

        Returns:
            BencodeConfig: 配置对象.
        """
        if bytes_mode not in ("raw", "string", "auto"):
            raise ValueError(f"Invalid bytes_mode: {bytes_mode!r}")

        return cls(
            flags=BencodeOption(option),
            default=default,
            bytes_mode=bytes_mode,
            max_depth=DEFAULT_MAX_DEPTH if max_depth is None else max_depth,
        )

    @property
    def omit_none(self) -> bool:
        """是否跳过记录中值为 None 的字段."""
        return bool(self.flags & BencodeOption.OMIT_NONE)

    @property
    def option(self) -> int:
        """返回 int 形式的 option 值 (用于传递给底层 DataReader/DataWriter)."""
        return int(self.flags)
