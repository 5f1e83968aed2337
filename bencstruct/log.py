"""Bencode 日志记录器."""

import binascii
import logging

logger = logging.getLogger("bencstruct")


def _printable(chunk: bytes) -> str:
    # Bencode 大部分是 ASCII 文本, 同时显示可读形式
    return "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)


def get_hexdump(
    data: bytes | bytearray | memoryview, pos: int, window: int = 16
) -> str:
    """获取指定位置周围数据的十六进制转储.

    输出三行: 十六进制字节, 对应的 ASCII 字符, 以及指向 `pos` 的标记.

    Args:
        data: 完整的输入数据.
        pos: 需要标记的字节偏移量.
        window: 在 `pos` 两侧显示的字节数.

    Returns:
        str: 可直接写入日志的多行文本.
    """
    start = max(0, min(pos, len(data)) - window)
    end = min(len(data), pos + window)
    chunk = bytes(data[start:end])

    hex_str = binascii.hexlify(chunk, " ").decode("ascii")
    ascii_str = "  ".join(_printable(chunk))

    marker = ""
    if start <= pos < end:
        marker = "\n" + " " * ((pos - start) * 3) + "^^"

    return (
        f"位置 {pos} 的上下文 (显示 {start}-{end}):\n{hex_str}\n{ascii_str}{marker}"
    )
