"""Bencode 协议常量.

该模块定义了 Bencode 线格式中使用的定界符字节和安全限制.
"""

from enum import Enum

# 线格式定界符 (单字节)
BENCODE_INT = 0x69  # 'i'
BENCODE_LIST = 0x6C  # 'l'
BENCODE_DICT = 0x64  # 'd'
BENCODE_END = 0x65  # 'e'
BENCODE_COLON = 0x3A  # ':'
BENCODE_MINUS = 0x2D  # '-'

# 空引用的回退编码 ("nil" 字节串)
BENCODE_NIL = b"nil"

# 整数范围 (解码为有符号 64 位, 编码允许到无符号 64 位上限)
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
UINT64_MAX = (1 << 64) - 1

# 安全限制
MAX_STRING_LENGTH = 100 * 1024 * 1024  # 100MB
DEFAULT_MAX_DEPTH = 100


class Delim(Enum):
    """列表/字典的开始或结束定界符 Token."""

    LIST_OPEN = BENCODE_LIST
    DICT_OPEN = BENCODE_DICT
    END = BENCODE_END

    def __repr__(self) -> str:
        return f"Delim.{self.name}"
