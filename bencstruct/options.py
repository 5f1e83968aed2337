"""Bencode 序列化和反序列化的配置选项.

该模块定义了用于控制 `dumps` 和 `loads` 函数行为的选项标志.
"""

from enum import IntFlag


class BencodeOption(IntFlag):
    """Bencode 配置选项标志.

    可以使用位运算组合多个选项:
        option = BencodeOption.STRICT_INTEGERS | BencodeOption.STRICT_DICT_KEYS
    """

    # 默认行为: 宽松解析 (与大多数实现一致)
    NONE = 0x0000

    # 拒绝前导零 (i007e, 03:abc) 和负零 (i-0e)
    STRICT_INTEGERS = 0x0001

    # 字典中出现重复键时报错 (默认保留最后一次出现的值)
    STRICT_DICT_KEYS = 0x0002

    # 编码记录时跳过值为 None 的字段 (默认编码为 3:nil, 与映射一致)
    OMIT_NONE = 0x0004

    # 严格模式: 以上两个解析检查的组合
    STRICT = STRICT_INTEGERS | STRICT_DICT_KEYS
