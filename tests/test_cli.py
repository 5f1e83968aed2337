"""测试 Bencode 命令行工具."""

import json
import logging
import re
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from bencstruct import BencodeStruct, dumps
from bencstruct.__main__ import cli
from bencstruct.log import logger


class Peer(BencodeStruct):
    """CLI 测试用结构体."""

    ip: str
    port: int


@pytest.fixture
def runner() -> CliRunner:
    """提供 Click CLI 测试运行器.

    Returns:
        CliRunner 实例.
    """
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """-v 会修改日志级别, 测试后恢复."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = logger.level
    yield
    logger.setLevel(level)
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)


def strip_ansi(text: str) -> str:
    """去除 ANSI 转义序列."""
    ansi_escape = re.compile(r"\x1B(?:[@-Z\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


# --- 基础 CLI 功能测试 ---


def test_cli_help(runner: CliRunner) -> None:
    """--help 选项应显示帮助信息."""
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert "--bytes-mode" in result.output


def test_cli_mutual_exclusion(runner: CliRunner) -> None:
    """同时提供参数和文件时应报错."""
    with runner.isolated_filesystem():
        Path("test.bin").write_bytes(b"i1e")

        result = runner.invoke(cli, ["i1e", "-f", "test.bin"])

        assert result.exit_code != 0
        assert "不能同时指定" in result.output


def test_cli_decode_argument(runner: CliRunner) -> None:
    """应能解码命令行参数提供的数据."""
    result = runner.invoke(cli, ["d3:bar4:spam3:fooi42ee"])

    assert result.exit_code == 0
    output = strip_ansi(result.output)
    assert "'bar'" in output
    assert "'spam'" in output
    assert "42" in output


def test_cli_decode_hex(runner: CliRunner) -> None:
    """--hex 选项把输入当作十六进制文本."""
    result = runner.invoke(cli, ["--hex", "69 34 32 65"])

    assert result.exit_code == 0
    assert "42" in result.output


def test_cli_invalid_hex(runner: CliRunner) -> None:
    """提供无效的十六进制字符串时应报错."""
    result = runner.invoke(cli, ["zz", "--hex"])

    assert result.exit_code != 0
    assert "无效的十六进制格式" in result.output


def test_cli_decode_stdin(runner: CliRunner) -> None:
    """未提供参数和文件时从标准输入读取."""
    result = runner.invoke(cli, [], input=b"l1:ai7ee")

    assert result.exit_code == 0
    assert "'a'" in result.output
    assert "7" in result.output


def test_cli_decode_file(runner: CliRunner, tmp_path: Path) -> None:
    """应能从二进制文件读取并解码数据."""
    data_file = tmp_path / "peer.bencode"
    data_file.write_bytes(dumps(Peer(ip="10.0.0.1", port=6881)))

    result = runner.invoke(cli, ["-f", str(data_file), "--format", "json"])

    assert result.exit_code == 0
    data = json.loads(strip_ansi(result.output))
    assert data == {"ip": "10.0.0.1", "port": 6881}


def test_cli_bytes_mode_raw(runner: CliRunner) -> None:
    """--bytes-mode raw 保留字节串."""
    result = runner.invoke(cli, ["4:spam", "--bytes-mode", "raw"])

    assert result.exit_code == 0
    assert "b'spam'" in result.output


def test_cli_json_binary_value(runner: CliRunner) -> None:
    """JSON 输出中无法解码的字节串以十六进制表示."""
    result = runner.invoke(cli, ["--hex", "6c 32 3a ff 00 65", "--format", "json"])

    assert result.exit_code == 0
    assert json.loads(strip_ansi(result.output)) == ["ff00"]


def test_cli_output_file(runner: CliRunner) -> None:
    """应能将解码结果保存到指定文件."""
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["d3:bar4:spame", "-o", "out.txt"])

        assert result.exit_code == 0
        assert "结果已保存到" in result.output
        assert Path("out.txt").read_text(encoding="utf-8") == "{'bar': 'spam'}"


def test_cli_decode_error(runner: CliRunner) -> None:
    """解码过程中发生错误时应优雅退出并显示错误信息."""
    result = runner.invoke(cli, ["d3:bar4:spam3:fooe"])

    assert result.exit_code != 0
    assert "解码失败" in result.output
    assert "odd number of elements" in result.output


def test_cli_verbose_output(runner: CliRunner) -> None:
    """-v 选项应显示数据大小, 并在出错时显示堆栈信息."""
    result = runner.invoke(cli, ["i3", "-v"])

    assert result.exit_code != 0
    assert "数据大小: 2 字节" in result.output
    assert "Traceback" in result.output


# --- Tree 格式输出测试 ---


def test_cli_tree_list(runner: CliRunner) -> None:
    """树状输出显示节点类别, 偏移量和值."""
    result = runner.invoke(cli, ["l4:spami42ee", "--format", "tree"])

    assert result.exit_code == 0
    output = strip_ansi(result.output)
    assert "Bencode Root" in output
    assert "list @0+12" in output
    assert "[0] string @1+6 'spam'" in output
    assert "[1] integer @7+4 42" in output


def test_cli_tree_dict_keeps_wire_order(runner: CliRunner) -> None:
    """树状输出按线格式顺序显示字典, 包括重复的键."""
    result = runner.invoke(cli, ["d1:bi1e1:ai2e1:bi3ee", "--format", "tree"])

    assert result.exit_code == 0
    output = strip_ansi(result.output)
    first_b = output.index("'b': integer @4+3 1")
    a = output.index("'a': integer @10+3 2")
    second_b = output.index("'b': integer @16+3 3")
    assert first_b < a < second_b


def test_cli_tree_multiple_values(runner: CliRunner) -> None:
    """树状输出接受连续的多个顶层值."""
    result = runner.invoke(cli, ["i1ei2e", "--format", "tree"])

    assert result.exit_code == 0
    output = strip_ansi(result.output)
    assert "integer @0+3 1" in output
    assert "integer @3+3 2" in output


def test_cli_tree_output_file(runner: CliRunner, tmp_path: Path) -> None:
    """树状输出应能正确保存到文件."""
    output_file = tmp_path / "tree.txt"

    result = runner.invoke(
        cli, ["d4:porti80ee", "--format", "tree", "--output", str(output_file)]
    )

    assert result.exit_code == 0
    assert f"结果已保存到: {output_file}" in result.output
    content = output_file.read_text(encoding="utf-8")
    assert "'port': integer" in content


def test_cli_tree_invalid_data(runner: CliRunner) -> None:
    """无效数据的树状输出应报错."""
    result = runner.invoke(cli, ["di1ei2ee", "--format", "tree"])

    assert result.exit_code != 0
    assert "解码失败" in result.output


# --- 编码 ---


def test_cli_encode_stdin(runner: CliRunner) -> None:
    """--encode 把 JSON 编码为规范的 Bencode."""
    result = runner.invoke(cli, ["--encode"], input='{"foo": 42, "bar": "spam"}')

    assert result.exit_code == 0
    assert result.stdout_bytes == b"d3:bar4:spam3:fooi42ee"


def test_cli_encode_hex(runner: CliRunner) -> None:
    """--encode 与 --hex 一起使用时输出十六进制文本."""
    result = runner.invoke(cli, ["--encode", "--hex", "[1]"])

    assert result.exit_code == 0
    assert result.output.strip() == b"li1ee".hex()


def test_cli_encode_output_file(runner: CliRunner, tmp_path: Path) -> None:
    """编码结果可以写入文件."""
    output_file = tmp_path / "out.bencode"

    result = runner.invoke(
        cli, ["--encode", '{"a": [null, "x"]}', "-o", str(output_file)]
    )

    assert result.exit_code == 0
    assert output_file.read_bytes() == b"d1:al3:nil1:xee"


def test_cli_encode_invalid_json(runner: CliRunner) -> None:
    """无效的 JSON 输入应报错."""
    result = runner.invoke(cli, ["--encode", "{nope"])

    assert result.exit_code != 0
    assert "无效的 JSON 输入" in result.output


def test_cli_encode_error(runner: CliRunner) -> None:
    """超出范围的整数导致编码失败."""
    result = runner.invoke(cli, ["--encode", str(2**70)])

    assert result.exit_code != 0
    assert "编码失败" in result.output
