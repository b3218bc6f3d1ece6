import io
import pytest
from bpf_config import GROUND_ZERO
from bpf_errors import TraceNotCallError, TraceParseError
from bpf_trace import Instruction, contains_standard_header, hex_str_to_address, read_instructions


def test_header_missing():
    assert not contains_standard_header(io.StringIO("Lorem ipsum dolor sit amet"))


def test_header_ok():
    fobj = io.StringIO("some banner\n[Z TRACE bpf] BPF Program Instruction Trace:\n")
    assert contains_standard_header(fobj)


def test_parse_instruction():
    ix = Instruction.parse("12 [0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0] 29: mov64 r1, r10  \n")
    assert ix == Instruction(29, "mov64 r1, r10")
    assert not ix.is_call()
    assert not ix.is_exit()


@pytest.mark.parametrize("line", [
    "",
    "\n",
    "[2021-05-12T07:48:07Z TRACE solana_bpf_loader_program] BPF Program Instruction Trace:",
    "Program log: hello",
    "0 [0, 0] xx: mov64 r1, r10",
])
def test_parse_skips(line):
    assert Instruction.parse(line) is None


def test_exit():
    ix = Instruction(5, "exit")
    assert ix.is_exit()
    assert not ix.is_call()


def test_call():
    ix = Instruction(7, "call 0x9c2b5b11")
    assert ix.is_call()
    assert ix.call_operation(3) == "call"
    assert ix.call_target(3) == 0x9c2b5b11


def test_callx_without_prefix():
    ix = Instruction(7, "callx 1f")
    assert ix.is_call()
    assert ix.call_operation(3) == "callx"
    assert ix.call_target(3) == 0x1f


@pytest.mark.parametrize("text", ["call", "call 0x10 0x20", "call main", "call -1"])
def test_call_parse_errors(text):
    with pytest.raises(TraceParseError) as info:
        Instruction(7, text).call_target(42)
    assert info.value.lineno == 42
    assert info.value.text == text


def test_call_to_ground_is_error():
    with pytest.raises(TraceParseError):
        Instruction(7, "call 0x%x" % GROUND_ZERO).call_target(1)


def test_not_call():
    with pytest.raises(TraceNotCallError) as info:
        Instruction(7, "exit").call_target(9)
    assert "line 9" in str(info.value)


def test_hex_address():
    assert hex_str_to_address("0x10") == 16
    assert hex_str_to_address("FF") == 255
    with pytest.raises(ValueError):
        hex_str_to_address("0x")


def test_listing_line():
    assert str(Instruction(12, "exit")) == "12:        exit"


def test_read_instructions_line_numbers(make_trace):
    fobj = make_trace([(1, "mov64 r1, r10"), (2, "exit")])
    assert list(read_instructions(fobj)) == [
        (2, Instruction(1, "mov64 r1, r10")),
        (3, Instruction(2, "exit")),
    ]
