# Shared test data and fixtures for bpf-profile tests

import io
import pytest
from bpf_output import Output

TRACE_HEADER = "[2021-05-12T07:48:07.945826240Z TRACE solana_bpf_loader_program] BPF Program Instruction Trace:\n"

# main (0x100) calls func1 (0x200) which calls func2 (0x300) twice,
# then main calls func2 once more
NESTED_CALLS = [
    (0, "mov64 r1, r10"),
    (1, "mov64 r2, 1"),
    (2, "call 0x100"),
    (10, "mov64 r0, 0"),
    (11, "call 0x200"),
    (20, "call 0x300"),
    (30, "mov64 r0, 1"),
    (31, "exit"),
    (21, "call 0x300"),
    (30, "mov64 r0, 1"),
    (31, "exit"),
    (22, "exit"),
    (12, "call 0x300"),
    (30, "mov64 r0, 1"),
    (31, "exit"),
    (13, "exit"),
    (3, "mov64 r0, 0"),
    (4, "mov64 r1, 0"),
]

DUMP = """
program.so:	file format ELF64-BPF

ELF Header:
  Magic:   7f 45 4c 46 02 01 01 00 00 00 00 00 00 00 00 00
  Class:                             ELF64
  Machine:                           EM_BPF

Disassembly of section .text:

0000000000000050 <main>:
      10	b7 00 00 00 00 00 00 00	r0 = 0
      11	85 10 00 00 ff ff ff ff	call -1
0000000000000060 <LBB0_1>:
      12	85 10 00 00 ff ff ff ff	call -1
      13	95 00 00 00 00 00 00 00	exit

00000000000000a0 <func1>:
      20	85 10 00 00 ff ff ff ff	call -1
      21	85 10 00 00 ff ff ff ff	call -1
      22	95 00 00 00 00 00 00 00	exit

00000000000000f0 <func2>:
      30	b7 00 00 00 01 00 00 00	r0 = 1
      31	95 00 00 00 00 00 00 00	exit

0000000000000100 <helper>:
      40	b7 00 00 00 02 00 00 00	r0 = 2
      41	95 00 00 00 00 00 00 00	exit
"""


def trace_text(instructions, header=True):
    "return trace file contents for given (pc, text) instruction list"
    lines = []
    if header:
        lines.append(TRACE_HEADER)
    count = 0
    for pc, text in instructions:
        lines.append("%d [0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0] %d: %s\n" % (count, pc, text))
        count += 1
    return "".join(lines)


@pytest.fixture
def make_trace():
    "return function giving file object for (pc, text) instruction list"
    def make(instructions, header=True):
        return io.StringIO(trace_text(instructions, header))
    return make


@pytest.fixture
def trace_file(tmp_path):
    "return function writing trace file for (pc, text) instruction list and returning its path"
    def write(instructions, header=True, name="trace.txt"):
        path = tmp_path / name
        path.write_text(trace_text(instructions, header), encoding="utf-8")
        return str(path)
    return write


@pytest.fixture
def dump_file(tmp_path):
    path = tmp_path / "program.dump"
    path.write_text(DUMP, encoding="utf-8")
    return str(path)


@pytest.fixture
def messages():
    "Output instance collecting messages into its 'text' StringIO member"
    out = Output()
    out.text = io.StringIO()
    out.set_messages(out.text)
    return out


@pytest.fixture
def nested_calls():
    return list(NESTED_CALLS)
