#
# BPF VM instruction trace parsing
#
# Copyright (C) 2021-2024 by the bpf-profile authors, licensed under GPL v2+
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
"""
BPF program instruction trace lines, as logged by the Solana BPF loader
when run with RUST_LOG=solana_bpf_loader_program=trace:

[2021-05-12T07:48:07.945826240Z TRACE solana_bpf_loader_program] BPF Program Instruction Trace:
0 [0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0] 29: mov64 r1, r10
1 [0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0] 30: call 0x9c2b5b11
...
"""
import re
from bpf_config import GROUND_ZERO, PADDING
from bpf_errors import TraceNotCallError, TraceParseError

# trace header line, must be somewhere before the instructions
TRACE_HEADER = re.compile(r"\[.+\s+TRACE\s+.+BPF Program Instruction Trace")

# <count> [<registers>] <pc>: <instruction>
TRACE_INSTRUCTION = re.compile(r"\d+\s+\[.+\]\s+(\d+):\s+(.+)")

# call target address
HEX_ADDRESS = re.compile(r"^(?:0x)?([0-9a-fA-F]+)$")


def contains_standard_header(fobj):
    "return True if given file object has the trace header line"
    for line in fobj:
        if TRACE_HEADER.search(line):
            return True
    return False


def read_instructions(fobj):
    "yield (line number, Instruction) for each instruction line in file object"
    lineno = 0
    for line in fobj:
        lineno += 1
        ix = Instruction.parse(line)
        if ix:
            yield lineno, ix


def hex_str_to_address(s):
    "convert hex number string (with optional 0x prefix) to address, or raise ValueError"
    match = HEX_ADDRESS.match(s)
    if not match:
        raise ValueError("invalid address '%s'" % s)
    return int(match.group(1), 16)


class Instruction:
    "BPF instruction from the trace (call or another)"

    def __init__(self, pc, text):
        self.pc = pc
        self.text = text

    @classmethod
    def parse(cls, line):
        "return Instruction for given trace line, or None if it isn't one"
        match = TRACE_INSTRUCTION.search(line)
        if not match:
            return None
        return cls(int(match.group(1)), match.group(2).strip())

    def is_call(self):
        "whether the instruction calls a function (call or callx)"
        return self.text.startswith("call")

    def is_exit(self):
        "whether the instruction returns from a function"
        return self.text == "exit"

    def _call_pair(self, lineno):
        if not self.is_call():
            raise TraceNotCallError(self.text, lineno)
        # "call 0x9c2b5b11"
        pair = self.text.split()
        if len(pair) != 2:
            raise TraceParseError(self.text, lineno)
        return pair

    def call_operation(self, lineno):
        "return 'call' or 'callx'"
        return self._call_pair(lineno)[0]

    def call_target(self, lineno):
        "return address of the call target"
        target = self._call_pair(lineno)[1]
        try:
            address = hex_str_to_address(target)
        except ValueError:
            raise TraceParseError(self.text, lineno)
        if address == GROUND_ZERO:
            raise TraceParseError(self.text, lineno)
        return address

    def __eq__(self, other):
        return (self.pc, self.text) == (other.pc, other.text)

    def __repr__(self):
        return "Instruction(%d, '%s')" % (self.pc, self.text)

    def __str__(self):
        "return listing line for the instruction"
        return "%d:%s%s" % (self.pc, PADDING, self.text)
