#
# Resolving BPF call target addresses to function names
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
Function name resolver.

Trace has only addresses of the called functions.  Without a dump
file, functions get generated names in the order they're first called.
With a dump file, produced with:
	llvm-objdump -print-imm-hex --source --disassemble <ELF file>

functions are recognized by the program counter of their first
instruction, and named according to the dump.  Several call addresses
can lead to the same function (first pc), they all get the same name.

Dump disassembly section format:
0000000000000120 <entrypoint>:
      36	bf 16 00 00 00 00 00 00	r6 = r1
0000000000000130 <LBB0_1>:
      38	b7 01 00 00 00 00 00 00	r1 = 0
...
"""
import re
from bpf_config import GROUND_ZERO, PADDING
from bpf_errors import DumpFormatError, DumpNoDisassemblyError, DumpParseError, ProfileIOError
from bpf_output import Output

HEADER = "ELF Header"
DISASM_HEADER = "Disassembly of section .text"
PREFIX_OF_UNRESOLVED = "function_"
LISTING_HEADER = ";; Generated BPF pretty assembly code for QCacheGrind"

# internal basic block label
LBB = re.compile(r"^[0-9a-fA-F]+\s+<(LBB.+)>")
# function label
FUNC_HEADER = re.compile(r"^[0-9a-fA-F]+\s+<(.+)>")
# <pc> <instruction bytes> <instruction>
INSTRUCTION = re.compile(r"^\s+(\d+)(\s+[0-9a-fA-F]{2})+\s+(.+)")


def read_resolver(path, output=None):
    "return resolver built from given dump file, or default one if path is None"
    resolver = Resolver()
    if output:
        resolver.share_output(output)
    if path is None:
        return resolver
    if resolver.verbose:
        resolver.message("Reading dump file '%s', creating resolver..." % path)
    try:
        with open(path, "r", encoding="utf-8") as fobj:
            resolver.parse_dump(fobj)
    except (IOError, UnicodeDecodeError) as err:
        raise ProfileIOError(path, err)
    return resolver


def write_listing(write, source, first_pc_name):
    """write pc -> source line dict as listing where each pc has its
    own line, pc 0 being on the line after the header.  Instructions
    starting a function get name from first_pc_name() as a comment"""
    write("%s\n" % LISTING_HEADER)
    if not source:
        return
    for pc in range(max(source.keys()) + 1):
        line = source.get(pc, "")
        name = first_pc_name(pc)
        if name is None:
            write("%s\n" % line)
        else:
            write("%s%s; %s\n" % (line, PADDING, name))


class Resolver(Output):
    "function names by their addresses and first instruction program counters"

    def __init__(self):
        Output.__init__(self)
        self.from_dump = False
        self.functions = []		# function names, index is the handle
        self.index_by_address = {}	# address: index
        self.index_by_first_pc = {}	# pc: index
        self.unresolved_counter = 0
        self.pretty_source = {}		# pc: listing line

    def is_default(self):
        "whether resolver knows nothing from a dump file"
        return not self.from_dump

    def _add_function(self, name, first_pc):
        "add new function name with given first pc and return its index"
        index = len(self.functions)
        self.functions.append(name)
        self.index_by_first_pc[first_pc] = index
        return index

    def update(self, address, first_pc):
        """return name of function at given address, which first instruction
        is at given pc, generate a name if it can't be resolved"""
        assert address != GROUND_ZERO
        if address not in self.index_by_address:
            if first_pc in self.index_by_first_pc:
                # there can be multiple copies of one function with different addresses
                index = self.index_by_first_pc[first_pc]
            else:
                if self.from_dump:
                    name = "%s%d (0x%x)" % (PREFIX_OF_UNRESOLVED, self.unresolved_counter, address)
                else:
                    name = "%s%d" % (PREFIX_OF_UNRESOLVED, self.unresolved_counter)
                self.unresolved_counter += 1
                index = self._add_function(name, first_pc)
            self.index_by_address[address] = index
            if self.verbose:
                self.message("0x%x (first pc %d): %s" % (address, first_pc, self.functions[index]))
        return self.functions[self.index_by_address[address]]

    def function_index(self, address):
        "return handle of the function at already seen address"
        return self.index_by_address[address]

    def resolve_by_address(self, address):
        "return name of the function at already seen address"
        assert address != GROUND_ZERO
        return self.functions[self.index_by_address[address]]

    def resolve_by_first_pc(self, pc):
        "return name of the function starting at given pc, or None"
        index = self.index_by_first_pc.get(pc)
        if index is None:
            return None
        return self.functions[index]

    def write_pretty_source(self, write):
        "write listing made from the dump file"
        write_listing(write, self.pretty_source, self.resolve_by_first_pc)

    def parse_dump(self, fobj):
        "parse function names and their instructions from dump file object"
        lineno = 0
        was_header = was_disasm = False
        # skip to the disassembly
        for line in fobj:
            lineno += 1
            if line.startswith(HEADER):
                was_header = True
                continue
            if line.startswith(DISASM_HEADER):
                if not was_header:
                    raise DumpFormatError()
                was_disasm = True
                break
        if not was_disasm:
            if not was_header:
                raise DumpFormatError()
            raise DumpNoDisassemblyError()

        # functions and their instructions
        label = function = None
        functions = instructions = 0
        for line in fobj:
            lineno += 1
            if not line.strip():
                continue
            match = LBB.match(line)
            if match:
                label = match.group(1)
                continue
            match = FUNC_HEADER.match(line)
            if match:
                function = match.group(1)
                continue
            match = INSTRUCTION.match(line)
            if not match:
                raise DumpParseError(line.rstrip(), lineno)
            pc = int(match.group(1))
            text = match.group(3).strip()
            if function:
                if pc not in self.index_by_first_pc:
                    self._add_function(function, pc)
                    functions += 1
                function = None
            if label:
                self.pretty_source[pc] = "%d:%s%s%s; %s" % (pc, PADDING, text, PADDING, label)
                label = None
            else:
                self.pretty_source[pc] = "%d:%s%s" % (pc, PADDING, text)
            instructions += 1
        self.from_dump = True
        if self.verbose:
            self.message("%d lines with %d functions and %d instructions parsed." % (lineno, functions, instructions))
