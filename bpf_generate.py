#
# BPF trace to Callgrind profile conversion
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
Profile generation from BPF instruction trace.

Trace is walked once from start to end.  Every instruction costs one
unit, which goes to the innermost function call open at that point
(or to "ground zero" when no call is open).  'call' instructions open
a new call and 'exit' instructions close the innermost one, adding its
(inclusive) cost to its caller.

Output is in Valgrind callgrind format:
	http://valgrind.org/docs/manual/cl-format.html
for KCachegrind / QCachegrind:
	http://kcachegrind.sourceforge.net/

When assembly listing output is requested, costs are given for each
instruction (pc), and positions are the listing file line numbers of
the pcs.  Otherwise each function has just one cost line, at its
first pc.
"""
import os
from bpf_config import CREATOR, DEFAULT_ASM, EVENT, GROUND_ZERO, LISTING_FIRST_LINE
from bpf_errors import ProfileIOError, TraceFormatError
from bpf_output import Output
from bpf_resolver import read_resolver, write_listing
from bpf_trace import contains_standard_header, read_instructions


def open_trace(path):
    "open trace file for reading"
    try:
        return open(path, "r", encoding="utf-8")
    except IOError as err:
        raise ProfileIOError(path, err)


def check_trace_header(path):
    "raise TraceFormatError if given trace file lacks the trace header"
    fobj = open_trace(path)
    try:
        with fobj:
            found = contains_standard_header(fobj)
    except (IOError, UnicodeDecodeError) as err:
        raise ProfileIOError(path, err)
    if not found:
        raise TraceFormatError(path)


# ---------------------------------------------------------------------
class Call:
    "function call that is open (on the call stack), or already finished"

    def __init__(self, address, caller_pc=0):
        self.address = address
        # caller function address, set when call is pushed to stack
        self.caller = GROUND_ZERO
        # pc of the call instruction in the caller
        self.caller_pc = caller_pc
        # inclusive cost, i.e. cost of this and all its calls
        self.cost = 0

    def is_ground(self):
        return self.address == GROUND_ZERO

    def __repr__(self):
        return "Call(0x%x <- 0x%x at %d, cost: %d)" % (self.address, self.caller, self.caller_pc, self.cost)


class Function:
    "function, with its own costs and finished calls to other functions"

    def __init__(self, address, name, pc):
        self.address = address
        self.name = name
        # pc of the function's first instruction
        self.pc = pc
        self.cost_by_pc = {}	# pc: own cost
        self.calls = []		# finished calls made by this function

    @classmethod
    def ground_zero(cls):
        "return function which collects everything outside of traced calls"
        return cls(GROUND_ZERO, "GROUND_ZERO", 0)

    def increment_cost(self, pc):
        "add one unit of own cost for given instruction"
        self.cost_by_pc[pc] = self.cost_by_pc.get(pc, 0) + 1

    def add_call(self, call):
        "add finished call done by this function"
        self.calls.append(call)

    def cost(self):
        "return own (exclusive) cost"
        return sum(self.cost_by_pc.values())

    def total_cost(self):
        "return inclusive cost of the function and of its calls"
        return self.cost() + sum([call.cost for call in self.calls])

    def __repr__(self):
        return "0x%x = %s: %d, total: %d, %d calls" % (self.address, self.name, self.cost(), self.total_cost(), len(self.calls))


class Source(Output):
    "assembly listing collected from trace instructions"

    def __init__(self):
        Output.__init__(self)
        self.lines = {}		# pc: listing line
        self.conflicts = {}	# pc: True

    def add_instruction(self, ix):
        "add given instruction to the listing"
        line = str(ix)
        old = self.lines.get(ix.pc)
        if old is None:
            self.lines[ix.pc] = line
        elif old != line and ix.pc not in self.conflicts:
            # keep the first one
            self.conflicts[ix.pc] = True
            if self.verbose:
                self.warning("inconsistent trace, pc %d was '%s', now '%s'" % (ix.pc, old, line))


# ---------------------------------------------------------------------
class Profile(Output):
    "call stack reconstruction from the trace and resulting profile"

    def __init__(self, resolver, asm=False):
        Output.__init__(self)
        self.resolver = resolver
        self.total_cost = 0
        # open calls, ground zero call is always at the bottom
        self.stack = [Call(GROUND_ZERO)]
        self.ground = Function.ground_zero()
        # address: Function, aliased function copies share the same instance
        self.functions = {GROUND_ZERO: self.ground}
        # resolver function index: Function
        self.by_index = {}
        self.line_level = asm
        # listing comes from the dump when there's one
        self.source = None
        if asm and resolver.is_default():
            self.source = Source()

    @classmethod
    def create(cls, trace_path, dump_path=None, asm=False, output=None):
        "check trace format, read dump (if any) and then profile data from the trace"
        check_trace_header(trace_path)
        resolver = read_resolver(dump_path, output)
        prof = cls(resolver, asm)
        if output:
            prof.share_output(output)
        if prof.verbose:
            prof.message("Parsing trace file '%s'..." % trace_path)
        fobj = open_trace(trace_path)
        try:
            with fobj:
                prof.parse_trace(fobj)
        except (IOError, UnicodeDecodeError) as err:
            raise ProfileIOError(trace_path, err)
        return prof

    def share_output(self, other):
        Output.share_output(self, other)
        if self.source:
            self.source.share_output(other)

    def is_line_level(self):
        "whether costs are collected per instruction for the assembly listing"
        return self.line_level

    def position(self, pc):
        "return callgrind position for given pc"
        if self.line_level:
            return pc + LISTING_FIRST_LINE
        return pc

    def depth(self):
        "return number of currently open calls"
        return len(self.stack) - 1

    def get_functions(self):
        "return traced functions in the order they were first called"
        functions = []
        seen = {}
        for function in self.functions.values():
            if function.address == GROUND_ZERO or id(function) in seen:
                continue
            seen[id(function)] = True
            functions.append(function)
        return functions

    def parse_trace(self, fobj):
        "walk trace file object instructions, building the profile"
        pending = None
        lines = 0
        for lineno, ix in read_instructions(fobj):
            lines = lineno
            # call target's first instruction is known only now
            if pending:
                self.push_call(pending, ix.pc)
                pending = None
            if self.source:
                self.source.add_instruction(ix)
            self.increment_cost(ix.pc)
            if ix.is_exit():
                self.pop_call(lineno)
            elif ix.is_call():
                pending = Call(ix.call_target(lineno), ix.pc)
        if pending:
            self.warning("trace ends with a call to 0x%x, ignoring it" % pending.address)
        depth = self.depth()
        if depth > 0:
            self.warning("Unbalanced call/exit: %d" % depth)
            for _ in range(depth):
                self.pop_call(lines)
        if self.verbose:
            self.message("%d instructions processed with %d functions." % (self.total_cost, len(self.get_functions())))

    def increment_cost(self, pc):
        "add cost of one instruction to innermost open call"
        self.total_cost += 1
        call = self.stack[-1]
        call.cost += 1
        self.functions[call.address].increment_cost(pc)

    def push_call(self, call, first_pc):
        "add call to the top of call stack, register its function on first sight"
        address = call.address
        call.caller = self.stack[-1].address
        self.stack.append(call)
        if address in self.functions:
            return
        name = self.resolver.update(address, first_pc)
        index = self.resolver.function_index(address)
        function = self.by_index.get(index)
        if function:
            if self.verbose:
                self.message("0x%x is a copy of '%s' at 0x%x" % (address, name, function.address))
        else:
            function = Function(address, name, first_pc)
            self.by_index[index] = function
        self.functions[address] = function

    def pop_call(self, lineno):
        "remove finished innermost call from the stack and add it to its caller"
        if len(self.stack) < 2:
            raise AssertionError("exit without call at line %d" % lineno)
        call = self.stack.pop()
        self.stack[-1].cost += call.cost
        self.functions[call.caller].add_call(call)
        return call

    def _call_statistics(self, function):
        "return list of (site pc, callee, call count, inclusive cost) for given function"
        line_level = self.is_line_level()
        stats = {}
        for call in function.calls:
            # aliased copies share the Function, so they get a single cfn= entry
            callee = self.functions[call.address]
            if line_level:
                key = (call.caller_pc, id(callee))
                site = call.caller_pc
            else:
                key = id(callee)
                site = function.pc
            if key in stats:
                stats[key][2] += 1
                stats[key][3] += call.cost
            else:
                stats[key] = [site, callee, 1, call.cost]
        return stats.values()

    def write_callgrind(self, write, asm_name=None):
        "write the profile in callgrind format with given write function"
        if not asm_name:
            asm_name = DEFAULT_ASM
        write("# callgrind format\n")
        write("version: 1\n")
        write("creator: %s\n" % CREATOR)
        write("events: %s\n" % EVENT)
        write("totals: %d\n" % self.total_cost)
        write("fl=%s\n" % asm_name)
        line_level = self.is_line_level()
        for function in self.get_functions():
            write("\n")
            write("fn=%s\n" % function.name)
            if line_level:
                for pc in sorted(function.cost_by_pc.keys()):
                    write("%d %d\n" % (self.position(pc), function.cost_by_pc[pc]))
            else:
                write("%d %d\n" % (function.pc, function.cost()))
            for site, callee, calls, cost in self._call_statistics(function):
                write("cfn=%s\n" % callee.name)
                write("calls=%d %d\n" % (calls, self.position(callee.pc)))
                write("%d %d\n" % (self.position(site), cost))

    def write_asm(self, write):
        "write assembly listing, from the dump if there's one, otherwise from the trace"
        if not self.resolver.is_default():
            self.resolver.write_pretty_source(write)
        elif self.source:
            write_listing(write, self.source.lines, self.resolver.resolve_by_first_pc)


# ---------------------------------------------------------------------
def write_files(outputs):
    """call writer() for each (path, writer) pair with write function
    of the (truncated) file.  All files are opened before writing any
    of them, and on failure all of them are removed"""
    files = []
    try:
        for path, writer in outputs:
            try:
                files.append((path, open(path, "w", encoding="utf-8"), writer))
            except IOError as err:
                raise ProfileIOError(path, err)
        for path, out, writer in files:
            try:
                with out:
                    writer(out.write)
            except IOError as err:
                raise ProfileIOError(path, err)
    except ProfileIOError:
        for path, out, writer in files:
            out.close()
            if os.path.exists(path):
                os.remove(path)
        raise


def run_generate(trace_path, asm_path=None, dump_path=None, output_path=None, output=None):
    """generate callgrind profile from given trace file to given output
    file (or 'output' Output instance write function), with optional
    assembly listing"""
    prof = Profile.create(trace_path, dump_path, asm_path is not None, output)
    # files are written only after whole trace has been processed
    outputs = []
    if asm_path:
        if prof.verbose:
            prof.message("Writing assembly listing to '%s'..." % asm_path)
        outputs.append((asm_path, prof.write_asm))
    if output_path:
        if prof.verbose:
            prof.message("Writing callgrind profile to '%s'..." % output_path)
        outputs.append((output_path, lambda write: prof.write_callgrind(write, asm_path)))
    write_files(outputs)
    if not output_path:
        if output:
            prof.write_callgrind(output.write, asm_path)
        else:
            prof.write_callgrind(prof.write, asm_path)
    return prof
