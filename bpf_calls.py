#
# BPF trace function call order listing
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
Lists functions in the order they're called in the trace, indented
according to their call depth:

entrypoint
  function_1
    function_2
  function_2
"""
from bpf_errors import ProfileIOError
from bpf_generate import check_trace_header, open_trace
from bpf_resolver import read_resolver
from bpf_trace import read_instructions


def print_calls(fobj, resolver, tab, write):
    "write names of called functions from trace file object, return number of calls"
    depth = 0
    calls = 0
    pending = None
    for lineno, ix in read_instructions(fobj):
        # handles also sequences of calls, first instruction of a call being another call
        if pending is not None:
            name = resolver.update(pending, ix.pc)
            write("%s%s\n" % (" " * (depth * tab), name))
            depth += 1
            calls += 1
            pending = None
        if ix.is_exit():
            if depth > 0:
                depth -= 1
        elif ix.is_call():
            pending = ix.call_target(lineno)
    return calls


def run_calls(trace_path, dump_path=None, tab=2, output=None):
    "check trace format, read dump (if any) and list calls from the trace"
    check_trace_header(trace_path)
    resolver = read_resolver(dump_path, output)
    if output:
        write = output.write
    else:
        write = resolver.write
    fobj = open_trace(trace_path)
    try:
        with fobj:
            calls = print_calls(fobj, resolver, tab, write)
    except (IOError, UnicodeDecodeError) as err:
        raise ProfileIOError(trace_path, err)
    if resolver.verbose:
        resolver.message("%d calls to %d functions." % (calls, len(resolver.index_by_address)))
    return calls
