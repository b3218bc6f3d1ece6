#
# bpf-profile error classes
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
Errors raised while converting traces to profiles.

All of them abort the conversion.  Trace lines which just don't look
like instruction records are not errors, Instruction.parse() returns
None for them.  Broken internal invariants (like an 'exit' without
an open call) raise AssertionError instead of these.
"""


class ProfileError(Exception):
    "base class for user visible conversion errors"


class ProfileIOError(ProfileError):
    "opening, reading or writing a file failed"

    def __init__(self, path, error):
        ProfileError.__init__(self, "'%s': %s" % (path, error))
        self.path = path
        self.error = error


# ---------------------------------------------------------------------
class FormatError(ProfileError):
    "input file is not in the expected format"


class TraceFormatError(FormatError):
    def __init__(self, path=None):
        if path:
            msg = "unsupported format of trace file '%s': should contain standard header" % path
        else:
            msg = "unsupported format of trace file: should contain standard header"
        FormatError.__init__(self, msg)


class DumpFormatError(FormatError):
    def __init__(self):
        FormatError.__init__(self, "unsupported format of dump file: should contain standard header")


class DumpNoDisassemblyError(FormatError):
    def __init__(self):
        FormatError.__init__(self, "dump file without disassembly")


# ---------------------------------------------------------------------
class ParseError(ProfileError):
    "line had expected shape, but its content could not be parsed"
    what = "line"

    def __init__(self, text, lineno, msg=None):
        if not msg:
            msg = "cannot parse %s '%s' at line %d" % (self.what, text, lineno)
        ProfileError.__init__(self, msg)
        self.text = text
        self.lineno = lineno


class TraceParseError(ParseError):
    what = "trace instruction"


class TraceNotCallError(ParseError):
    def __init__(self, text, lineno):
        msg = "instruction at line %d is not a call: '%s'" % (lineno, text)
        ParseError.__init__(self, text, lineno, msg)


class DumpParseError(ParseError):
    what = "instruction of a function"
