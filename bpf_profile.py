#!/usr/bin/env python3
#
# BPF trace to profile converter
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
A tool for converting BPF VM instruction traces to profiles for tools
like callgrind_annotate or KCachegrind / QCachegrind.

You get the trace file by running the Solana cluster with:
	export RUST_LOG=solana_bpf_loader_program=trace

To resolve names of functions, the tool needs a dump file with
the disassembly of the program ELF file, which you get by passing
the --dump flag to 'cargo build-bpf', or directly with:
	llvm-objdump -print-imm-hex --source --disassemble <ELF file>


Usage: bpf-profile [options] <command> <trace file>

Commands:
	calls		print functions in order of calls
	generate	generate performance profile

Options:
	-c <file>	configuration file (default: bpf-profile.conf)
	-v		verbose output
	-d <file>	dump file (enables resolving names of functions)
	-t <count>	indentation size for 'calls' (default: 2)
	-a <file>	write generated assembly listing to <file>
			(enables line by line profiling)
	-f <format>	format of the generated profile, only 'callgrind'
	-o <file>	profile output file (default is stdout)
	-s <file>	save current configuration to <file>

Long options for above are:
	--config
	--verbose
	--dump
	--tab
	--asm
	--format
	--output
	--save-config

Configuration file is in INI format, with these keys
(command line options override them):
	[General]
	bVerbose = FALSE
	[Calls]
	nTab = 2
	[Generate]
	sFormat = callgrind

For example:
	bpf-profile -d program.dump -a program.asm -o callgrind.out generate trace.txt
	kcachegrind callgrind.out
"""
import getopt, os, sys
from bpf_calls import run_calls
from bpf_config import ConfigStore, DEFAULT_CONFIG, FORMATS
from bpf_errors import ProfileError, ProfileIOError
from bpf_generate import run_generate
from bpf_output import Output

COMMANDS = ("calls", "generate")


class Main(Output):
    "program main & args parsing"
    longopts = [
        "asm=",
        "config=",
        "dump=",
        "format=",
        "output=",
        "save-config=",
        "tab=",
        "verbose"
    ]

    def __init__(self, argv):
        Output.__init__(self)
        self.name = os.path.basename(argv[0])
        self.args = argv[1:]
        self.config = ConfigStore()
        self.config_path = DEFAULT_CONFIG
        self.config_given = False
        self.save_path = None
        self.dump_path = None
        self.asm_path = None
        self.output_path = None
        self.tab = None
        self.format = None
        self.command = None
        self.trace_path = None

    def parse_args(self):
        "parse program arguments"
        try:
            opts, rest = getopt.gnu_getopt(self.args, "a:c:d:f:o:s:t:v", self.longopts)
        except getopt.GetoptError as err:
            self.usage(err)

        for opt, arg in opts:
            if opt in ("-a", "--asm"):
                self.asm_path = arg
            elif opt in ("-c", "--config"):
                self.config_path = arg
                self.config_given = True
            elif opt in ("-d", "--dump"):
                self.dump_path = arg
            elif opt in ("-f", "--format"):
                self.format = arg
            elif opt in ("-o", "--output"):
                self.output_path = arg
            elif opt in ("-s", "--save-config"):
                self.save_path = arg
            elif opt in ("-t", "--tab"):
                self.tab = self.get_value(opt, arg)
            elif opt in ("-v", "--verbose"):
                self.enable_verbose()
            else:
                self.usage("unknown option '%s' with value '%s'" % (opt, arg))

        if self.save_path and not rest:
            return
        if len(rest) != 2:
            self.usage("command and trace file arguments expected")
        self.command, self.trace_path = rest
        if self.command not in COMMANDS:
            self.usage("unknown command '%s'" % self.command)

    def load_config(self):
        "load configuration and fill options not given on command line"
        self.config.share_output(self)
        self.config.load(self.config_path, self.config_given)
        if self.config.get("[General]", "bVerbose"):
            self.enable_verbose()
            self.config.share_output(self)
        if self.tab is None:
            self.tab = self.config.get("[Calls]", "nTab")
        if self.tab < 0:
            self.usage("invalid indentation size: %d" % self.tab)
        if self.format is None:
            self.format = self.config.get("[Generate]", "sFormat")
        if self.format not in FORMATS:
            self.usage("unsupported profile format '%s', supported: %s" % (self.format, ', '.join(FORMATS)))

    def save_config(self):
        "save current configuration to file given with -s option"
        # command line options override configuration file values
        self.config.set("[General]", "bVerbose", self.verbose)
        self.config.set("[Calls]", "nTab", self.tab)
        self.config.set("[Generate]", "sFormat", self.format)
        try:
            with open(self.save_path, "w", encoding="utf-8") as out:
                self.config.save(out)
        except IOError as err:
            raise ProfileIOError(self.save_path, err)
        self.message("Saved configuration file '%s'." % self.save_path)

    def execute(self):
        "run the requested command"
        if self.save_path:
            self.save_config()
        if not self.command:
            return
        if self.command == "calls":
            run_calls(self.trace_path, self.dump_path, self.tab, self)
        else:
            run_generate(self.trace_path, self.asm_path, self.dump_path, self.output_path, self)

    def run(self):
        "parse arguments and configuration, run the command, exit with error on failure"
        self.parse_args()
        try:
            self.load_config()
            self.execute()
        except ProfileError as err:
            self.error_exit(err)

    def get_value(self, opt, arg):
        "return numeric value for given string"
        try:
            return int(arg)
        except ValueError:
            return self.usage("invalid '%s' numeric value: '%s'" % (opt, arg))

    def usage(self, msg):
        "show program usage + error message"
        self.message(__doc__)
        self.error_exit(msg)


def main(argv=None):
    "program entry point"
    if argv is None:
        argv = sys.argv
    Main(argv).run()
    return 0


# ---------------------------------------------------------------------
if __name__ == "__main__":
    sys.exit(main())
