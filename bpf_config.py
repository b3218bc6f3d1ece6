#
# bpf-profile constants and INI style configuration file handling:
# loading, getting variables with their defaults, writing them back
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

import os
from bpf_errors import ProfileIOError
from bpf_output import Output

# address of the "call" which is outside of all traced functions
GROUND_ZERO = 2**64 - 1

# separates pc, instruction and comment in assembly listings
PADDING = "        "

# callgrind "fl=" value when no assembly listing is generated
DEFAULT_ASM = "<none>"

# assembly listing file line of pc 0, first line is the listing header
LISTING_FIRST_LINE = 2

FORMATS = ("callgrind",)
DEFAULT_FORMAT = "callgrind"

DEFAULT_CONFIG = "bpf-profile.conf"

CREATOR = "bpf-profile"
EVENT = "Instructions"

# section: {key: value}, key prefix tells value type:
# b = bool, n = number, s = string
DEFAULTS = {
    "[General]": {
        "bVerbose": False,
    },
    "[Calls]": {
        "nTab": 2,
    },
    "[Generate]": {
        "sFormat": DEFAULT_FORMAT,
    },
}


# ------------------------------------------------------
# Helper functions for type safe configuration variable access.
# Map booleans, integers and strings to Python types, and back to strings.

def value_to_text(key, value):
    "value_to_text(key, value) -> text, convert Python type to string"
    valtype = type(value)
    if valtype == bool:
        assert key[0] == "b" # bool prefix
        if value:
            text = "TRUE"
        else:
            text = "FALSE"
    elif valtype == int:
        assert key[0] == "n" # numeric prefix
        text = str(value)
    else:
        assert key[0] == "s" # string prefix
        if value is None:
            text = ""
        else:
            text = value
    return text

def text_to_value(text):
    "text_to_value(text) -> value, convert INI file values to real types"
    # bool?
    upper = text.upper()
    if upper == "FALSE":
        value = False
    elif upper == "TRUE":
        value = True
    else:
        try:
            # integer?
            value = int(text)
        except ValueError:
            # string
            value = text
    return value


# ------------------------------------------------------
# Handle INI style configuration files

class ConfigStore(Output):
    "configuration variables, read from file, falling back to defaults"

    def __init__(self, defaults=DEFAULTS):
        Output.__init__(self)
        self.defaults = defaults
        self.sections = {}
        self.path = None

    def load(self, path, must_exist=False):
        "load(path[,must_exist]) -> load given configuration file"
        self.path = path
        if not os.path.isfile(path):
            if must_exist:
                self.warning("configuration file '%s' missing, using defaults" % path)
            self.sections = {}
            return
        try:
            with open(path, "r", encoding="utf-8") as fobj:
                self.sections = self._read(fobj)
        except (IOError, UnicodeDecodeError) as err:
            raise ProfileIOError(path, err)

    def _read(self, fobj):
        "_read(fobj) -> section to key:value dicts mapping"
        if self.verbose:
            self.message("Reading configuration file '%s'..." % self.path)
        name = "[_orphans_]"
        seckeys = {}
        sections = {}
        for line in fobj.readlines():
            line = line.strip()
            if not line or line[0] == '#':
                continue
            if line[0] == '[':
                if line in sections:
                    self.warning("section '%s' twice in configuration" % line)
                if seckeys:
                    sections[name] = seckeys
                    seckeys = {}
                name = line
                continue
            if line.find('=') < 0:
                self.warning("line without key=value pair:\n%s" % line)
                continue
            key, text = [string.strip() for string in line.split('=', 1)]
            value = text_to_value(text)
            if name not in self.defaults or key not in self.defaults[name]:
                self.warning("unknown key '%s' in section '%s'" % (key, name))
                continue
            if type(value) != type(self.defaults[name][key]):
                self.warning("invalid '%s' value '%s' in section '%s'" % (key, text, name))
                continue
            seckeys[key] = value
        if seckeys:
            sections[name] = seckeys
        return sections

    def get(self, section, key):
        "get(section, key) -> value from file, or its default"
        if section in self.sections and key in self.sections[section]:
            return self.sections[section][key]
        if section not in self.defaults:
            raise AttributeError("no section '%s'" % section)
        if key not in self.defaults[section]:
            raise AttributeError("key '%s' not in section '%s'" % (key, section))
        return self.defaults[section][key]

    def set(self, section, key, value):
        "set(section,key,value), set given key in given section"
        if section not in self.defaults:
            raise AttributeError("no section '%s'" % section)
        if key not in self.defaults[section]:
            raise AttributeError("key '%s' not in section '%s'" % (key, section))
        if section not in self.sections:
            self.sections[section] = {}
        self.sections[section][key] = value

    def save(self, fileobj):
        "save(fileobj), write current values of all known keys to given file object"
        for name in sorted(self.defaults.keys()):
            fileobj.write("%s\n" % name)
            for key in sorted(self.defaults[name].keys()):
                value = value_to_text(key, self.get(name, key))
                fileobj.write("%s = %s\n" % (key, value))
            fileobj.write("\n")
