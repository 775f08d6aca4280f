#!/usr/bin/env python3

"""
RAM Emulator

Supports reading and writing of blocks of memory or individual bytes.  Every
access is bounds-checked, so a runaway ROM raises a MemoryFault rather than
scribbling over the host.

Range checks are exposed separately so that an instruction touching several
addresses can verify all of them before it writes anything.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class MemoryFault(Exception):
    pass


class RAM:
    def __init__(self, mem_size=0):
        self.resize(mem_size)

    def resize(self, mem_size):
        self.mem = memoryview(bytearray(mem_size))
        self.mem_top = mem_size - 1
        self.mem_size = mem_size

    def read(self, location):
        self.check_range(location)
        return self.mem[location]

    def read_block(self, location, size=1):
        self.check_range(location, size)
        return self.mem[location:location + size]

    def write(self, location, byte):
        self.check_range(location)
        self.mem[location] = byte

    def write_block(self, location, block):
        block_size = len(block)
        self.check_range(location, block_size)
        self.mem[location:location + block_size] = block

    def check_range(self, location, size=1):
        if size <= 0:
            return  # Nothing is touched

        if location < 0 or location + size - 1 > self.mem_top:
            raise MemoryFault(
                "Memory access out of range: 0x{:04x}-0x{:04x} (top is 0x{:03x})".format(
                    location, location + size - 1, self.mem_top
                )
            )

    def zero_block(self, offset, size):
        self.check_range(offset, size)
        self.mem[offset:offset + size] = bytes(size)

    def clear(self):
        # Zero in place, so existing views stay valid
        self.zero_block(0, self.mem_size)
