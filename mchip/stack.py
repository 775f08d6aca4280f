#!/usr/bin/env python3

"""
Stack Emulator

It is unnecessary to include the CPU call stack as part of system RAM, because
there is no specified location for it.  There is also no stack pointer (SP)
register exposed to the running program.  This means we can simply wrap lists
to fully (and quickly) emulate it.

The stack holds up to 16 return addresses.  Overflow and underflow are both
fatal to the running program, and are raised as distinct errors so the host
can report which one happened.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class StackError(Exception):
    pass


class StackOverflow(StackError):
    pass


class StackUnderflow(StackError):
    pass


class Stack:
    def __init__(self, size):
        self.items = []
        self.size = size

    def push(self, item):
        # Fetching the stack size with 'len' should be immediate, so no slow loop
        if self.is_full():
            raise StackOverflow("Stack overflow (depth {})".format(self.size))

        self.items.append(item)

    def pop(self):
        try:
            return self.items.pop()
        except IndexError:
            raise StackUnderflow("Stack underflow") from None

    def is_full(self):
        return len(self.items) >= self.size

    def clear(self):
        self.items.clear()

    def get_items(self):
        # For debugging
        return self.items
