#!/usr/bin/env python3

"""
CPU Debugger

If enabled, this will output information before each instruction executed:
    * All 16 of the [V] registers, starting with most significant (Vf) and
      reducing to least significant (V0)
    * I  - Index register
    * DT - Delay timer
    * ST - Sound timer
    * PC - Program counter
    * OP - OpCode number
    * IN - Decoded instruction (or ??? if the opcode is not recognised)

If a crash occurs, all of the above will be outputted, with the addition of:
    * Stack - Stack contents
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

# Assembly-style mnemonics, formatted with the decoded instruction's fields
MNEMONICS = {
    "00E0": "CLS",
    "00EE": "RET",
    "1NNN": "JP 0x{nnn:03x}",
    "2NNN": "CALL 0x{nnn:03x}",
    "3XNN": "SE V{x:01x}, 0x{kk:02x}",
    "4XNN": "SNE V{x:01x}, 0x{kk:02x}",
    "5XY0": "SE V{x:01x}, V{y:01x}",
    "6XNN": "LD V{x:01x}, 0x{kk:02x}",
    "7XNN": "ADD V{x:01x}, 0x{kk:02x}",
    "8XY0": "LD V{x:01x}, V{y:01x}",
    "8XY1": "OR V{x:01x}, V{y:01x}",
    "8XY2": "AND V{x:01x}, V{y:01x}",
    "8XY3": "XOR V{x:01x}, V{y:01x}",
    "8XY4": "ADD V{x:01x}, V{y:01x}",
    "8XY5": "SUB V{x:01x}, V{y:01x}",
    "8XY6": "SHR V{x:01x}",
    "8XY7": "SUBN V{x:01x}, V{y:01x}",
    "8XYE": "SHL V{x:01x}",
    "9XY0": "SNE V{x:01x}, V{y:01x}",
    "ANNN": "LD I, 0x{nnn:03x}",
    "BNNN": "JP V0, 0x{nnn:03x}",
    "CXNN": "RND V{x:01x}, 0x{kk:02x}",
    "DXYN": "DRW V{x:01x}, V{y:01x}, 0x{n:01x}",
    "EX9E": "SKP V{x:01x}",
    "EXA1": "SKNP V{x:01x}",
    "FX07": "LD V{x:01x}, DT",
    "FX0A": "LD V{x:01x}, K",
    "FX15": "LD DT, V{x:01x}",
    "FX18": "LD ST, V{x:01x}",
    "FX1E": "ADD I, V{x:01x}",
    "FX29": "LD F, V{x:01x}",
    "FX33": "LD B, V{x:01x}",
    "FX55": "LD [I], V{x:01x}",
    "FX65": "LD V{x:01x}, [I]"
}


def disassemble(instruction):
    if instruction is None:
        return "(not fetched)"

    mnemonic = MNEMONICS.get(instruction.pattern)

    if mnemonic is None:
        return "???"

    return mnemonic.format(**instruction._asdict())


class Debugger:
    def __init__(self, live=False):
        self.live = live

    def debug(self, cpu, instruction, verbose=False):
        debug_str = (
            "V: 0x" + ("{:02x}" * 16) + " I: 0x{:04x} DT: 0x{:02x} ST: 0x{:02x} PC: 0x{:03x} OP: {} IN: {}"
        ).format(
            *[cpu.v[reg_num] for reg_num in range(15, -1, -1)] +
            [cpu.i, cpu.dt, cpu.st, cpu.pc, "----" if instruction is None else "0x{:04x}".format(instruction.opcode),
             disassemble(instruction)]
        )

        if verbose:
            stack_items = cpu.stack.get_items()
            stack_str = (" 0x{:03x}" * len(stack_items)).format(*stack_items)
            debug_str += ("\nStack:{}").format(stack_str or " (Empty)")

        return debug_str

    def set_live(self, enabled):
        self.live = enabled

    def is_live(self):
        return self.live

    def output(self, cpu, instruction):
        print(self.debug(cpu, instruction))
