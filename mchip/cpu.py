#!/usr/bin/env python3

"""
CPU Emulator (CHIP-8)

Like a real computer, this is where most of the processing happens.  The CPU
owns all machine state: RAM (with the system font preloaded), the V and I
registers, the call stack, both timers, the keypad latch and the framebuffer.

The host drives it one cycle at a time by calling step().  Each cycle fetches
the instruction at the program counter, decodes it once into an Instruction
(pattern name plus operand fields), executes it, then ticks both timers.  Every
instruction is responsible for moving the program counter itself.

Opcodes that are not recognised decode to the '????' pattern, which does
nothing and leaves the program counter alone.  They are counted, and shown by
the debugger when live, but they are not errors.

Bad memory or stack accesses raise CPUError from step().  Instructions check
every address they touch before writing anything, so a failed cycle leaves the
machine exactly as it was before the cycle started.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from collections import namedtuple
from random import Random
from .constants import (
    APP_INTRO, MEM_SIZE, PROGRAM_START, STACK_DEPTH, NUM_KEYS, SYSTEM_FONT, SYSTEM_FONT_LOC, SYSTEM_FONT_GLYPH_SIZE
)
from .debugger import Debugger
from .framebuffer import Framebuffer
from .ram import RAM, MemoryFault
from .stack import Stack, StackError

CPU_ENDIAN = "big"  # CHIP-8 is big-endian
UNKNOWN_PATTERN = "????"

# n = nibble, kk = byte, nnn = address, x/y = register (0-15)
Instruction = namedtuple("Instruction", ["opcode", "pattern", "x", "y", "n", "kk", "nnn"])

# Bits of the opcode that select the instruction, looked up by the first nibble.  Family 0 ignores its second nibble.
DECODE_MASKS = {
    0x0: 0xF0FF,
    0x1: 0xF000,
    0x2: 0xF000,
    0x3: 0xF000,
    0x4: 0xF000,
    0x5: 0xF000,
    0x6: 0xF000,
    0x7: 0xF000,
    0x8: 0xF00F,
    0x9: 0xF000,
    0xA: 0xF000,
    0xB: 0xF000,
    0xC: 0xF000,
    0xD: 0xF000,
    0xE: 0xF0FF,
    0xF: 0xF0FF
}

# Masked opcode to instruction pattern
PATTERNS = {
    0x00E0: "00E0",
    0x00EE: "00EE",
    0x1000: "1NNN",
    0x2000: "2NNN",
    0x3000: "3XNN",
    0x4000: "4XNN",
    0x5000: "5XY0",
    0x6000: "6XNN",
    0x7000: "7XNN",
    0x8000: "8XY0",
    0x8001: "8XY1",
    0x8002: "8XY2",
    0x8003: "8XY3",
    0x8004: "8XY4",
    0x8005: "8XY5",
    0x8006: "8XY6",
    0x8007: "8XY7",
    0x800E: "8XYE",
    0x9000: "9XY0",
    0xA000: "ANNN",
    0xB000: "BNNN",
    0xC000: "CXNN",
    0xD000: "DXYN",
    0xE09E: "EX9E",
    0xE0A1: "EXA1",
    0xF007: "FX07",
    0xF00A: "FX0A",
    0xF015: "FX15",
    0xF018: "FX18",
    0xF01E: "FX1E",
    0xF029: "FX29",
    0xF033: "FX33",
    0xF055: "FX55",
    0xF065: "FX65"
}


class CPUError(Exception):
    pass


class CPU:
    def __init__(self, rng=None, debugger=None):
        self.ram = RAM(MEM_SIZE)
        self.stack = Stack(STACK_DEPTH)
        self.framebuffer = Framebuffer()
        self.debugger = Debugger() if debugger is None else debugger

        # Anything with randint(a, b) will do.  Tests pass a seeded Random.
        self.rng = Random() if rng is None else rng

        self.instructions = {
            "00E0": self._00E0,
            "00EE": self._00EE,
            "1NNN": self._1nnn,
            "2NNN": self._2nnn,
            "3XNN": self._3xkk,
            "4XNN": self._4xkk,
            "5XY0": self._5xy0,
            "6XNN": self._6xkk,
            "7XNN": self._7xkk,
            "8XY0": self._8xy0,
            "8XY1": self._8xy1,
            "8XY2": self._8xy2,
            "8XY3": self._8xy3,
            "8XY4": self._8xy4,
            "8XY5": self._8xy5,
            "8XY6": self._8xy6,
            "8XY7": self._8xy7,
            "8XYE": self._8xyE,
            "9XY0": self._9xy0,
            "ANNN": self._Annn,
            "BNNN": self._Bnnn,
            "CXNN": self._Cxkk,
            "DXYN": self._Dxyn,
            "EX9E": self._Ex9E,
            "EXA1": self._ExA1,
            "FX07": self._Fx07,
            "FX0A": self._Fx0A,
            "FX15": self._Fx15,
            "FX18": self._Fx18,
            "FX1E": self._Fx1E,
            "FX29": self._Fx29,
            "FX33": self._Fx33,
            "FX55": self._Fx55,
            "FX65": self._Fx65,
            UNKNOWN_PATTERN: self._unknown
        }

        # Bytearrays are mutable, so this should be fast when a register is updated
        self.v = memoryview(bytearray(16))
        self.keys = [False] * NUM_KEYS
        self.reset()

    def reset(self):
        self.ram.clear()
        self.ram.write_block(SYSTEM_FONT_LOC, SYSTEM_FONT)
        self.v[:] = bytes(16)
        self.i = 0   # Index register
        self.pc = PROGRAM_START
        self.stack.clear()
        self.dt = 0  # Delay timer
        self.st = 0  # Sound timer
        self.framebuffer.clear()
        self.opcode = 0

        for key in range(NUM_KEYS):
            self.keys[key] = False

        self.draw_flag = False
        self.unknown_opcodes = 0

    def load_rom(self, data):
        # Anything past the top of RAM is dropped rather than overflowing
        size = min(len(data), MEM_SIZE - PROGRAM_START)
        self.ram.write_block(PROGRAM_START, data[:size])
        return size

    def step(self):
        instruction = None

        try:
            self.opcode = self.fetch()
            instruction = self.decode(self.opcode)

            if self.debugger.is_live():
                self.debugger.output(self, instruction)

            self.instructions[instruction.pattern](instruction)
        except (MemoryFault, StackError) as err:
            raise CPUError(
                (
                    "Emulation halted.\n\n" +
                    "{}Debug info:\n" +
                    "{}\n\n{}: {}"
                ).format(
                    APP_INTRO, self.debugger.debug(self, instruction, verbose=True), type(err).__name__, err
                )
            ) from err

        # Timers tick once per cycle, only once the instruction has completed
        if self.dt > 0:
            self.dt -= 1

        if self.st > 0:
            self.st -= 1

    def fetch(self):
        return int.from_bytes(self.ram.read_block(self.pc, 2), CPU_ENDIAN, signed=False)

    def decode(self, opcode):
        pattern = PATTERNS.get(opcode & DECODE_MASKS[opcode >> 12], UNKNOWN_PATTERN)

        return Instruction(
            opcode=opcode,
            pattern=pattern,
            x=(opcode & 0xF00) >> 8,
            y=(opcode & 0xF0) >> 4,
            n=opcode & 0xF,
            kk=opcode & 0xFF,
            nnn=opcode & 0xFFF
        )

    def set_key(self, index, pressed):
        if 0 <= index < NUM_KEYS:
            self.keys[index] = bool(pressed)

    def get_framebuffer(self):
        return self.framebuffer.get_view()

    def sound_active(self):
        return self.st > 0

    def consume_draw_flag(self):
        # Returns whether the display has changed since the last call
        draw_flag = self.draw_flag
        self.draw_flag = False
        return draw_flag

    def _skip_if(self, condition):
        self.pc += 4 if condition else 2

    def _unknown(self, instruction):
        # Not an error.  The program counter stays put, so a bad ROM will spin here.
        self.unknown_opcodes += 1

    def _00E0(self, instruction):  # CLS
        self.framebuffer.clear()
        self.draw_flag = True
        self.pc += 2

    def _00EE(self, instruction):  # RET
        self.pc = self.stack.pop() + 2

    def _1nnn(self, instruction):  # JP addr
        self.pc = instruction.nnn

    def _2nnn(self, instruction):  # CALL addr
        # Push the address of the call itself.  RET skips over it.
        self.stack.push(self.pc)
        self.pc = instruction.nnn

    def _3xkk(self, instruction):  # SE Vx, byte
        self._skip_if(self.v[instruction.x] == instruction.kk)

    def _4xkk(self, instruction):  # SNE Vx, byte
        self._skip_if(self.v[instruction.x] != instruction.kk)

    def _5xy0(self, instruction):  # SE Vx, Vy
        self._skip_if(self.v[instruction.x] == self.v[instruction.y])

    def _6xkk(self, instruction):  # LD Vx, byte
        self.v[instruction.x] = instruction.kk
        self.pc += 2

    def _7xkk(self, instruction):  # ADD Vx, byte
        # Vf is untouched, even on overflow
        self.v[instruction.x] = (self.v[instruction.x] + instruction.kk) & 0xFF
        self.pc += 2

    def _8xy0(self, instruction):  # LD Vx, Vy
        self.v[instruction.x] = self.v[instruction.y]
        self.pc += 2

    def _8xy1(self, instruction):  # OR Vx, Vy
        self.v[instruction.x] |= self.v[instruction.y]
        self.pc += 2

    def _8xy2(self, instruction):  # AND Vx, Vy
        self.v[instruction.x] &= self.v[instruction.y]
        self.pc += 2

    def _8xy3(self, instruction):  # XOR Vx, Vy
        self.v[instruction.x] ^= self.v[instruction.y]
        self.pc += 2

    # For the flag-setting 8 instructions, operands are read first, then Vf is set, and Vx is set last.  If Vx is Vf,
    # the result wins over the flag.

    def _8xy4(self, instruction):  # ADD Vx, Vy
        val = self.v[instruction.x] + self.v[instruction.y]
        self.v[0xF] = int(val > 0xFF)  # Vf is set when carrying
        self.v[instruction.x] = val & 0xFF
        self.pc += 2

    def _8xy5(self, instruction):  # SUB Vx, Vy
        vx = self.v[instruction.x]
        vy = self.v[instruction.y]
        self.v[0xF] = int(vx >= vy)  # Vf is set when NOT borrowing
        self.v[instruction.x] = (vx - vy) & 0xFF
        self.pc += 2

    def _8xy6(self, instruction):  # SHR Vx
        # Shifts Vx in place.  Vy is ignored.
        val = self.v[instruction.x]
        self.v[0xF] = val & 1
        self.v[instruction.x] = val >> 1
        self.pc += 2

    def _8xy7(self, instruction):  # SUBN Vx, Vy
        vx = self.v[instruction.x]
        vy = self.v[instruction.y]
        self.v[0xF] = int(vy >= vx)
        self.v[instruction.x] = (vy - vx) & 0xFF
        self.pc += 2

    def _8xyE(self, instruction):  # SHL Vx
        val = self.v[instruction.x]
        self.v[0xF] = val >> 7
        self.v[instruction.x] = (val << 1) & 0xFF
        self.pc += 2

    def _9xy0(self, instruction):  # SNE Vx, Vy
        self._skip_if(self.v[instruction.x] != self.v[instruction.y])

    def _Annn(self, instruction):  # LD I, addr
        self.i = instruction.nnn
        self.pc += 2

    def _Bnnn(self, instruction):  # JP V0, addr
        # Always V0.  A target past the top of RAM faults on the next fetch.
        self.pc = instruction.nnn + self.v[0]

    def _Cxkk(self, instruction):  # RND Vx, byte
        # The ANDing here is intentional.  This is not a random number between 0 and 'byte' inclusive.
        self.v[instruction.x] = self.rng.randint(0, 0xFF) & instruction.kk
        self.pc += 2

    def _Dxyn(self, instruction):  # DRW Vx, Vy, nibble
        # Reading the whole sprite first checks its range before a single pixel changes
        rows = self.ram.read_block(self.i, instruction.n)
        collided = self.framebuffer.draw_sprite(self.v[instruction.x], self.v[instruction.y], rows)
        self.v[0xF] = int(collided)
        self.draw_flag = True
        self.pc += 2

    def _Ex9E(self, instruction):  # SKP Vx
        self._skip_if(self.keys[self.v[instruction.x] & 0xF])

    def _ExA1(self, instruction):  # SKNP Vx
        self._skip_if(not self.keys[self.v[instruction.x] & 0xF])

    def _Fx07(self, instruction):  # LD Vx, DT
        self.v[instruction.x] = self.dt
        self.pc += 2

    def _Fx0A(self, instruction):  # LD Vx, K
        # There is no real blocking.  With no key down the program counter stays put, so the host keeps coming back
        # here while timers continue to run.  If several keys are down, the highest one wins.
        key_pressed = None

        for key in range(NUM_KEYS):
            if self.keys[key]:
                key_pressed = key

        if key_pressed is not None:
            self.v[instruction.x] = key_pressed
            self.pc += 2

    def _Fx15(self, instruction):  # LD DT, Vx
        self.dt = self.v[instruction.x]
        self.pc += 2

    def _Fx18(self, instruction):  # LD ST, Vx
        self.st = self.v[instruction.x]
        self.pc += 2

    def _Fx1E(self, instruction):  # ADD I, Vx
        val = self.i + self.v[instruction.x]
        self.v[0xF] = int(val > 0xFFF)
        self.i = val & 0xFFFF
        self.pc += 2

    def _Fx29(self, instruction):  # LD F, Vx
        self.i = SYSTEM_FONT_LOC + SYSTEM_FONT_GLYPH_SIZE * self.v[instruction.x]
        self.pc += 2

    def _Fx33(self, instruction):  # LD B, Vx
        val = self.v[instruction.x]
        # Most-significant digit first.  Written as one block so a bad I changes nothing.
        self.ram.write_block(self.i, bytes((val // 100, (val // 10) % 10, val % 10)))
        self.pc += 2

    def _Fx55(self, instruction):  # LD [I], Vx
        # Ensure with +1s that the final register is copied
        count = instruction.x + 1
        self.ram.write_block(self.i, self.v[:count])
        self.i = (self.i + count) & 0xFFFF
        self.pc += 2

    def _Fx65(self, instruction):  # LD Vx, [I]
        count = instruction.x + 1
        self.v[:count] = self.ram.read_block(self.i, count)
        self.i = (self.i + count) & 0xFFFF
        self.pc += 2
