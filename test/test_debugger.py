#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import io
import unittest
from contextlib import redirect_stdout
from mchip.cpu import CPU, PATTERNS
from mchip.debugger import Debugger, MNEMONICS, disassemble


class TestDebugger(unittest.TestCase):
    def setUp(self):
        self.debugger = Debugger()
        self.cpu = CPU(debugger=self.debugger)

    def test_debugger_live_switch(self):
        self.assertFalse(self.debugger.is_live())
        self.debugger.set_live(True)
        self.assertTrue(self.debugger.is_live())

    def test_debugger_mnemonics_cover_patterns(self):
        self.assertEqual(set(PATTERNS.values()), set(MNEMONICS))

    def test_debugger_disassemble(self):
        decode = self.cpu.decode
        self.assertEqual("CLS", disassemble(decode(0x00E0)))
        self.assertEqual("CALL 0x2a4", disassemble(decode(0x22A4)))
        self.assertEqual("DRW V1, Vc, 0x5", disassemble(decode(0xD1C5)))
        self.assertEqual("LD B, Vf", disassemble(decode(0xFF33)))
        self.assertEqual("???", disassemble(decode(0x0123)))
        self.assertEqual("(not fetched)", disassemble(None))

    def test_debugger_debug(self):
        self.cpu.v[0xF] = 0x01
        self.cpu.v[0x0] = 0xAB
        self.cpu.i = 0x123
        debug_str = self.debugger.debug(self.cpu, self.cpu.decode(0x6A42))
        self.assertTrue(debug_str.startswith("V: 0x01" + "00" * 14 + "ab I: 0x0123"))
        self.assertIn("PC: 0x200", debug_str)
        self.assertNotIn("Stack", debug_str)

    def test_debugger_debug_not_fetched(self):
        self.cpu.opcode = 0x6A42  # Left over from an earlier cycle
        debug_str = self.debugger.debug(self.cpu, None)
        self.assertIn("OP: ---- IN: (not fetched)", debug_str)
        self.assertIn("OP: 0x6a42 IN: LD Va, 0x42", self.debugger.debug(self.cpu, self.cpu.decode(0x6A42)))

    def test_debugger_debug_verbose(self):
        self.cpu.stack.push(0x204)
        self.cpu.stack.push(0x30A)
        debug_str = self.debugger.debug(self.cpu, None, verbose=True)
        self.assertTrue(debug_str.endswith("\nStack: 0x204 0x30a"))

    def test_debugger_output(self):
        buffer = io.StringIO()

        with redirect_stdout(buffer):
            self.debugger.output(self.cpu, self.cpu.decode(0x00EE))

        self.assertTrue(buffer.getvalue().rstrip().endswith("IN: RET"))
