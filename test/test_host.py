#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from mchip import main, StartupError
from mchip.constants import DEFAULT_KEYMAP
from mchip.cpu import CPU, CPUError
from mchip.host import Host
from mchip.inputs.i_null import Inputs
from mchip.renderers.r_null import Renderer

# Draw the '0' glyph at 0, 0, then wait for a key forever
DRAW_ROM = bytes((0xA0, 0x00, 0xD0, 0x05, 0xF1, 0x0A))


class QuitAfterInputs(Inputs):
    # Presses key 0x6 on the first poll, then asks to quit on the second
    def __init__(self, keymap, renderer):
        super().__init__(keymap, renderer)
        self.polls = 0

    def process_messages(self):
        self.polls += 1
        self.key_down[0x6] = True
        return self.polls > 1


class TestHost(unittest.TestCase):
    def setUp(self):
        self.cpu = CPU()
        self.renderer = Renderer()
        self.inputs = Inputs(DEFAULT_KEYMAP, self.renderer)

    def test_host_sets_resolution(self):
        Host(self.cpu, self.renderer, self.inputs)
        self.assertEqual((64, 32), (self.renderer.width, self.renderer.height))
        self.assertTrue(self.renderer.title.endswith("0 FPS, 0 OPS"))

    def test_host_run_cycles(self):
        self.cpu.load_rom(DRAW_ROM)
        host = Host(self.cpu, self.renderer, self.inputs, clock_speed=0)
        host.run(10)
        self.assertEqual(10, host.cycles)
        self.assertEqual(0x204, self.cpu.pc)  # Still waiting for a key
        self.assertEqual(1, self.renderer.frames_drawn)
        self.assertEqual(4, sum(self.renderer.last_frame[:8]))

    def test_host_passes_keys_and_quits(self):
        inputs = QuitAfterInputs(DEFAULT_KEYMAP, self.renderer)
        self.cpu.load_rom(DRAW_ROM)
        host = Host(self.cpu, self.renderer, inputs, clock_speed=0)
        host.run()
        self.assertTrue(self.cpu.keys[0x6])
        self.assertEqual(0x6, self.cpu.v[0x1])
        self.assertEqual(0x206, self.cpu.pc)

    def test_host_propagates_cpu_errors(self):
        self.cpu.load_rom(b"\x00\xEE")
        host = Host(self.cpu, self.renderer, self.inputs, clock_speed=0)
        self.assertRaises(CPUError, host.run, 5)
        self.assertEqual(0, host.cycles)


class TestMain(unittest.TestCase):
    def _args(self, filename, **overrides):
        args = {
            "filename": filename,
            "renderer": "null",
            "clock_speed": 0,
            "scale": None,
            "keymap": None,
            "pygame_palette": None,
            "cycles": 20,
            "debug": False
        }
        args.update(overrides)
        return args

    def test_main_runs_rom_headless(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            filename = os.path.join(tmp_dir, "draw.ch8")

            with open(filename, "wb") as f:
                f.write(DRAW_ROM)

            with redirect_stdout(io.StringIO()) as output:
                host = main(self._args(filename))

        self.assertEqual(20, host.cycles)
        self.assertIn("MonoChip Emulator", output.getvalue())
        self.assertEqual(1, host.renderer.frames_drawn)

    def test_main_missing_rom(self):
        with redirect_stdout(io.StringIO()):
            self.assertRaises(FileNotFoundError, main, self._args("NoFile.ch8"))

    def test_main_unknown_renderer(self):
        with redirect_stdout(io.StringIO()):
            self.assertRaises(StartupError, main, self._args("NoFile.ch8", renderer="curses"))
