#!/usr/bin/env python3

"""
Main Startup Module

Simply call main(args) to start the emulator, replacing args with a dictionary
of options.  This can be done via the Terminal or GUI.

All options must be supplied.  Defaults can be specified with a 'None'.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import APP_INTRO, APP_COPYRIGHT, DEFAULT_CLOCK_SPEED, DEFAULT_KEYMAP
from .cpu import CPU, CPUError
from .debugger import Debugger
from .host import Host
from .hostio import Loader


class StartupError(Exception):
    pass


def main(args):
    print("".join((APP_INTRO, APP_COPYRIGHT)))
    opt_renderer = args["renderer"] or "pygame"

    if opt_renderer == "pygame":
        # pylint: disable=unused-import, import-outside-toplevel, raise-missing-from
        try:
            import pygame  # noqa: F401
        except ImportError:
            raise StartupError(
                "PyGame does not appear to be installed.  Use the null renderer to run without a display."
            )

        from .inputs.i_pygame import Inputs
        from .renderers.r_pygame import Renderer
    elif opt_renderer == "null":
        # pylint: disable=import-outside-toplevel
        from .inputs.i_null import Inputs
        from .renderers.r_null import Renderer
    else:
        raise StartupError("Unknown renderer '{}'".format(opt_renderer))

    # Read ROM binary first, so a bad filename fails before any window opens
    rom = Loader().load_binary(args["filename"])

    # Set up debugger and live output if necessary
    debugger = Debugger(live=args["debug"])

    # Create a new CPU, with font in place, and write the ROM into RAM at the default address
    cpu = CPU(debugger=debugger)
    rom_size = cpu.load_rom(rom)

    if rom_size < len(rom):
        print("Warning: ROM truncated from {} to {} bytes to fit into RAM".format(len(rom), rom_size))

    renderer = Renderer(scale=args["scale"], pygame_palette=args["pygame_palette"])

    # Set up host inputs, and link to the chosen rendering module in case it provides inputs too
    try:
        inputs = Inputs(args["keymap"] or DEFAULT_KEYMAP, renderer)
    except Exception:
        renderer.shutdown()
        raise

    clock_speed = args["clock_speed"]
    host = Host(cpu, renderer, inputs, clock_speed=DEFAULT_CLOCK_SPEED if clock_speed is None else clock_speed)

    try:
        host.run(args["cycles"])
    finally:
        # The CPU has quit (or crashed), so shut down the rendering framework.  __del__ cannot be relied upon
        inputs.shutdown()
        renderer.shutdown()

    return host

