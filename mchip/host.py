#!/usr/bin/env python3

"""
Host Main Loop

Connects a CPU to the rendering and input plugins, and paces it in real time.

Each pass of the loop runs exactly one CPU cycle.  Timers are ticked by the CPU
itself on every cycle, so the clock speed is also the timer rate: 60 cycles per
second gives real 60Hz timers.  A clock speed of 0 runs uncapped.

Inputs are polled, and the display refreshed, at most at 60Hz regardless of
the clock speed, as both are comparatively slow on most rendering frameworks.
Key states are copied into the CPU after every poll.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from time import perf_counter
from .constants import APP_NAME, NUM_KEYS

DISPLAY_FREQ = 60.0  # 60Hz emulated display refresh
DISPLAY_INTERVAL = 1.0 / DISPLAY_FREQ


class Host:
    def __init__(self, cpu, renderer, inputs, clock_speed=None):
        self.cpu = cpu
        self.renderer = renderer
        self.inputs = inputs
        self.core_interval = None if not clock_speed or clock_speed <= 0 else 1.0 / clock_speed
        width, height = cpu.framebuffer.get_vid_size()
        self.renderer.set_resolution(width, height)
        self.cycles = 0

        # Performance-related vars
        self.next_display_update_time = 0
        self.perf_counter_fps = 0
        self.perf_counter_ops = 0
        self.next_perf_report_time = 0
        self.report_perf()

    def run(self, max_cycles=None):
        # Returns when the inputs ask to quit, or after max_cycles.  CPUError is left to the caller.
        cpu = self.cpu

        while max_cycles is None or self.cycles < max_cycles:
            this_time = perf_counter()  # Do this first for maximum precision

            # Performance counters
            if this_time >= self.next_perf_report_time:
                self.next_perf_report_time = int(this_time) + 1.0
                self.report_perf(self.perf_counter_fps, self.perf_counter_ops)
                self.perf_counter_ops = 0
                self.perf_counter_fps = 0

            # Prevent unnecessary polling and rendering in excess of host frame rate
            if this_time >= self.next_display_update_time:
                if self.inputs.process_messages():
                    return

                self.update_keys()
                self.next_display_update_time = this_time + DISPLAY_INTERVAL

                if cpu.consume_draw_flag():
                    self.refresh_framebuffer()
                    self.perf_counter_fps += 1

            cpu.step()
            self.cycles += 1
            self.perf_counter_ops += 1

            if self.core_interval is not None:
                # Wait for next CPU cycle.  Do this last for maximum precision (takes into account time spent on this
                # cycle)
                next_time = this_time + self.core_interval

                while perf_counter() < next_time:  # Unfortunately we have to do this to get the timing right
                    pass

        # Show whatever was drawn last before handing back
        if self.cpu.consume_draw_flag():
            self.refresh_framebuffer()

    def update_keys(self):
        for key in range(NUM_KEYS):
            self.cpu.set_key(key, self.inputs.is_key_down(key))

    def refresh_framebuffer(self):
        self.renderer.refresh_display(self.cpu.get_framebuffer())

    def report_perf(self, fps=0, ops=0):
        self.renderer.set_title("{} - {} FPS, {} OPS".format(APP_NAME, fps, ops))
