#!/usr/bin/env python3

"""
Framebuffer Emulator

Pixels are written here by the CPU, and the host copies the whole buffer to its
rendering system, usually at 60Hz.  Keeping the framebuffer inside the
interpreter means the CPU never has to wait on PyGame (or anything else) while
drawing, and headless runs need no renderer at all.

Programs for this system cannot write directly into video RAM.  Instead,
sprites are drawn to the screen using an XOR method.  Each cell is stored as a
single byte holding 0 or 1, row-major, 64 cells per row.

Collisions (where any pixel was set, but was unset by an XOR) are reported back
to the caller.  Coordinates always wrap around the screen edges.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import VID_WIDTH, VID_HEIGHT
from .ram import RAM


class FramebufferError(Exception):
    pass


class Framebuffer:
    def __init__(self, vid_width=VID_WIDTH, vid_height=VID_HEIGHT):
        if vid_width <= 0 or vid_height <= 0:
            raise FramebufferError("Framebuffer dimensions must be positive")

        self.vid_width = vid_width
        self.vid_height = vid_height
        self.vid_size = vid_width * vid_height
        self.vram = RAM(self.vid_size)

    def clear(self):
        self.vram.clear()

    def xor_pixel(self, x, y):
        # Returns True if a set pixel was switched off
        x %= self.vid_width
        y %= self.vid_height
        vram_loc = y * self.vid_width + x
        pixel = self.vram.read(vram_loc)
        self.vram.write(vram_loc, pixel ^ 1)

        return pixel != 0

    def draw_sprite(self, x, y, rows):
        # Draw 8-pixel-wide rows (MSB leftmost) with the top-left corner at x, y.  Returns collision.
        collided = False

        for row_num, spr_data in enumerate(rows):
            for col in range(8):
                if spr_data & (0x80 >> col):
                    if self.xor_pixel(x + col, y + row_num):
                        # Don't stop drawing.  Set the flag, and never unset it for this sprite.
                        collided = True

        return collided

    def get_pixel(self, x, y):
        # Wraps like xor_pixel
        return self.vram.read((y % self.vid_height) * self.vid_width + x % self.vid_width)

    def get_view(self):
        return self.vram.mem.toreadonly()

    def get_vid_size(self):
        return self.vid_width, self.vid_height
