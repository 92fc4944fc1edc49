"""
Relief Studio - Utilities
颜色转换与统计工具
"""

import time

from config import ReliefConfig


def rgb_to_hex(r, g, b):
    """(r, g, b) -> '#RRGGBB' (upper-case)."""
    return "#{:02X}{:02X}{:02X}".format(int(r), int(g), int(b))


def hex_to_rgb(hex_color):
    """
    Parse '#RRGGBB' or 'RRGGBB' into an (r, g, b) tuple.

    Raises:
        ValueError: 非法的十六进制颜色字符串
    """
    value = str(hex_color).strip().lstrip('#')
    if len(value) != 6:
        raise ValueError(f"❌ Invalid hex color: {hex_color!r}")
    try:
        return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))
    except ValueError:
        raise ValueError(f"❌ Invalid hex color: {hex_color!r}") from None


def calculate_luminance(color):
    """
    Luminance of an RGB triple.

    Formula: Y = 0.299*R + 0.587*G + 0.114*B
    """
    wr, wg, wb = ReliefConfig.LUMINANCE_WEIGHTS
    return wr * float(color[0]) + wg * float(color[1]) + wb * float(color[2])


class Stats:
    """简单的阶段计时器"""

    def __init__(self):
        self._start = time.perf_counter()
        self._marks = []

    def mark(self, name):
        elapsed = time.perf_counter() - self._start
        self._marks.append((name, elapsed))
        return elapsed

    def summary(self):
        return ", ".join(f"{name}={elapsed:.2f}s" for name, elapsed in self._marks)
