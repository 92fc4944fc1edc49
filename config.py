"""
Relief Studio - Configuration
全局配置：图像尺寸、量化、边缘检测、层高与输出目录
"""

import numbers
import os
from dataclasses import dataclass

from core.errors import SettingsError


class ReliefConfig:
    """Image / clustering / mesh constants."""
    MAX_DIMENSION = 256          # 最长边像素上限
    SAMPLE_SIZE = 10000          # K-Means 采样上限
    MAX_ITERATIONS = 30
    CONVERGENCE_THRESHOLD = 1.0  # 质心移动距离阈值 (RGB)
    MIN_COLORS = 2
    MAX_COLORS = 16
    VERTEX_DECIMALS = 6          # 顶点去重精度
    LUMINANCE_WEIGHTS = (0.299, 0.587, 0.114)


class LayerConfig:
    """Print layer heights (mm)."""
    FIRST_LAYER_HEIGHT = 0.8     # 首层（背景/底板）厚度
    LAYER_HEIGHT = 0.4           # 其余每层厚度
    HEIGHT_DECIMALS = 2


class EdgeConfig:
    """Edge protection thresholds."""
    SOBEL_DIVISOR = 200.0
    DARK_LINE_LUMINANCE = 100.0
    DARK_LINE_CONTRAST = 30.0
    PROTECTION_CUTOFF = 0.3      # 超过此强度完全禁用抖动
    FALLOFF = 3.0


class STLConfig:
    HEADER_SIZE = 80
    RECORD_SIZE = 50
    HEADER_TEXT = b"Relief Studio binary STL"


OUTPUT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "output")


@dataclass(frozen=True)
class Settings:
    """
    处理参数（只读）

    Args:
        num_colors: 调色板颜色数 (2-16)
        dithering: 是否启用 Floyd-Steinberg 抖动
        edge_preservation: 是否启用边缘保护
        model_width: 模型物理宽度 (mm)
    """
    num_colors: int = 4
    dithering: bool = True
    edge_preservation: bool = False
    model_width: float = 100.0

    def __post_init__(self):
        if isinstance(self.num_colors, bool) or not isinstance(self.num_colors, numbers.Integral):
            raise SettingsError(f"❌ num_colors must be an integer, got {self.num_colors!r}")
        if not ReliefConfig.MIN_COLORS <= self.num_colors <= ReliefConfig.MAX_COLORS:
            raise SettingsError(
                f"❌ num_colors must be in [{ReliefConfig.MIN_COLORS}, {ReliefConfig.MAX_COLORS}], "
                f"got {self.num_colors}"
            )
        if not self.model_width > 0:
            raise SettingsError(f"❌ model_width must be positive, got {self.model_width}")
