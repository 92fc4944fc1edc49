"""
Relief Studio - Image Processing Core
图像处理核心模块 - 色彩量化、边缘检测、抖动匹配
"""

import numpy as np

from config import Settings
from core.dithering import quantize_and_dither
from core.edge_detection import detect_edges
from core.image_loader import prepare_pixels
from core.layers import build_initial_layers
from core.quantizer import quantize_palette


class ReliefImageProcessor:
    """
    图像处理器类
    量化调色板、计算边缘掩码、执行抖动并生成索引图
    """

    def __init__(self, settings=None, rng=None):
        """
        Args:
            settings: Settings 记录，None 时使用默认值
            rng: numpy.random.Generator，用于质心初始化（测试时可固定种子）
        """
        self.settings = settings if settings is not None else Settings()
        self.rng = rng

    def process_image(self, pixels):
        """
        处理图像的主方法

        Args:
            pixels: (H, W, 3) 像素数组或 PIL.Image

        Returns:
            dict:
                - palette: (N, 3) uint8，按亮度升序，行号即 identity
                - layers: 初始打印顺序的 Layer 列表
                - matched_rgb: (H, W, 3) uint8 量化后图像
                - index_map: (H, W) int32 identity 图
                - dimensions: (width, height) 像素尺寸
                - mode_info: 处理选项
        """
        settings = self.settings
        pixels = prepare_pixels(pixels)
        h, w = pixels.shape[:2]

        print(f"[IMAGE_PROCESSOR] {w}×{h}px, {settings.num_colors} colors, "
              f"dithering={settings.dithering}, edges={settings.edge_preservation}")

        palette = quantize_palette(pixels, settings.num_colors, rng=self.rng)

        edge_mask = None
        if settings.dithering and settings.edge_preservation:
            edge_mask = detect_edges(pixels)

        matched_rgb, index_map = quantize_and_dither(
            pixels, palette, dithering=settings.dithering, edge_mask=edge_mask
        )
        del edge_mask

        layers = build_initial_layers(palette)
        used = np.unique(index_map)
        print(f"[IMAGE_PROCESSOR] {len(used)}/{len(palette)} palette entries in use")

        return {
            'palette': palette,
            'layers': layers,
            'matched_rgb': matched_rgb,
            'index_map': index_map,
            'dimensions': (w, h),
            'mode_info': {
                'num_colors': settings.num_colors,
                'dithering': settings.dithering,
                'edge_preservation': settings.edge_preservation,
            },
        }
