"""
Relief Studio - Edge Detection
边缘检测模块 - Sobel 边缘强度 + 深色线条检测 + 3x3 膨胀

The resulting mask drives dither strength: strong edges and thin dark
strokes suppress error diffusion so contours stay crisp.
"""

import numpy as np
import cv2

from config import ReliefConfig, EdgeConfig


def compute_luminance(pixels):
    """(H, W, 3) -> (H, W) float64 luminance."""
    rgb = np.asarray(pixels, dtype=np.float64)
    wr, wg, wb = ReliefConfig.LUMINANCE_WEIGHTS
    return wr * rgb[:, :, 0] + wg * rgb[:, :, 1] + wb * rgb[:, :, 2]


def _zero_border(arr):
    arr[0, :] = 0
    arr[-1, :] = 0
    arr[:, 0] = 0
    arr[:, -1] = 0
    return arr


def _dark_line_mask(gray):
    """
    深色线条：亮度 < 100 且四邻域平均亮度比自身高 30 以上
    仅对内部像素计算，边界一圈为 0
    """
    h, w = gray.shape
    mask = np.zeros((h, w), dtype=np.float32)

    center = gray[1:-1, 1:-1]
    neighbor_avg = (
        gray[:-2, 1:-1] + gray[2:, 1:-1] +
        gray[1:-1, :-2] + gray[1:-1, 2:]
    ) / 4.0

    is_dark = (center < EdgeConfig.DARK_LINE_LUMINANCE) & \
              ((neighbor_avg - center) > EdgeConfig.DARK_LINE_CONTRAST)
    mask[1:-1, 1:-1] = is_dark.astype(np.float32)
    return mask


def detect_edges(pixels):
    """
    计算边缘保护掩码

    Args:
        pixels: (H, W, 3) uint8 原始像素（只读）

    Returns:
        np.ndarray: (H, W) float32, 取值 [0, 1]，最外圈恒为 0
    """
    pixels = np.asarray(pixels)
    h, w = pixels.shape[:2]
    if h < 3 or w < 3:
        return np.zeros((h, w), dtype=np.float32)

    gray = compute_luminance(pixels)

    # Step 1: Sobel 梯度幅值
    gx = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
    magnitude = np.sqrt(gx * gx + gy * gy)
    edge_map = np.minimum(1.0, magnitude / EdgeConfig.SOBEL_DIVISOR).astype(np.float32)
    _zero_border(edge_map)

    # Step 2: 深色线条
    dark_map = _dark_line_mask(gray)

    # Step 3: 3x3 膨胀，合并深色线条
    kernel = np.ones((3, 3), dtype=np.uint8)
    expanded = cv2.dilate(edge_map, kernel, iterations=1)
    combined = np.maximum(expanded, dark_map)
    _zero_border(combined)

    protected = int(np.count_nonzero(combined > EdgeConfig.PROTECTION_CUTOFF))
    print(f"[EDGE] {protected}/{h * w} pixels fully protected")

    return combined.astype(np.float32)
