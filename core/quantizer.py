"""
Relief Studio - Palette Quantizer
色彩量化模块 - 采样 + K-Means (Lloyd) 聚类，输出按亮度排序的调色板
"""

import numpy as np
from scipy.spatial.distance import cdist

from config import ReliefConfig
from core.errors import ImageInputError


def sample_pixels(pixels, sample_size=ReliefConfig.SAMPLE_SIZE):
    """
    固定步长采样（确定性）

    Args:
        pixels: (H, W, 3) 或 (P, 3) 像素数组
        sample_size: 采样上限

    Returns:
        np.ndarray: (min(P, sample_size), 3) float64
    """
    flat = np.asarray(pixels).reshape(-1, 3).astype(np.float64)
    total = len(flat)
    if total <= sample_size:
        return flat

    step = total // sample_size
    indices = (np.arange(sample_size) * step) % total
    return flat[indices]


def luminance(colors):
    """Per-row luminance of an (N, 3) color array."""
    return np.asarray(colors, dtype=np.float64) @ np.array(ReliefConfig.LUMINANCE_WEIGHTS)


def sort_by_luminance(colors):
    """Stable ascending sort of an (N, 3) color array by luminance."""
    colors = np.asarray(colors)
    order = np.argsort(luminance(colors), kind="stable")
    return colors[order]


def _round_half_up(values):
    return np.floor(values + 0.5)


def quantize_palette(pixels, num_colors, rng=None,
                     max_iterations=ReliefConfig.MAX_ITERATIONS):
    """
    K-Means 色彩量化

    Initial centroids are distinct samples picked without replacement by
    `rng`. A centroid that loses all of its samples is re-seeded from a
    random sample; re-seeded centroids may coincide with existing ones.

    Args:
        pixels: (H, W, 3) uint8 像素缓冲区
        num_colors: 目标颜色数
        rng: numpy.random.Generator，None 时使用非固定种子
        max_iterations: 最大迭代次数

    Returns:
        np.ndarray: (num_colors, 3) uint8，按亮度升序；行号即调色板 identity
    """
    if rng is None:
        rng = np.random.default_rng()

    samples = sample_pixels(pixels)
    n_samples = len(samples)
    if n_samples < num_colors:
        raise ImageInputError(
            f"❌ Image has {n_samples} pixels, fewer than the {num_colors} requested colors"
        )

    print(f"[QUANTIZER] K-Means: {num_colors} colors, {n_samples} samples")

    init_indices = rng.choice(n_samples, size=num_colors, replace=False)
    centroids = samples[init_indices].copy()

    iteration = 0
    for iteration in range(1, max_iterations + 1):
        # 1. 分配：欧氏距离最近的质心（并列时取索引最小者）
        assignments = np.argmin(cdist(samples, centroids), axis=1)

        # 2. 重新计算质心
        counts = np.bincount(assignments, minlength=num_colors)
        sums = np.zeros((num_colors, 3), dtype=np.float64)
        np.add.at(sums, assignments, samples)

        moved = False
        for c in range(num_colors):
            if counts[c] > 0:
                new_centroid = _round_half_up(sums[c] / counts[c])
                if np.linalg.norm(new_centroid - centroids[c]) > ReliefConfig.CONVERGENCE_THRESHOLD:
                    moved = True
                centroids[c] = new_centroid
            else:
                # 3. 空簇：随机重新选点
                centroids[c] = samples[rng.integers(n_samples)]
                moved = True
                print(f"[QUANTIZER] Re-seeded empty cluster {c} at iteration {iteration}")

        # 4. 收敛判定
        if not moved:
            break

    print(f"[QUANTIZER] Finished after {iteration} iterations")

    palette = sort_by_luminance(centroids)
    return np.clip(palette, 0, 255).astype(np.uint8)
