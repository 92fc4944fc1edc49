"""
Relief Studio - Image Loader
图像加载模块 - 解码、去除透明通道、缩放到最大 256px
"""

import math

import numpy as np
from PIL import Image, UnidentifiedImageError

from config import ReliefConfig
from core.errors import ImageInputError


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def fit_within(width, height, max_dim=ReliefConfig.MAX_DIMENSION):
    """
    计算缩放后的尺寸（保持宽高比，受限边四舍五入）

    Images already inside the bound keep their size.

    Returns:
        (new_width, new_height)
    """
    if width <= 0 or height <= 0:
        raise ImageInputError(f"❌ Image has zero dimension: {width}x{height}")

    if width > height:
        if width > max_dim:
            height = max(1, _round_half_up(height * (max_dim / width)))
            width = max_dim
    else:
        if height > max_dim:
            width = max(1, _round_half_up(width * (max_dim / height)))
            height = max_dim
    return width, height


def prepare_pixels(image, max_dim=ReliefConfig.MAX_DIMENSION):
    """
    将输入图像规范化为 (H, W, 3) uint8 像素缓冲区

    Args:
        image: PIL.Image 或 numpy 数组 (H, W), (H, W, 3), (H, W, 4)
        max_dim: 最长边上限

    Returns:
        np.ndarray: (H, W, 3) uint8，新分配的数组（不与输入共享内存）
    """
    if isinstance(image, Image.Image):
        img = image
    else:
        arr = np.asarray(image)
        if arr.ndim == 3 and arr.shape[2] == 4:
            arr = arr[:, :, :3]
        if arr.ndim == 2:
            arr = np.stack([arr] * 3, axis=-1)
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise ImageInputError(f"❌ Expected an RGB pixel buffer, got shape {arr.shape}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ImageInputError(f"❌ Image has zero dimension: {arr.shape[1]}x{arr.shape[0]}")
        arr = np.clip(arr, 0, 255).astype(np.uint8)
        if fit_within(arr.shape[1], arr.shape[0], max_dim) == (arr.shape[1], arr.shape[0]):
            return arr.copy()
        img = Image.fromarray(arr)

    if img.width == 0 or img.height == 0:
        raise ImageInputError(f"❌ Image has zero dimension: {img.width}x{img.height}")

    img = img.convert('RGB')
    target_w, target_h = fit_within(img.width, img.height, max_dim)
    if (target_w, target_h) != (img.width, img.height):
        print(f"[IMAGE_LOADER] Resize {img.width}×{img.height} → {target_w}×{target_h}")
        img = img.resize((target_w, target_h), Image.Resampling.LANCZOS)

    return np.array(img, dtype=np.uint8)


def load_image_pixels(image_path, max_dim=ReliefConfig.MAX_DIMENSION):
    """Decode an image file into a (H, W, 3) uint8 buffer."""
    try:
        with Image.open(image_path) as img:
            img.load()
            pixels = prepare_pixels(img, max_dim)
    except (FileNotFoundError, UnidentifiedImageError, OSError) as e:
        raise ImageInputError(f"❌ Failed to decode image {image_path}: {e}") from e

    print(f"[IMAGE_LOADER] Loaded {image_path} ({pixels.shape[1]}×{pixels.shape[0]})")
    return pixels
