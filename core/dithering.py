"""
Relief Studio - Dithering
颜色匹配与 Floyd-Steinberg 误差扩散（边缘感知）
"""

import numpy as np

from config import EdgeConfig
from core.errors import ImageInputError

# (dx, dy, weight)
FLOYD_STEINBERG = (
    (1, 0, 7 / 16),
    (-1, 1, 3 / 16),
    (0, 1, 5 / 16),
    (1, 1, 1 / 16),
)


def nearest_palette_index(colors, palette):
    """
    最近调色板颜色索引（欧氏距离，并列时取第一个）

    Args:
        colors: (..., 3) 颜色数组
        palette: (N, 3) 调色板

    Returns:
        np.ndarray: (...) int 索引
    """
    colors = np.asarray(colors, dtype=np.float64)
    pal = np.asarray(palette, dtype=np.float64)
    diff = colors[..., np.newaxis, :] - pal
    dist_sq = np.einsum('...k,...k->...', diff, diff)
    return np.argmin(dist_sq, axis=-1)


def dither_strength(edge_strength):
    """0 above the protection cutoff, otherwise a linear falloff 1 - 3*edge."""
    if edge_strength > EdgeConfig.PROTECTION_CUTOFF:
        return 0.0
    return 1.0 - EdgeConfig.FALLOFF * edge_strength


def _nearest(r, g, b, pal):
    """Index of the closest palette row; strict `<` keeps the first on ties."""
    best, best_dist = 0, None
    for i, (pr, pg, pb) in enumerate(pal):
        dr, dg, db = r - pr, g - pg, b - pb
        dist = dr * dr + dg * dg + db * db
        if best_dist is None or dist < best_dist:
            best, best_dist = i, dist
    return best


def _to_working(value):
    """Clamp to [0, 255] and round to the float32 precision of the buffer."""
    return float(np.float32(min(max(value, 0.0), 255.0)))


def _spread_down(next_row, errors, weights):
    """
    Apply one finished row's errors to the row below.

    Each target pixel receives its taps in scan order (from x-1, x, then x+1)
    and is clamped after every addition, as a per-pixel scan would do.
    """
    next_row[1:] = np.clip(next_row[1:] + errors[:-1] * weights[(1, 1)], 0, 255)
    next_row[:] = np.clip(next_row + errors * weights[(0, 1)], 0, 255)
    next_row[:-1] = np.clip(next_row[:-1] + errors[1:] * weights[(-1, 1)], 0, 255)


def _diffuse(working, palette, edge_mask):
    """
    Row-by-row forward scan; mutates `working` and returns the index map.

    Only the 7/16 carry to the right is sequential. Errors bound for the next
    row are collected and applied with array operations once the row is done.
    """
    h, w = working.shape[:2]
    index_map = np.zeros((h, w), dtype=np.int32)
    pal = palette.astype(np.float64).tolist()
    weights = {(dx, dy): factor for dx, dy, factor in FLOYD_STEINBERG}
    right = weights[(1, 0)]

    for y in range(h):
        row = working[y].tolist()
        if edge_mask is not None:
            strengths = [dither_strength(e) for e in edge_mask[y].tolist()]
        else:
            strengths = [1.0] * w
        errors = np.zeros((w, 3), dtype=np.float64)
        indices = []

        for x in range(w):
            r, g, b = row[x]
            idx = _nearest(r, g, b, pal)
            indices.append(idx)

            strength = strengths[x]
            if strength == 0.0:
                continue

            pr, pg, pb = pal[idx]
            err = ((r - pr) * strength, (g - pg) * strength, (b - pb) * strength)
            errors[x] = err
            if x + 1 < w:
                row[x + 1] = [_to_working(c + e * right) for c, e in zip(row[x + 1], err)]

        index_map[y] = indices
        working[y] = row
        if y + 1 < h:
            _spread_down(working[y + 1], errors, weights)

    return index_map


def quantize_and_dither(pixels, palette, dithering=True, edge_mask=None):
    """
    将每个像素映射到调色板

    Args:
        pixels: (H, W, 3) uint8 像素（不会被修改）
        palette: (N, 3) uint8 调色板，行号即 identity
        dithering: 是否启用误差扩散
        edge_mask: (H, W) 边缘保护掩码，None 表示不保护

    Returns:
        tuple: (recolored (H, W, 3) uint8, index_map (H, W) int32)
    """
    pixels = np.asarray(pixels)
    palette = np.asarray(palette, dtype=np.uint8)
    h, w = pixels.shape[:2]

    if edge_mask is not None:
        edge_mask = np.asarray(edge_mask, dtype=np.float32)
        if edge_mask.shape != (h, w):
            raise ImageInputError(f"❌ Edge mask shape {edge_mask.shape} does not match image {(h, w)}")

    if dithering:
        print(f"[DITHER] Floyd-Steinberg on {w}×{h} "
              f"({'edge-protected' if edge_mask is not None else 'unprotected'})")
        working = pixels.astype(np.float32)  # owned scratch buffer
        index_map = _diffuse(working, palette, edge_mask)
    else:
        print(f"[DITHER] Nearest-color mapping on {w}×{h}")
        index_map = nearest_palette_index(pixels, palette).astype(np.int32)

    recolored = palette[index_map]
    return recolored, index_map
