"""
Relief Studio - Layers
图层模块 - 打印顺序、累积高度、颜色/高度覆盖

A layer's identity is the row of the luminance-sorted palette it came from.
The index map stores identities, so reordering never touches pixel data:
heights and colours are resolved through an identity lookup.
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Sequence, Tuple

import numpy as np

from config import LayerConfig
from core.errors import LayerOrderError
from utils import hex_to_rgb, rgb_to_hex


@dataclass(frozen=True)
class Layer:
    identity: int
    color: Tuple[int, int, int]
    height: float = 0.0

    @property
    def hex(self) -> str:
        return rgb_to_hex(*self.color)


def _check_identities(layers: Sequence[Layer]):
    ids = [layer.identity for layer in layers]
    if len(set(ids)) != len(ids):
        raise LayerOrderError(f"❌ Duplicate layer identities: {ids}")


def assign_heights(layers: Sequence[Layer]) -> List[Layer]:
    """
    重新计算累积高度（打印顺序从下到上）

    第一层 0.8mm，其余每层 +0.4mm，保留 2 位小数。
    Returns new Layer objects; the input sequence is left untouched.
    """
    _check_identities(layers)

    result = []
    cumulative = 0.0
    for i, layer in enumerate(layers):
        if i == 0:
            cumulative = LayerConfig.FIRST_LAYER_HEIGHT
        else:
            cumulative += LayerConfig.LAYER_HEIGHT
        result.append(replace(layer, height=round(cumulative, LayerConfig.HEIGHT_DECIMALS)))
    return result


def build_initial_layers(palette) -> List[Layer]:
    """
    由调色板生成初始图层

    调色板按亮度升序；打印顺序反转，最亮的颜色作为第一层（背景），
    identity 保持为调色板行号。
    """
    palette = np.asarray(palette)
    count = len(palette)
    layers = [
        Layer(identity=count - 1 - i, color=tuple(int(v) for v in palette[count - 1 - i]))
        for i in range(count)
    ]
    return assign_heights(layers)


def move_layer(layers: Sequence[Layer], src: int, dst: int) -> List[Layer]:
    """Remove the layer at `src`, insert it at `dst`, then re-assign heights."""
    n = len(layers)
    if not (0 <= src < n and 0 <= dst < n):
        raise LayerOrderError(f"❌ Move {src} → {dst} out of range for {n} layers")
    reordered = list(layers)
    moved = reordered.pop(src)
    reordered.insert(dst, moved)
    return assign_heights(reordered)


def move_layer_up(layers: Sequence[Layer], index: int) -> List[Layer]:
    """Swap with the previous layer; no-op for the first one."""
    if index == 0:
        return list(layers)
    return move_layer(layers, index, index - 1)


def move_layer_down(layers: Sequence[Layer], index: int) -> List[Layer]:
    """Swap with the next layer; no-op for the last one."""
    if index == len(layers) - 1:
        return list(layers)
    return move_layer(layers, index, index + 1)


def _find(layers: Sequence[Layer], identity: int) -> int:
    for pos, layer in enumerate(layers):
        if layer.identity == identity:
            return pos
    raise LayerOrderError(f"❌ No layer with identity {identity}")


def set_layer_color(layers: Sequence[Layer], identity: int, hex_color: str) -> List[Layer]:
    """Override one layer's colour; identity and position are unchanged."""
    pos = _find(layers, identity)
    try:
        rgb = hex_to_rgb(hex_color)
    except ValueError as e:
        raise LayerOrderError(str(e)) from e
    updated = list(layers)
    updated[pos] = replace(updated[pos], color=rgb)
    return updated


def set_layer_height(layers: Sequence[Layer], identity: int, height: float) -> List[Layer]:
    """Manual height override. Not re-normalized; the next reorder resets it."""
    if not height > 0:
        raise LayerOrderError(f"❌ Layer height must be positive, got {height}")
    pos = _find(layers, identity)
    updated = list(layers)
    updated[pos] = replace(updated[pos], height=float(height))
    return updated


def reconcile_layers(new_layers: Sequence[Layer], user_layers: Sequence[Layer] = None) -> List[Layer]:
    """
    重新量化后保留用户自定义顺序

    If the user already arranged a layer list of the same length, keep that
    order and its heights but take colours from the new quantization.
    Otherwise (first run, or colour count changed) the new layers win.
    """
    if not user_layers or len(user_layers) != len(new_layers):
        return list(new_layers)

    by_identity = {layer.identity: layer for layer in new_layers}
    merged = []
    for old in user_layers:
        fresh = by_identity.get(old.identity)
        merged.append(replace(fresh, height=old.height) if fresh is not None else old)
    return merged


def height_lookup(layers: Sequence[Layer]) -> Dict[int, float]:
    """identity → current height"""
    return {layer.identity: layer.height for layer in layers}


def render_layers(index_map, layers: Sequence[Layer]) -> np.ndarray:
    """
    按当前图层颜色重新着色索引图（预览用）

    Returns:
        np.ndarray: (H, W, 3) uint8
    """
    index_map = np.asarray(index_map)
    if index_map.size and index_map.min() < 0:
        raise LayerOrderError("❌ Index map contains negative identities")
    size = max([layer.identity for layer in layers] + [int(index_map.max(initial=0))]) + 1
    table = np.zeros((size, 3), dtype=np.uint8)
    known = np.zeros(size, dtype=bool)
    for layer in layers:
        table[layer.identity] = layer.color
        known[layer.identity] = True
    if not known[index_map].all():
        raise LayerOrderError("❌ Index map references an identity with no layer")
    return table[index_map]
