"""
Relief Studio - Mesh Builder
网格生成模块 - 将高度场挤出为封闭三角网格（顶面、底面、四个侧壁）
"""

from typing import Mapping, Sequence, Union

import numpy as np
import trimesh

from config import ReliefConfig
from core.errors import MeshGeometryError


def _resolve_heights(index_map, layer_heights: Union[Mapping[int, float], Sequence[float]]):
    """identity map → per-pixel height, failing on identities with no height."""
    if isinstance(layer_heights, Mapping):
        items = layer_heights.items()
    else:
        items = enumerate(layer_heights)

    identities = np.unique(index_map)
    if identities.size and identities[0] < 0:
        raise MeshGeometryError(f"❌ Index map contains negative identity {identities[0]}")

    size = int(identities[-1]) + 1 if identities.size else 0
    table = np.full(max(size, 1), np.nan, dtype=np.float64)
    for identity, height in items:
        if 0 <= int(identity) < size:
            table[int(identity)] = float(height)

    missing = [int(i) for i in identities if np.isnan(table[i])]
    if missing:
        raise MeshGeometryError(f"❌ No height for layer identities {missing}")
    used = table[identities]
    if np.any(used <= 0):
        raise MeshGeometryError(f"❌ Layer heights must be positive, got {used.tolist()}")
    return table[index_map]


def _dedup_vertices(coords, decimals):
    """
    顶点去重：以定点整数化坐标为键

    Returns:
        (vertices, remap) where remap[i] is the vertex index for coords[i].
        Vertices keep first-seen order.
    """
    keys = np.rint(coords * (10 ** decimals)).astype(np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)
    order = np.argsort(first, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))
    return coords[first[order]], rank[inverse]


def build_relief_mesh(index_map, layer_heights, width, height, model_width,
                      decimals=ReliefConfig.VERTEX_DECIMALS):
    """
    构建浮雕网格

    Each pixel centre becomes a top vertex at its layer height and a bottom
    vertex at z=0. The grid is centred on the origin with +y pointing up the
    image, so row 0 is the far (+y) edge.

    Args:
        index_map: (H, W) 或长度 W*H 的 identity 数组
        layer_heights: identity → 高度 (mm) 的映射
        width, height: 网格像素尺寸
        model_width: 模型物理宽度 (mm)
        decimals: 顶点去重精度

    Returns:
        trimesh.Trimesh (process=False)

    Raises:
        MeshGeometryError: 索引图尺寸不符、缺少高度、网格小于 2x2
    """
    width, height = int(width), int(height)
    index_map = np.asarray(index_map)
    if index_map.size != width * height:
        raise MeshGeometryError(
            f"❌ Index map has {index_map.size} entries, expected {width}×{height}={width * height}"
        )
    if width < 2 or height < 2:
        raise MeshGeometryError(f"❌ Grid {width}×{height} is too small to form a closed mesh")
    if not model_width > 0:
        raise MeshGeometryError(f"❌ Model width must be positive, got {model_width}")

    index_map = index_map.reshape(height, width).astype(np.int64)
    z_top = _resolve_heights(index_map, layer_heights)

    pixel_size = model_width / width
    xs = (np.arange(width) - width / 2) * pixel_size
    ys = -(np.arange(height) - height / 2) * pixel_size
    px, py = np.meshgrid(xs, ys)

    # 顶点顺序：每个像素依次加入顶部、底部
    top = np.stack([px, py, z_top], axis=-1).reshape(-1, 3)
    bottom = np.stack([px, py, np.zeros_like(z_top)], axis=-1).reshape(-1, 3)
    coords = np.empty((2 * width * height, 3), dtype=np.float64)
    coords[0::2] = top
    coords[1::2] = bottom

    vertices, remap = _dedup_vertices(coords, decimals)
    top_idx = remap[0::2].reshape(height, width)
    bottom_idx = remap[1::2].reshape(height, width)

    faces = []

    # 顶面：逆时针（法线 +z）
    t0 = top_idx[:-1, :-1].ravel()
    t1 = top_idx[:-1, 1:].ravel()
    t2 = top_idx[1:, :-1].ravel()
    t3 = top_idx[1:, 1:].ravel()
    faces.append(np.stack([t0, t2, t1], axis=1))
    faces.append(np.stack([t1, t2, t3], axis=1))

    # 底面：顺时针（法线 -z）
    b0 = bottom_idx[:-1, :-1].ravel()
    b1 = bottom_idx[:-1, 1:].ravel()
    b2 = bottom_idx[1:, :-1].ravel()
    b3 = bottom_idx[1:, 1:].ravel()
    faces.append(np.stack([b0, b1, b2], axis=1))
    faces.append(np.stack([b2, b1, b3], axis=1))

    # 侧壁：row 0 (+y)
    t0, t1 = top_idx[0, :-1], top_idx[0, 1:]
    b0, b1 = bottom_idx[0, :-1], bottom_idx[0, 1:]
    faces.append(np.stack([t0, t1, b0], axis=1))
    faces.append(np.stack([b0, t1, b1], axis=1))

    # 侧壁：最后一行 (-y)
    t0, t1 = top_idx[-1, :-1], top_idx[-1, 1:]
    b0, b1 = bottom_idx[-1, :-1], bottom_idx[-1, 1:]
    faces.append(np.stack([t1, t0, b1], axis=1))
    faces.append(np.stack([b1, t0, b0], axis=1))

    # 侧壁：左列 (-x)
    t0, t1 = top_idx[:-1, 0], top_idx[1:, 0]
    b0, b1 = bottom_idx[:-1, 0], bottom_idx[1:, 0]
    faces.append(np.stack([t1, t0, b1], axis=1))
    faces.append(np.stack([b1, t0, b0], axis=1))

    # 侧壁：右列 (+x)
    t0, t1 = top_idx[:-1, -1], top_idx[1:, -1]
    b0, b1 = bottom_idx[:-1, -1], bottom_idx[1:, -1]
    faces.append(np.stack([t0, t1, b0], axis=1))
    faces.append(np.stack([b0, t1, b1], axis=1))

    faces = np.concatenate(faces, axis=0).astype(np.int64)

    mesh = trimesh.Trimesh(vertices=vertices, faces=faces, process=False)
    print(f"[MESH] {width}×{height} grid → {len(vertices)} vertices, {len(faces)} triangles")
    return mesh


def model_dimensions(mesh):
    """(width_mm, depth_mm, relief_height_mm) of the mesh bounding box."""
    if len(mesh.vertices) == 0:
        return 0.0, 0.0, 0.0
    extents = np.ptp(np.asarray(mesh.vertices), axis=0)
    return float(extents[0]), float(extents[1]), float(np.max(np.asarray(mesh.vertices)[:, 2]))
