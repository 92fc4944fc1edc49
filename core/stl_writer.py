"""
Relief Studio - STL Writer
二进制 STL 序列化

Layout: 80-byte header, <u4 triangle count, then one 50-byte record per
triangle (<f4 normal, three <f4 vertices, <u2 attribute count = 0).
"""

import os

import numpy as np

from config import STLConfig
from core.errors import MeshGeometryError

STL_RECORD_DTYPE = np.dtype([
    ("normal", "<f4", (3,)),
    ("v1", "<f4", (3,)),
    ("v2", "<f4", (3,)),
    ("v3", "<f4", (3,)),
    ("attr", "<u2"),
])


def _validated_geometry(mesh):
    vertices = getattr(mesh, "vertices", None)
    faces = getattr(mesh, "faces", None)
    if vertices is None:
        raise MeshGeometryError("❌ Mesh has no vertex buffer")
    if faces is None:
        raise MeshGeometryError("❌ Mesh has no index buffer")

    vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    faces = np.asarray(faces)
    if faces.size == 0:
        return vertices, np.zeros((0, 3), dtype=np.int64)
    if faces.ndim != 2 or faces.shape[1] != 3:
        raise MeshGeometryError(f"❌ Faces must be (F, 3), got {faces.shape}")
    if not np.issubdtype(faces.dtype, np.integer):
        raise MeshGeometryError(f"❌ Face indices must be integers, got {faces.dtype}")
    if faces.min() < 0 or faces.max() >= len(vertices):
        raise MeshGeometryError(
            f"❌ Face index out of range [0, {len(vertices)}): "
            f"min={faces.min()}, max={faces.max()}"
        )
    return vertices, faces.astype(np.int64)


def mesh_to_binary_stl(mesh, header=STLConfig.HEADER_TEXT):
    """
    Encode a mesh as binary STL bytes.

    Facet normals are recomputed per triangle from its own vertices as
    normalize((v2 - v1) × (v3 - v1)); degenerate triangles get a zero normal.

    Args:
        mesh: 带 vertices / faces 的网格（如 trimesh.Trimesh）
        header: 文件头文本，截断/补零至 80 字节

    Returns:
        bytes: 长度 84 + 50 * 三角形数
    """
    vertices, faces = _validated_geometry(mesh)
    count = len(faces)

    # 顶点按 float32 写出，法线也基于 float32 坐标计算
    tri = vertices.astype(np.float32)[faces].astype(np.float64)
    v1, v2, v3 = tri[:, 0], tri[:, 1], tri[:, 2]
    normals = np.cross(v2 - v1, v3 - v1)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)

    records = np.zeros(count, dtype=STL_RECORD_DTYPE)
    records["normal"] = normals
    records["v1"] = v1
    records["v2"] = v2
    records["v3"] = v3

    if isinstance(header, str):
        header = header.encode("ascii", errors="ignore")
    head = bytes(header)[:STLConfig.HEADER_SIZE].ljust(STLConfig.HEADER_SIZE, b"\0")
    payload = head + np.array([count], dtype="<u4").tobytes() + records.tobytes()

    expected = STLConfig.HEADER_SIZE + 4 + STLConfig.RECORD_SIZE * count
    if len(payload) != expected:
        raise MeshGeometryError(f"❌ STL size {len(payload)} != expected {expected}")
    return payload


def save_binary_stl(mesh, path, header=STLConfig.HEADER_TEXT):
    """Serialize first, then write; a failed encode leaves no file behind."""
    data = mesh_to_binary_stl(mesh, header)
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    print(f"[STL] Wrote {path} ({len(data)} bytes, {(len(data) - 84) // 50} triangles)")
    return path
