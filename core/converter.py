"""
Relief Studio - Converter
协调模块：图像 → 调色板/图层/索引图 → 网格 → STL
"""

import os
import traceback

from config import Settings, OUTPUT_DIR
from utils import Stats
from core.errors import ReliefError
from core.image_loader import load_image_pixels
from core.image_processing import ReliefImageProcessor
from core.layers import height_lookup, reconcile_layers
from core.mesh_builder import build_relief_mesh, model_dimensions
from core.naming import generate_model_filename
from core.stl_writer import save_binary_stl


def process_image(pixels, settings, rng=None, user_layers=None):
    """
    Quantize and dither a pixel buffer.

    When `user_layers` (a previous ordering) has the same length as the new
    palette, the user's order and heights are kept with the new colours.

    Returns:
        dict from ReliefImageProcessor.process_image with 'layers' reconciled
    """
    result = ReliefImageProcessor(settings, rng=rng).process_image(pixels)
    result['layers'] = reconcile_layers(result['layers'], user_layers)
    return result


def build_model(index_map, layers, dimensions, model_width):
    """
    Rebuild the relief mesh for the current layer order.

    This is the only step that re-runs on a reorder; quantization and
    dithering results are reused through the identity-based index map.
    """
    width, height = dimensions
    return build_relief_mesh(index_map, height_lookup(layers), width, height, model_width)


def generate_relief_model(image_path, settings=None, output_dir=None,
                          user_layers=None, rng=None):
    """
    Main conversion function: image file → binary STL on disk.

    Args:
        image_path: Path to input image
        settings: Settings record (defaults when None)
        output_dir: Output directory (config.OUTPUT_DIR when None)
        user_layers: Optional previous layer ordering to preserve
        rng: Optional numpy Generator for reproducible clustering

    Returns:
        Tuple of (stl_path, layers, status_message); stl_path and layers are
        None on failure.
    """
    if image_path is None:
        return None, None, "❌ Please provide an image"

    settings = settings if settings is not None else Settings()
    output_dir = output_dir or OUTPUT_DIR
    stats = Stats()

    try:
        pixels = load_image_pixels(image_path)
        stats.mark("load")

        result = process_image(pixels, settings, rng=rng, user_layers=user_layers)
        stats.mark("quantize")

        layers = result['layers']
        mesh = build_model(result['index_map'], layers, result['dimensions'], settings.model_width)
        stats.mark("mesh")

        base_name = os.path.splitext(os.path.basename(str(image_path)))[0]
        out_path = os.path.join(output_dir, generate_model_filename(base_name, settings))
        save_binary_stl(mesh, out_path)
        stats.mark("stl")
    except ReliefError as e:
        print(f"[CONVERTER] Conversion failed: {e}")
        traceback.print_exc()
        return None, None, str(e)

    width_mm, depth_mm, height_mm = model_dimensions(mesh)
    print(f"[CONVERTER] Done ({stats.summary()})")

    status = (
        f"✅ {len(layers)} layers, {len(mesh.faces)} triangles, "
        f"{width_mm:.1f}×{depth_mm:.1f}×{height_mm:.2f}mm"
    )
    return out_path, layers, status
