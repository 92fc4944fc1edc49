"""
Relief Studio - 端到端流程测试
图像输入 → 量化 → 图层高度 → 网格 → STL
"""

import os
import sys

import numpy as np
import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import Settings
from core.converter import build_model, generate_relief_model, process_image
from core.errors import ImageInputError, SettingsError
from core.image_loader import fit_within, load_image_pixels, prepare_pixels
from core.image_processing import ReliefImageProcessor
from core.layers import move_layer
from core.naming import parse_filename
from core.stl_writer import mesh_to_binary_stl

BLUE = (30, 60, 200)
YELLOW = (240, 220, 40)


def _two_color_image():
    img = np.zeros((4, 4, 3), dtype=np.uint8)
    img[:, :2] = BLUE
    img[:, 2:] = YELLOW
    return img


# ========== 输入处理 ==========

class TestImageInput:

    @pytest.mark.parametrize("size, expected", [
        ((512, 300), (256, 150)),
        ((512, 301), (256, 151)),   # 150.5 rounds up
        ((301, 512), (151, 256)),
        ((300, 600), (128, 256)),
        ((256, 256), (256, 256)),
        ((100, 40), (100, 40)),
        ((1000, 1), (256, 1)),
    ])
    def test_fit_within(self, size, expected):
        assert fit_within(*size) == expected

    def test_zero_dimension_rejected(self):
        with pytest.raises(ImageInputError):
            fit_within(0, 10)
        with pytest.raises(ImageInputError):
            prepare_pixels(np.zeros((0, 5, 3), dtype=np.uint8))

    def test_alpha_dropped_and_copy_returned(self):
        rgba = np.zeros((3, 3, 4), dtype=np.uint8)
        rgba[..., :3] = 77
        rgba[..., 3] = 10
        pixels = prepare_pixels(rgba)
        assert pixels.shape == (3, 3, 3)
        assert (pixels == 77).all()
        pixels[0, 0] = 0
        assert rgba[0, 0, 0] == 77

    def test_large_buffer_downsampled(self):
        pixels = prepare_pixels(np.zeros((600, 300, 3), dtype=np.uint8))
        assert pixels.shape == (256, 128, 3)

    def test_wrong_shape_rejected(self):
        with pytest.raises(ImageInputError):
            prepare_pixels(np.zeros((4, 4, 2), dtype=np.uint8))

    def test_load_image_file(self, tmp_path):
        path = tmp_path / "photo.png"
        Image.new("RGBA", (400, 200), (10, 20, 30, 255)).save(path)
        pixels = load_image_pixels(str(path))
        assert pixels.shape == (128, 256, 3)
        assert tuple(pixels[5, 5]) == (10, 20, 30)

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ImageInputError):
            load_image_pixels(str(path))


class TestSettings:

    def test_defaults(self):
        s = Settings()
        assert (s.num_colors, s.dithering, s.edge_preservation, s.model_width) == (4, True, False, 100.0)

    def test_numpy_integer_colors_accepted(self):
        assert Settings(num_colors=np.int64(6)).num_colors == 6

    @pytest.mark.parametrize("kwargs", [
        {"num_colors": True},
        {"num_colors": 1},
        {"num_colors": 17},
        {"num_colors": 4.0},
        {"model_width": 0},
        {"model_width": -5.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(SettingsError):
            Settings(**kwargs)


# ========== 端到端 ==========

class TestEndToEnd:

    def test_two_color_scenario(self):
        settings = Settings(num_colors=2, dithering=False, edge_preservation=False, model_width=40.0)
        result = process_image(_two_color_image(), settings, rng=np.random.default_rng(11))

        palette = result['palette']
        np.testing.assert_array_equal(palette, [BLUE, YELLOW])

        index_map = result['index_map']
        assert set(np.unique(index_map)) == {0, 1}
        assert (index_map[:, :2] == 0).all()
        assert (index_map[:, 2:] == 1).all()
        np.testing.assert_array_equal(result['matched_rgb'], _two_color_image())

        layers = result['layers']
        assert [l.height for l in layers] == [0.8, 1.2]
        assert layers[0].color == YELLOW  # 亮色在底层

        mesh = build_model(index_map, layers, result['dimensions'], settings.model_width)
        assert len(mesh.faces) == 36 + 12 + 12
        assert len(mesh_to_binary_stl(mesh)) == 84 + 50 * 60

    def test_reorder_rebuilds_without_requantizing(self):
        settings = Settings(num_colors=2, dithering=False, model_width=40.0)
        result = process_image(_two_color_image(), settings, rng=np.random.default_rng(11))
        layers = move_layer(result['layers'], 1, 0)

        mesh = build_model(result['index_map'], layers, result['dimensions'], settings.model_width)
        tops = np.asarray(mesh.vertices)[0::2, 2].reshape(4, 4)
        assert (tops[:, :2] == 0.8).all()   # blue now at the bottom
        assert (tops[:, 2:] == 1.2).all()

    def test_user_order_preserved_on_reprocess(self):
        settings = Settings(num_colors=2, dithering=False, model_width=40.0)
        first = process_image(_two_color_image(), settings, rng=np.random.default_rng(11))
        user = move_layer(first['layers'], 1, 0)
        second = process_image(_two_color_image(), settings, rng=np.random.default_rng(12),
                               user_layers=user)
        assert [l.identity for l in second['layers']] == [l.identity for l in user]

    def test_edge_protected_dithering_runs(self):
        rng = np.random.default_rng(8)
        base = np.zeros((20, 20, 3), dtype=np.int64)
        base[:, 10:] = 255
        noise = rng.integers(-10, 10, base.shape)
        img = np.clip(base + noise, 0, 255).astype(np.uint8)
        processor = ReliefImageProcessor(
            Settings(num_colors=3, dithering=True, edge_preservation=True), rng=rng
        )
        result = processor.process_image(img)
        assert result['index_map'].shape == (20, 20)
        assert result['dimensions'] == (20, 20)
        assert len(result['layers']) == 3


class TestGenerateReliefModel:

    def test_writes_stl(self, tmp_path):
        src = tmp_path / "logo.png"
        Image.fromarray(np.kron(_two_color_image(), np.ones((4, 4, 1), dtype=np.uint8))).save(src)
        settings = Settings(num_colors=2, dithering=False, model_width=32.0)

        out_path, layers, status = generate_relief_model(
            str(src), settings, output_dir=str(tmp_path / "out"), rng=np.random.default_rng(0)
        )

        assert out_path is not None, status
        assert status.startswith("✅")
        data = open(out_path, "rb").read()
        count = int.from_bytes(data[80:84], "little")
        assert count == 2 * 15 * 15 * 2 + 4 * 15 + 4 * 15
        assert len(data) == 84 + 50 * count
        parsed = parse_filename(os.path.basename(out_path))
        assert parsed["base_name"] == "logo"
        assert parsed["num_colors"] == "2"
        assert parsed["dither_mode"] == "Flat"
        assert len(layers) == 2

    def test_missing_image(self, tmp_path):
        out_path, layers, status = generate_relief_model(
            str(tmp_path / "nope.png"), Settings(), output_dir=str(tmp_path)
        )
        assert out_path is None
        assert layers is None
        assert status.startswith("❌")
        assert list(tmp_path.iterdir()) == []

    def test_none_image(self):
        assert generate_relief_model(None)[0] is None
