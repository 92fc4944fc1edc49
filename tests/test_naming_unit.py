"""Unit tests for Naming_Service (core/naming.py).

Validates specific examples, tag mappings, and edge cases.
"""

import os
import re
import sys
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import Settings
from core.naming import (
    DITHER_TAGS,
    _sanitize,
    generate_model_filename,
    parse_filename,
)

# Timestamp pattern used across tests
TS_RE = r"\d{8}_\d{6}"
FIXED_TS = "20250101_120000"


# =========================================================================
# 1. Dither flag → tag mapping
# =========================================================================

class TestDitherTags:

    def test_dithering_maps_to_dither(self):
        assert DITHER_TAGS[True] == "Dither"

    def test_no_dithering_maps_to_flat(self):
        assert DITHER_TAGS[False] == "Flat"


# =========================================================================
# 2. Edge cases
# =========================================================================

class TestEdgeCases:
    """Edge cases: empty strings, special characters, unicode."""

    def test_empty_base_name_uses_untitled(self):
        filename = generate_model_filename("", Settings())
        assert filename.startswith("untitled_Relief_")

    def test_whitespace_only_base_name_uses_untitled(self):
        filename = generate_model_filename("   ", Settings())
        assert filename.startswith("untitled_Relief_")

    def test_all_forbidden_chars_sanitized(self):
        forbidden = '<>:"/\\|?*'
        filename = generate_model_filename(f"test{forbidden}name", Settings())
        for ch in forbidden:
            assert ch not in filename

    def test_temp_prefix_stripped(self):
        filename = generate_model_filename("tmpq7esd8mm_photo", Settings())
        assert filename.startswith("photo_Relief_")

    def test_unicode_base_name(self):
        filename = generate_model_filename("浮雕测试", Settings(num_colors=6, dithering=False))
        assert "浮雕测试" in filename
        assert "_Relief_6C_Flat_" in filename

    def test_sanitize_replaces_forbidden(self):
        result = _sanitize('a<b>c:d"e/f\\g|h?i*j')
        assert result == "a_b_c_d_e_f_g_h_i_j"


# =========================================================================
# 3. Generated filename format
# =========================================================================

class TestGeneratedFilenameFormat:

    @patch("core.naming._get_timestamp", return_value=FIXED_TS)
    def test_model_filename_structure(self, _mock_ts):
        result = generate_model_filename("photo", Settings(num_colors=4, dithering=True))
        assert result == f"photo_Relief_4C_Dither_{FIXED_TS}.stl"

    @patch("core.naming._get_timestamp", return_value=FIXED_TS)
    def test_model_filename_flat_16c(self, _mock_ts):
        result = generate_model_filename("img", Settings(num_colors=16, dithering=False))
        assert result == f"img_Relief_16C_Flat_{FIXED_TS}.stl"

    def test_model_filename_matches_regex(self):
        pattern = re.compile(rf"^.+_Relief_\d{{1,2}}C_(Dither|Flat)_{TS_RE}\.stl$")
        for n in (2, 8, 16):
            for dithering in (True, False):
                filename = generate_model_filename("test", Settings(num_colors=n, dithering=dithering))
                assert pattern.match(filename), f"No match: {filename}"


# =========================================================================
# 4. parse_filename
# =========================================================================

class TestParseFilename:

    def test_parse_returns_none_for_empty_string(self):
        assert parse_filename("") is None

    def test_parse_returns_none_for_random_string(self):
        assert parse_filename("random_file.txt") is None

    def test_parse_returns_none_for_none_input(self):
        assert parse_filename(None) is None

    def test_parse_returns_none_for_non_string(self):
        assert parse_filename(12345) is None

    @patch("core.naming._get_timestamp", return_value=FIXED_TS)
    def test_parse_model_filename(self, _mock_ts):
        filename = generate_model_filename("my_photo", Settings(num_colors=5, dithering=False))
        parsed = parse_filename(filename)
        assert parsed == {
            "base_name": "my_photo",
            "num_colors": "5",
            "dither_mode": "Flat",
            "timestamp": FIXED_TS,
            "extension": ".stl",
        }
