"""Naming_Service — 统一的文件命名服务模块。

负责生成 Relief Studio 输出文件的标准化文件名，
包含颜色数、抖动模式和时间戳，便于用户识别和管理生成的文件。
"""

import re
from datetime import datetime
from typing import Optional, Dict

# 抖动开关 → 文件名标识映射
DITHER_TAGS: Dict[bool, str] = {
    True: "Dither",
    False: "Flat",
}


def _get_timestamp() -> str:
    """返回当前本地时间的时间戳字符串，格式 YYYYMMDD_HHmmss。"""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _sanitize(name: str) -> str:
    """移除文件名中操作系统不允许的特殊字符，替换为下划线。"""
    forbidden = '<>:"/\\|?*'
    for ch in forbidden:
        name = name.replace(ch, "_")
    return name


# 临时文件前缀模式: tmp{random}_ (例如 tmpq7esd8mm_photo)
_TEMP_PREFIX_RE = re.compile(r"^tmp[a-zA-Z0-9]{4,12}_")


def _strip_temp_prefix(name: str) -> str:
    """去除临时文件名前缀。"""
    return _TEMP_PREFIX_RE.sub("", name)


def generate_model_filename(
    base_name: str,
    settings,
    extension: str = ".stl",
) -> str:
    """生成标准模型文件名。

    格式: {base_name}_Relief_{N}C_{Dither|Flat}_{timestamp}{ext}

    - base_name 为空字符串时使用默认值 "untitled"
    """
    base = _sanitize(_strip_temp_prefix(base_name.strip())) or "untitled"
    color_tag = f"{int(settings.num_colors)}C"
    dither_tag = DITHER_TAGS[bool(settings.dithering)]
    ts = _get_timestamp()
    return f"{base}_Relief_{color_tag}_{dither_tag}_{ts}{extension}"


# Timestamp pattern: YYYYMMDD_HHmmss
_TS_PATTERN = r"\d{8}_\d{6}"

_MODEL_RE = re.compile(
    rf"^(.+)_Relief_(\d{{1,2}})C_(Dither|Flat)_({_TS_PATTERN})(\.[\w]+)$"
)


def parse_filename(filename: str) -> Optional[Dict[str, str]]:
    """从标准化文件名中解析各组成部分。

    返回 dict 包含 base_name, num_colors, dither_mode, timestamp, extension。
    非标准格式返回 None，不抛出异常。
    """
    if not isinstance(filename, str) or not filename:
        return None

    m = _MODEL_RE.match(filename)
    if not m:
        return None
    return {
        "base_name": m.group(1),
        "num_colors": m.group(2),
        "dither_mode": m.group(3),
        "timestamp": m.group(4),
        "extension": m.group(5),
    }
