"""Specification value parsers used by the built-in rule processors.

Each parser returns values in base units (watts, plain numbers, pixels), or None if unparseable.
"""

import re
from typing import Any

# Pre-compiled; called once per rule evaluation
_POWER_KW_PATTERN = re.compile(r"(-?[\d.]+)\s*kW", re.IGNORECASE)
_POWER_MW_PATTERN = re.compile(r"(-?[\d.]+)\s*mW")
_POWER_W_PATTERN = re.compile(r"(-?[\d.]+)\s*W", re.IGNORECASE)
_PLAIN_NUMBER_PATTERN = re.compile(r"^\s*(-?[\d.]+)\s*$")
_DIMENSIONS_PATTERN = re.compile(r"[\d.]+")
_RESOLUTION_PATTERN = re.compile(r"^\s*(\d+)\s*[x×*]\s*(\d+)\s*$", re.IGNORECASE)
_RESOLUTION_ALIASES = {
    "720p": (1280, 720),
    "hd": (1280, 720),
    "1080p": (1920, 1080),
    "fhd": (1920, 1080),
    "1440p": (2560, 1440),
    "qhd": (2560, 1440),
    "4k": (3840, 2160),
    "uhd": (3840, 2160),
    "2160p": (3840, 2160),
    "8k": (7680, 4320),
}
_DIMENSION_AXES = ("width", "height", "depth")
_CONNECTOR_NOISE = re.compile(r"[\s\-_]+")


def _to_float(s: str) -> float | None:
    try:
        return float(s)
    except ValueError:
        return None


def parse_power(value: Any) -> float | None:
    """Parse power in watts: 65 -> 65, '65W' -> 65, '500mW' -> 0.5, '1.2kW' -> 1200."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str) or not value.strip():
        return None
    match = _POWER_KW_PATTERN.search(value)
    if match:
        parsed = _to_float(match.group(1))
        return parsed * 1000 if parsed is not None else None
    match = _POWER_MW_PATTERN.search(value)
    if match:
        parsed = _to_float(match.group(1))
        return parsed / 1000 if parsed is not None else None
    match = _POWER_W_PATTERN.search(value) or _PLAIN_NUMBER_PATTERN.match(value)
    if match:
        return _to_float(match.group(1))
    return None


def parse_dimensions(value: Any) -> tuple[float, ...] | None:
    """Parse dimensions: 10 -> (10,), [10, 20, 5] -> (10, 20, 5), '10x20x5 mm' -> (10, 20, 5),
    {'width': 10, 'height': 20} -> (10, 20). Mapping keys may use 'length' in place of 'depth'."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return (float(value),)
    if isinstance(value, (list, tuple)):
        if not value or any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in value):
            return None
        return tuple(float(v) for v in value)
    if isinstance(value, dict):
        lowered = {str(k).lower(): v for k, v in value.items()}
        if "depth" not in lowered and "length" in lowered:
            lowered["depth"] = lowered["length"]
        axes = [lowered[a] for a in _DIMENSION_AXES if a in lowered]
        if not axes or any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in axes):
            return None
        return tuple(float(v) for v in axes)
    if isinstance(value, str):
        numbers = [_to_float(n) for n in _DIMENSIONS_PATTERN.findall(value)]
        if not numbers or any(n is None for n in numbers):
            return None
        return tuple(numbers)
    return None


def parse_resolution(value: Any) -> tuple[int, int] | None:
    """Parse resolution: '1920x1080' -> (1920, 1080), [1920, 1080], {'width':..,'height':..}, '4K'."""
    if isinstance(value, str):
        alias = _RESOLUTION_ALIASES.get(value.strip().lower())
        if alias:
            return alias
        match = _RESOLUTION_PATTERN.match(value)
        if match:
            return int(match.group(1)), int(match.group(2))
        return None
    if isinstance(value, (list, tuple)) and len(value) == 2:
        w, h = value
    elif isinstance(value, dict) and "width" in value and "height" in value:
        w, h = value["width"], value["height"]
    else:
        return None
    if isinstance(w, bool) or isinstance(h, bool) or not isinstance(w, (int, float)) or not isinstance(h, (int, float)):
        return None
    return int(w), int(h)


def normalize_connector(name: str) -> str:
    """'USB-C' -> 'usbc', 'usb c' -> 'usbc', 'Mini_DisplayPort' -> 'minidisplayport'."""
    return _CONNECTOR_NOISE.sub("", name.strip().casefold())


def connector_family(name: str) -> str:
    """Connector family: the part before the first separator ('USB-C' -> 'usb', 'HDMI 2.1' -> 'hdmi')."""
    parts = _CONNECTOR_NOISE.split(name.strip().casefold())
    return parts[0] if parts else ""


def parse_connectors(value: Any) -> list[str]:
    """Connector names from a string or list; empty list when unusable."""
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if isinstance(v, str) and v.strip()]
    return []
