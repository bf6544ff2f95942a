"""Category helpers: display labels, tag colors and the custom registry."""

from __future__ import annotations

from typing import Iterable, Union

from noteease.models import ALL_CATEGORIES, BuiltinCategory, is_custom

LIGHT_TAG_COLORS: dict[str, str] = {
    ALL_CATEGORIES: "#3B51F0",
    BuiltinCategory.PERSONAL.value: "#FF9500",
    BuiltinCategory.WORK.value: "#8B5CF6",
    BuiltinCategory.FAMILY.value: "#EF4444",
}

DARK_TAG_COLORS: dict[str, str] = {
    ALL_CATEGORIES: "#5767F1",
    BuiltinCategory.PERSONAL.value: "#FF9F0A",
    BuiltinCategory.WORK.value: "#A78BFA",
    BuiltinCategory.FAMILY.value: "#F87171",
}


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _name(category: Union[BuiltinCategory, str]) -> str:
    return category.value if isinstance(category, BuiltinCategory) else category


def category_label(category: Union[BuiltinCategory, str]) -> str:
    """Capitalised display label, e.g. ``work`` -> ``Work``."""
    name = _name(category)
    return name[:1].upper() + name[1:]


def tag_color(category: Union[BuiltinCategory, str], dark: bool = False) -> str:
    """Palette color for a category.

    Builtins and ``all`` use the fixed palette. Any other name, including
    orphaned custom categories no longer in the registry, gets a color
    derived from a 32-bit string hash so it stays stable across sessions.
    """
    name = _name(category)
    palette = DARK_TAG_COLORS if dark else LIGHT_TAG_COLORS
    if name in palette:
        return palette[name]

    # Hash over UTF-16 code units with JavaScript int32 shift semantics,
    # so colors match what earlier app versions rendered.
    units = name.encode("utf-16-le")
    h = 0
    for i in range(0, len(units), 2):
        unit = units[i] | (units[i + 1] << 8)
        h = unit + (_to_int32(_to_int32(h) << 5) - h)

    color = "#"
    for i in range(3):
        color += f"{(_to_int32(h) >> (i * 8)) & 0xFF:02x}"
    return color


def available_categories(custom: Iterable[str]) -> list[Union[BuiltinCategory, str]]:
    """Builtins first, then the custom registry in insertion order."""
    result: list[Union[BuiltinCategory, str]] = list(BuiltinCategory)
    result.extend(name for name in custom if is_custom(name))
    return result


def normalise_registry(names: Iterable[str]) -> list[str]:
    """Drop blanks, reserved names and duplicates, keeping first occurrence."""
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        if not isinstance(name, str) or not name.strip():
            continue
        if not is_custom(name) or name in seen:
            continue
        seen.add(name)
        result.append(name)
    return result
