from typing import Dict, Tuple

# Zotero-style annotation palette, one color per entity tag
ENTITY_COLORS: Dict[str, str] = {
    "METHOD": "#2ea8e5",       # blue
    "DATASET": "#f19837",      # orange
    "METRIC": "#ff6666",       # red
    "TASK": "#5fb236",         # green
    "PERSON": "#ffd400",       # yellow
    "MATERIAL": "#e56eee",     # magenta
    "INSTITUTION": "#a28ae5",  # purple
    "TERM": "#aaaaaa",         # gray
}

FALLBACK_COLOR = "#ffd400"


def color_for_entity_type(entity_type: str) -> str:
    return ENTITY_COLORS.get(str(entity_type).upper(), FALLBACK_COLOR)


def hex_to_rgb(color: str) -> Tuple[float, float, float]:
    """'#2ea8e5' -> (0.18, 0.66, 0.9) in the 0..1 range PDF color arrays use."""
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Invalid hex color: {color}")
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return r / 255.0, g / 255.0, b / 255.0
