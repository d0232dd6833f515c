"""Visual encoding of nodes and links from their metadata.

Node fill follows a fixed priority (highest first): in-path, currently
exploring, path endpoint, bulk selected, origin-seed hue, user typed,
auto-discovered with a color seed, auto-discovered, default.
"""

import colorsys
from dataclasses import dataclass

from wikiweb.graph.models import NodeMetadata
from wikiweb.layout.force import node_radius

PATH_COLOR = "#00ff88"
EXPLORING_COLOR = "#ffdd00"
ENDPOINT_COLOR = "#ff8800"
BULK_SELECTED_COLOR = "#ff8800"
USER_TYPED_COLOR = "#0088ff"
AUTO_DISCOVERED_COLOR = "#9966ff"
DEFAULT_COLOR = "#0088ff"

LINK_COLOR = "#888"
LINK_DIMMED_COLOR = "#555"
LINK_HOVER_COLOR = "#00ffff"

# Gradient stops for a link joining the two selected path endpoints
GRADIENT_START_COLOR = "#ff8800"
GRADIENT_END_COLOR = "#ffdd00"

DEPTH_HUE_STEP = 24.0
FOCUS_SCALE = 1.18

FOCUS_DIM = 0.4
PATH_DIM = 0.15
LINK_BASE_OPACITY = 0.6


def hash_seed(seed: str) -> int:
    """32-bit FNV-1a hash of a seed string."""
    h = 0x811C9DC5
    for byte in seed.encode("utf-8"):
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


def seed_hue(seed: str, depth: int = 0) -> float:
    """Hue in degrees for a seed, rotated by traversal depth."""
    return (hash_seed(seed) % 360 + depth * DEPTH_HUE_STEP) % 360


def hsl_to_hex(hue: float, saturation: float, lightness: float) -> str:
    r, g, b = colorsys.hls_to_rgb(hue / 360, lightness, saturation)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


def opacity_tier(focus_dimmed: bool, path_dimmed: bool) -> float:
    """Combined opacity for the two dimming sources.

    1.0 undimmed, 0.4 focus only, 0.15 path only, 0.06 both.
    """
    opacity = 1.0
    if focus_dimmed:
        opacity *= FOCUS_DIM
    if path_dimmed:
        opacity *= PATH_DIM
    return round(opacity, 4)


def node_fill(meta: NodeMetadata) -> str:
    if meta.is_in_path:
        return PATH_COLOR
    if meta.is_currently_exploring:
        return EXPLORING_COLOR
    if meta.is_path_endpoint:
        return ENDPOINT_COLOR
    if meta.is_bulk_selected:
        return BULK_SELECTED_COLOR
    if meta.origin_seed:
        lightness = 0.5 if meta.color_role == "root" else 0.6
        return hsl_to_hex(seed_hue(meta.origin_seed, meta.origin_depth or 0), 0.7, lightness)
    if meta.is_user_typed:
        return USER_TYPED_COLOR
    if meta.is_auto_discovered and meta.color_seed:
        return hsl_to_hex(seed_hue(meta.color_seed), 0.45, 0.6)
    if meta.is_auto_discovered:
        return AUTO_DISCOVERED_COLOR
    return DEFAULT_COLOR


def node_stroke(meta: NodeMetadata) -> str:
    if meta.is_path_endpoint:
        return "#ffdd00"
    if meta.is_bulk_selected:
        return "#ffff00"
    if meta.is_currently_exploring:
        return "#ff6600"
    if meta.is_focus_target:
        return "#ffffff"
    if meta.is_expanded:
        return "#00ffff"
    return "#fff"


def node_stroke_width(meta: NodeMetadata) -> float:
    if meta.is_currently_exploring:
        return 4
    if meta.is_path_endpoint:
        return 5
    if meta.is_bulk_selected:
        return 3
    if meta.is_focus_target:
        return 3
    if meta.is_expanded:
        return 3
    if meta.is_dimmed:
        return 1
    return 2


@dataclass(frozen=True)
class NodeStyle:
    fill: str
    fill_opacity: float
    stroke: str
    stroke_width: float
    radius: float
    scale: float
    opacity: float
    pattern: str | None  # Thumbnail pattern key, if any

    def attrs(self) -> dict:
        return {
            "fill": self.fill,
            "fill-opacity": self.fill_opacity,
            "stroke": self.stroke,
            "stroke-width": self.stroke_width,
            "r": self.radius,
            "scale": self.scale,
            "opacity": self.opacity,
            "pattern": self.pattern,
        }


@dataclass(frozen=True)
class LinkStyle:
    stroke: str
    stroke_width: float
    stroke_opacity: float
    gradient: str | None  # Gradient key when stroked with a gradient

    def attrs(self) -> dict:
        return {
            "stroke": f"url(#{self.gradient})" if self.gradient else self.stroke,
            "stroke-width": self.stroke_width,
            "stroke-opacity": self.stroke_opacity,
        }


def pattern_key(node_id: str) -> str:
    """Sanitized key of a node's thumbnail pattern, suffixed with a hash of the raw id."""
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in node_id)
    return f"img-{safe}-{hash_seed(node_id):08x}"


def gradient_key(link_key: str) -> str:
    return f"gradient:{link_key}"


def wrap_label(title: str, radius: float, size_scale: float = 1.0, max_lines: int = 3) -> list[str]:
    """Greedy word wrap sized to the node; overflow is cut with an ellipsis."""
    max_chars = max(6, round(10 * (radius / (45 * size_scale or 1))))
    lines: list[str] = []
    current = ""
    for word in title.split():
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)

    if len(lines) > max_lines:
        lines = lines[:max_lines]
        lines[-1] = lines[-1][: max_chars - 2] + "..."
    return lines


def node_style(node_id: str, meta: NodeMetadata, degree: int, size_scale: float = 1.0) -> NodeStyle:
    """Style of one node; thumbnails tint the fill down so the image shows."""
    return NodeStyle(
        fill=node_fill(meta),
        fill_opacity=0.3 if meta.thumbnail else 1.0,
        stroke=node_stroke(meta),
        stroke_width=node_stroke_width(meta),
        radius=node_radius(degree, size_scale),
        scale=FOCUS_SCALE if meta.is_focus_target else 1.0,
        opacity=opacity_tier(meta.is_dimmed, meta.is_dimmed_by_path),
        pattern=pattern_key(node_id) if meta.thumbnail else None,
    )


def link_style(link_key: str, source: NodeMetadata, target: NodeMetadata) -> LinkStyle:
    """Style of one link from the metadata of both endpoints."""
    focus_dimmed = source.is_dimmed or target.is_dimmed
    path_dimmed = source.is_dimmed_by_path or target.is_dimmed_by_path
    dimmed = focus_dimmed or path_dimmed
    on_path = source.is_in_path and target.is_in_path

    if dimmed:
        stroke, width = LINK_DIMMED_COLOR, 1.0
    elif on_path:
        stroke, width = PATH_COLOR, 4.0
    else:
        stroke, width = LINK_COLOR, 3.0

    gradient = None
    if source.is_path_endpoint and target.is_path_endpoint:
        gradient = gradient_key(link_key)

    return LinkStyle(
        stroke=stroke,
        stroke_width=width,
        stroke_opacity=round(LINK_BASE_OPACITY * opacity_tier(focus_dimmed, path_dimmed), 4),
        gradient=gradient,
    )
