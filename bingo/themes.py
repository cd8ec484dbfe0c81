"""
Theme style table.

Rendering code never branches on a theme name: it looks up a ThemeStyle
and reads colours, border rules, title visibility and the background
rotation from it. The table itself lives in themes.yaml.
"""

import yaml
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple, Union

from models import Theme

RGB = Tuple[int, int, int]

THEMES_FILE = Path(__file__).parent / "themes.yaml"


def parse_color(color: str) -> RGB:
    """Parse hex color to RGB tuple."""
    color = color.lstrip('#')
    if len(color) == 3:
        color = ''.join(c * 2 for c in color)
    return tuple(int(color[i:i+2], 16) for i in (0, 2, 4))


@dataclass(frozen=True)
class ThemeStyle:
    """Style constants for one theme."""
    name: str
    label: str
    show_title: bool
    backgrounds: List[str] = field(default_factory=list)
    page_tint: RGB = (255, 255, 255)
    title_color: RGB = (31, 41, 55)
    grid_border_color: RGB = (209, 213, 219)
    grid_border_width: float = 0.5
    cell_fill: RGB = (255, 255, 255)
    cell_fill_alpha: float = 1.0
    cell_border_color: RGB = (156, 163, 175)
    cell_border_width: float = 0.1
    corner_radius: float = 0.0
    cell_gap: float = 0.1
    image_padding: float = 0.3
    star_color: RGB = (250, 204, 21)

    @property
    def has_background_artwork(self) -> bool:
        return bool(self.backgrounds)

    def background_for(self, index: int) -> str:
        """Background ref for a rotation index (cycles through the set)."""
        return self.backgrounds[index % len(self.backgrounds)]


_COLOR_FIELDS = (
    "page_tint", "title_color", "grid_border_color",
    "cell_fill", "cell_border_color", "star_color",
)


def _style_from_dict(name: str, raw: dict) -> ThemeStyle:
    values = dict(raw)
    for key in _COLOR_FIELDS:
        if key in values:
            values[key] = parse_color(values[key])
    values["backgrounds"] = list(values.get("backgrounds") or [])
    return ThemeStyle(name=name, **values)


@lru_cache(maxsize=1)
def load_theme_table(path: Path = THEMES_FILE) -> Dict[str, ThemeStyle]:
    """Load the style table from YAML."""
    with open(path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}
    return {name: _style_from_dict(name, entry) for name, entry in raw.items()}


def get_theme_style(theme: Union[Theme, str]) -> ThemeStyle:
    """Look up the style for a theme, raising KeyError for unknown names."""
    key = theme.value if isinstance(theme, Theme) else str(theme)
    table = load_theme_table()
    if key not in table:
        raise KeyError(f"Unknown theme: {key}")
    return table[key]


def get_theme_options() -> list:
    """Get list of available themes for user selection."""
    return [
        {
            "id": style.name,
            "name": style.label,
            "has_background": style.has_background_artwork,
            "background_count": len(style.backgrounds),
        }
        for style in load_theme_table().values()
    ]
