"""Named colour palettes for the terminal UI."""

from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple

from rich.style import Style

THEME_NAMES = [
    "dark",
    "dark-blue",
    "dark-green",
    "dark-red",
    "dark-violet",
    "dark-gray",
    "solarized-dark",
    "solarized-light",
    "light",
    "bubblegum",
    "no-color",
]

DEFAULT_THEME = "dark"


@dataclass(frozen=True)
class Theme:
    """Palette roles; each value is a rich colour string."""
    name: str
    fg: str
    bg: str
    dim: str
    border: str
    highlight_bg: str
    highlight_fg: str
    positive: str
    negative: str
    accent: str
    input_accent: str
    title: str
    error: str

    def style(self, role: str, bold: bool = False, on: Optional[str] = None) -> Style:
        """Build a style with the colour of ``role`` as foreground.

        Args:
            role: Palette role such as ``"accent"``
            bold: Bold text
            on: Palette role used as background
        """
        return Style(
            color=getattr(self, role),
            bgcolor=getattr(self, on) if on else None,
            bold=bold,
        )

    @property
    def base(self) -> Style:
        return Style(color=self.fg, bgcolor=self.bg)

    @property
    def highlight(self) -> Style:
        return Style(color=self.highlight_fg, bgcolor=self.highlight_bg, bold=True)


# xterm-256 indices in field order: fg, bg, dim, border, highlight_bg,
# highlight_fg, positive, negative, accent, input_accent, title, error.
# None is the terminal default.
_PALETTES: Dict[str, Tuple[Optional[int], ...]] = {
    "dark": (253, None, 243, 240, 237, 255, 46, 196, 81, 220, 255, 196),
    "dark-blue": (153, None, 60, 24, 17, 231, 49, 203, 39, 117, 75, 203),
    "dark-green": (194, None, 65, 22, 22, 255, 82, 209, 120, 156, 46, 209),
    "dark-red": (224, None, 95, 52, 52, 255, 107, 197, 210, 216, 196, 197),
    "dark-violet": (225, None, 97, 54, 53, 255, 156, 211, 177, 183, 141, 211),
    "dark-gray": (250, None, 240, 236, 236, 255, 108, 138, 247, 252, 255, 138),
    "solarized-dark": (246, None, 240, 23, 23, 230, 64, 160, 37, 136, 33, 166),
    "solarized-light": (240, 230, 245, 187, 187, 235, 64, 160, 33, 136, 37, 166),
    "light": (234, 231, 246, 251, 253, 232, 28, 124, 25, 130, 232, 124),
    "bubblegum": (225, None, 176, 213, 201, 231, 49, 197, 123, 219, 213, 197),
    "no-color": (None,) * 12,
}

_ROLES = [f.name for f in fields(Theme) if f.name != "name"]


def _colour(index: Optional[int]) -> str:
    return "default" if index is None else f"color({index})"


def by_name(name: str) -> Theme:
    """Get a theme by name; unknown names give the dark theme."""
    if name not in _PALETTES:
        name = DEFAULT_THEME
    colours = {role: _colour(index) for role, index in zip(_ROLES, _PALETTES[name])}
    return Theme(name=name, **colours)
