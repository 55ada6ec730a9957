"""Theme colors and color utilities for the UI."""


class ThemeColors:
    """Default dark palette."""

    BACKGROUND = "#1E1E1E"
    SURFACE = "#2A2A2A"

    CURSOR = "#38BDF8"
    GHOST_CURSOR = "#A78BFA"

    DEFAULT_TEXT = "#6B7280"
    UPCOMING_TEXT = "#6B7280"
    CORRECT_TEXT = "#E5E7EB"
    INCORRECT_TEXT = "#EF4444"

    BUTTON_UNSELECTED = "#38BDF8"
    BUTTON_SELECTED = "#2DD4BF"

    TEXT_MUTED = "#9CA3AF"


def blend_hex(a: str, b: str, t: float) -> str:
    """Blend two #RRGGBB colors. t=0 -> a, t=1 -> b."""
    try:
        a = a.strip()
        b = b.strip()
        if not (a.startswith("#") and b.startswith("#") and len(a) == 7 and len(b) == 7):
            return a
        t = max(0.0, min(1.0, float(t)))
        ar, ag, ab = int(a[1:3], 16), int(a[3:5], 16), int(a[5:7], 16)
        br, bg, bb = int(b[1:3], 16), int(b[3:5], 16), int(b[5:7], 16)
        r = int(ar + (br - ar) * t)
        g = int(ag + (bg - ag) * t)
        bl = int(ab + (bb - ab) * t)
        return f"#{r:02X}{g:02X}{bl:02X}"
    except (ValueError, TypeError):
        return a


def dimmed(color: str, active: bool, amount: float = 0.85) -> str:
    """Fade ``color`` toward the background while the UI is dimmed."""
    if not active:
        return color
    return blend_hex(color, ThemeColors.BACKGROUND, amount)
