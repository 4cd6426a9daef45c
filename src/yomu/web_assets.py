from __future__ import annotations

from urllib.parse import quote

DEFAULT_LABEL = "読"


def build_favicon_svg(
    label: str = DEFAULT_LABEL,
    *,
    background: str = "#0ea5e9",
    text_color: str = "#ffffff",
) -> str:
    """Return a rounded square SVG badge with a single glyph."""
    glyph = ((label or DEFAULT_LABEL).strip() or DEFAULT_LABEL)[:1]
    return f"""<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 64 64" role="img" aria-label="{glyph} icon">
  <rect width="64" height="64" rx="14" ry="14" fill="{background}" />
  <text x="32" y="44" text-anchor="middle" font-family="'Hiragino Sans', 'Noto Sans CJK JP', sans-serif"
        font-size="36" font-weight="700" fill="{text_color}">{glyph}</text>
</svg>"""


def favicon_data_url(label: str = DEFAULT_LABEL, **colors: str) -> str:
    return "data:image/svg+xml," + quote(build_favicon_svg(label, **colors))


YOMU_FAVICON_URL = favicon_data_url()


__all__ = ["build_favicon_svg", "favicon_data_url", "YOMU_FAVICON_URL"]
