# src/design2code/services/design/rasterizer.py

import asyncio
from html import escape
from typing import Optional, Sequence, Tuple

def _dimension(value: Optional[float], default: int) -> float:
    if value is None or value <= 0:
        return float(default)
    return float(value)

def _fmt(value: float) -> str:
    return f"{value:g}"

def build_svg(paths: Sequence[Tuple[str, str]], width: Optional[float], height: Optional[float], default_size: int = 48) -> str:
    """
    Compose one SVG document from (path_data, color) pairs, drawn in order.
    Missing or non-positive dimensions fall back to `default_size`.
    """
    w = _dimension(width, default_size)
    h = _dimension(height, default_size)
    body = "\n".join(
        f'  <path d={_quote(data)} fill={_quote(color)} />' for data, color in paths
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<svg width="{_fmt(w)}" height="{_fmt(h)}" viewBox="0 0 {_fmt(w)} {_fmt(h)}" '
        'xmlns="http://www.w3.org/2000/svg">\n'
        f'{body}\n'
        '</svg>'
    )

def _quote(value: str) -> str:
    return f'"{escape(value, quote=True)}"'

def rasterize_svg(svg: str, width: Optional[float], height: Optional[float], default_size: int = 48) -> bytes:
    """Render an SVG string to PNG bytes at its declared pixel size."""
    import cairosvg

    w = max(1, round(_dimension(width, default_size)))
    h = max(1, round(_dimension(height, default_size)))
    return cairosvg.svg2png(bytestring=svg.encode("utf-8"), output_width=w, output_height=h)

async def render_png(paths: Sequence[Tuple[str, str]], width: Optional[float], height: Optional[float], default_size: int = 48) -> bytes:
    # cairo 渲染是同步 CPU 操作, 放入线程池
    svg = build_svg(paths, width, height, default_size)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, rasterize_svg, svg, width, height, default_size)
