"""
Presentation layer: turns Simulation state into draw commands and UI text.

Coordinates follow the simulation (origin top-left, y down). Backends that
use a different convention (arcade is y up) flip when drawing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .config import SCORE_TABLE, SPEED_RAMP_INTERVAL_MS, TIME_ALERT_MS
from .sinks import RenderSink, UISink
from .utils import clamp, format_time, hex_to_rgb

BACKGROUND_IMAGE = "background"
BACKGROUND_FALLBACK = "#000000"
STAR_COUNT = 50
STAR_COLOR = "#FFFFFF"
HUD_COLOR = "#FF0000"
HUD_TRACK_COLOR = "#333333"
HUD_BAR_SIZE = (200.0, 10.0)


@dataclass
class DrawCommand:
    """One primitive for a render sink.

    kind is 'image', 'rect', 'triangle' or 'text'. Triangles use points,
    text uses x/y as its center.
    """
    kind: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    color: str = "#FFFFFF"
    alpha: float = 1.0
    points: Optional[Tuple[Tuple[float, float], ...]] = None
    text: str = ""
    font_size: int = 12
    image: Optional[str] = None


@dataclass
class UISnapshot:
    score: int
    lives: int
    level: int
    time_text: str
    time_alert: bool


def build_draw_commands(sim) -> List[DrawCommand]:
    """Ordered draw list: background, stars, entities, HUD"""
    w, h = sim.width, sim.height
    cmds: List[DrawCommand] = [
        DrawCommand("image", 0, 0, w, h, color=BACKGROUND_FALLBACK, image=BACKGROUND_IMAGE),
    ]

    # Stars drift with the score
    for i in range(STAR_COUNT):
        x = (i * 17) % w
        y = (i * 23 + sim.session.score / 10) % h
        cmds.append(DrawCommand("rect", x, y, 1, 1, color=STAR_COLOR))

    p = sim.player
    if p is not None:
        cmds.append(DrawCommand(
            "triangle", p.x, p.y, p.width, p.height, color=p.color,
            points=((p.x + p.width / 2, p.y), (p.x, p.y + p.height), (p.x + p.width, p.y + p.height)),
        ))
        cmds.append(DrawCommand("rect", p.x + 15, p.y + 5, 10, 10, color="#FFFFFF"))

    for e in sim.formation.enemies:
        cmds.append(DrawCommand("rect", e.x, e.y, e.width, e.height, color=e.color))
        cmds.append(DrawCommand("rect", e.x + 5, e.y + 5, 30, 20, color="#FFFFFF"))
        cmds.append(DrawCommand("rect", e.x + 10, e.y + 10, 20, 10, color=e.color))
        cx, cy = e.center
        cmds.append(DrawCommand("text", cx, cy, text=str(SCORE_TABLE[e.row]), color="#FFFFFF"))

    for b in sim.player_bullets + sim.enemy_bullets:
        cmds.append(DrawCommand("rect", b.x, b.y, b.width, b.height, color=b.color))

    for pt in sim.particles:
        cmds.append(DrawCommand("rect", pt.x, pt.y, pt.size, pt.size, color=pt.color, alpha=pt.alpha))

    cmds.extend(_speed_hud(sim))
    return cmds


def _speed_hud(sim) -> List[DrawCommand]:
    time_left = max(0.0, SPEED_RAMP_INTERVAL_MS - sim.session.speed_timer)
    fraction = time_left / SPEED_RAMP_INTERVAL_MS
    bar_w, bar_h = HUD_BAR_SIZE
    bar_x = (sim.width - bar_w) / 2
    bar_y = 40

    return [
        DrawCommand("text", sim.width / 2, 30, text=f"Speed Increase: {math.ceil(time_left / 1000)}s",
                    color=HUD_COLOR, font_size=20),
        DrawCommand("rect", bar_x, bar_y, bar_w, bar_h, color=HUD_TRACK_COLOR),
        DrawCommand("rect", bar_x, bar_y, bar_w * fraction, bar_h, color=HUD_COLOR),
    ]


def ui_snapshot(sim) -> UISnapshot:
    s = sim.session
    return UISnapshot(
        score=s.score,
        lives=s.lives,
        level=s.level,
        time_text=format_time(s.time_remaining),
        time_alert=s.time_remaining < TIME_ALERT_MS,
    )


def present(sim, render_sink: Optional[RenderSink] = None, ui_sink: Optional[UISink] = None):
    """Push one frame to the attached sinks"""
    if render_sink is not None:
        render_sink.draw(build_draw_commands(sim))
    if ui_sink is not None:
        ui_sink.update(ui_snapshot(sim))


# ----------------------------
# Software rasterizer (rgb_array)
# ----------------------------

def rasterize(commands: List[DrawCommand], width: int, height: int) -> np.ndarray:
    """Paint draw commands into an RGB uint8 frame.

    Images use their fallback color, triangles are filled scanline by
    scanline and text is skipped.
    """
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    for cmd in commands:
        if cmd.kind in ("image", "rect"):
            _fill_rect(frame, cmd.x, cmd.y, cmd.width, cmd.height, hex_to_rgb(cmd.color), cmd.alpha)
        elif cmd.kind == "triangle" and cmd.points:
            _fill_triangle(frame, cmd.points, hex_to_rgb(cmd.color), cmd.alpha)
    return frame


def _blend(region: np.ndarray, rgb, alpha: float):
    alpha = clamp(alpha, 0.0, 1.0)
    color = np.array(rgb, dtype=np.float32)
    region[...] = (region * (1.0 - alpha) + color * alpha).astype(np.uint8)


def _fill_rect(frame: np.ndarray, x, y, w, h, rgb, alpha: float):
    height, width = frame.shape[:2]
    x0 = int(clamp(math.floor(x), 0, width))
    y0 = int(clamp(math.floor(y), 0, height))
    x1 = int(clamp(math.ceil(x + w), 0, width))
    y1 = int(clamp(math.ceil(y + h), 0, height))
    if x1 <= x0 or y1 <= y0:
        return
    _blend(frame[y0:y1, x0:x1], rgb, alpha)


def _fill_triangle(frame: np.ndarray, points, rgb, alpha: float):
    height, width = frame.shape[:2]
    ys = [p[1] for p in points]
    y_start = int(clamp(math.floor(min(ys)), 0, height))
    y_end = int(clamp(math.ceil(max(ys)), 0, height))
    edges = [(points[i], points[(i + 1) % 3]) for i in range(3)]

    for row in range(y_start, y_end):
        yc = row + 0.5
        xs = []
        for (ax, ay), (bx, by) in edges:
            if (ay <= yc < by) or (by <= yc < ay):
                xs.append(ax + (yc - ay) * (bx - ax) / (by - ay))
        if len(xs) < 2:
            continue
        x0 = int(clamp(round(min(xs)), 0, width))
        x1 = int(clamp(round(max(xs)), 0, width))
        if x1 > x0:
            _blend(frame[row:row + 1, x0:x1], rgb, alpha)
