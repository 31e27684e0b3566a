"""
Arcade front-end for the invaders Simulation.

The window is the glue layer: it samples the keyboard, drives tick() from
on_update and pushes each frame to its render and UI sinks.

Run:
    python -m game.invaders.window --minutes 3 --shoot-key KeyF
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Dict, List, Optional, Set

import arcade

from .config import GameConfig
from .records import ScoreBoard
from .render import BACKGROUND_IMAGE, DrawCommand, UISnapshot, present
from .simulation import GameState, Outcome, Simulation
from .sinks import Cue
from .utils import hex_to_rgb

logger = logging.getLogger(__name__)

DEFAULT_ASSETS = "./assets"

# arcade key symbol -> key identifier used by GameConfig
KEY_NAMES: Dict[int, str] = {
    arcade.key.LEFT: "ArrowLeft",
    arcade.key.RIGHT: "ArrowRight",
    arcade.key.UP: "ArrowUp",
    arcade.key.DOWN: "ArrowDown",
    arcade.key.SPACE: "Space",
    arcade.key.ENTER: "Enter",
    arcade.key.ESCAPE: "Escape",
}
for _letter in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
    KEY_NAMES[getattr(arcade.key, _letter)] = f"Key{_letter}"

OVERLAY_TITLES = {
    GameState.MENU: ("Space Invaders", "Press ENTER to begin your mission!"),
    GameState.PAUSED: ("Game Paused", "Press P to continue"),
}
GAME_OVER_TITLES = {
    Outcome.VICTORY: ("Victory!", "You won!"),
    Outcome.TIME_UP: ("Time's Up!", "Game Over!"),
    Outcome.DEFEATED: ("Game Over!", ""),
}


def _rgba(color: str, alpha: float = 1.0):
    r, g, b = hex_to_rgb(color)
    return r, g, b, int(round(255 * max(0.0, min(1.0, alpha))))


class ArcadeAudio:
    """Audio sink backed by arcade sounds. Missing files mute that cue."""

    FILES = {
        Cue.BACKGROUND_START: "background-sound.wav",
        Cue.ENEMY_HIT: "enemy-hit.mp3",
        Cue.PLAYER_HIT: "player-hit.mp3",
    }

    def __init__(self, audio_dir: str):
        self.sounds: Dict[Cue, arcade.Sound] = {}
        self._music = None
        for cue, name in self.FILES.items():
            path = os.path.join(audio_dir, name)
            try:
                self.sounds[cue] = arcade.load_sound(path)
            except (FileNotFoundError, OSError) as e:
                logger.warning("Sound %s unavailable: %s", path, e)

    def play(self, cue: Cue):
        if cue is Cue.BACKGROUND_STOP:
            if self._music is not None:
                arcade.stop_sound(self._music)
                self._music = None
            return

        sound = self.sounds.get(cue)
        if sound is None:
            return
        if cue is Cue.BACKGROUND_START:
            if self._music is None:
                self._music = sound.play(loop=True)
        else:
            sound.play()


class ArcadeRenderer:
    """Render sink: draws y-down draw commands on an arcade y-up surface"""

    def __init__(self, height: int, background_path: Optional[str] = None):
        self.height = height
        self.background = None
        if background_path:
            try:
                self.background = arcade.load_texture(background_path)
            except (FileNotFoundError, OSError) as e:
                logger.warning("Background %s unavailable, using solid fill: %s", background_path, e)

    def draw(self, commands: List[DrawCommand]):
        h = self.height
        for cmd in commands:
            if cmd.kind == "image":
                if cmd.image == BACKGROUND_IMAGE and self.background is not None:
                    arcade.draw_texture_rect(
                        self.background, arcade.LBWH(cmd.x, h - cmd.y - cmd.height, cmd.width, cmd.height)
                    )
                else:
                    arcade.draw_lrbt_rectangle_filled(
                        cmd.x, cmd.x + cmd.width, h - cmd.y - cmd.height, h - cmd.y, _rgba(cmd.color)
                    )
            elif cmd.kind == "rect":
                if cmd.width <= 0 or cmd.height <= 0:
                    continue
                arcade.draw_lrbt_rectangle_filled(
                    cmd.x, cmd.x + cmd.width, h - cmd.y - cmd.height, h - cmd.y, _rgba(cmd.color, cmd.alpha)
                )
            elif cmd.kind == "triangle":
                (x1, y1), (x2, y2), (x3, y3) = cmd.points
                arcade.draw_triangle_filled(x1, h - y1, x2, h - y2, x3, h - y3, _rgba(cmd.color, cmd.alpha))
            elif cmd.kind == "text":
                arcade.draw_text(
                    cmd.text, cmd.x, h - cmd.y, _rgba(cmd.color, cmd.alpha), cmd.font_size,
                    anchor_x="center", anchor_y="center",
                )


class StatusBar:
    """UI sink: score/lives/level/time line along the bottom edge"""

    def __init__(self):
        self.snapshot: Optional[UISnapshot] = None

    def update(self, snapshot: UISnapshot):
        self.snapshot = snapshot

    def draw(self):
        s = self.snapshot
        if s is None:
            return
        txt = f"Score: {s.score}  Lives: {s.lives}  Level: {s.level}  Time: "
        label = arcade.Text(txt, 12, 14, (220, 220, 220), 14)
        label.draw()
        arcade.Text(
            s.time_text, 12 + label.content_width, 14,
            (255, 0, 0) if s.time_alert else (220, 220, 220), 14,
            bold=s.time_alert,
        ).draw()


def handle_key(sim: Simulation, config: GameConfig, name: str) -> Optional[str]:
    """Apply one key-down to the simulation and return the command it triggered.

    Shooting is edge-triggered: it only happens here, on key-down, never
    from the held-key set that drives movement.
    """
    state = sim.state
    if name == config.shoot_key:
        if state is GameState.PLAYING and sim.shoot():
            return "shoot"
        return None
    if name == "Enter" and state in (GameState.MENU, GameState.GAME_OVER):
        sim.start(config)
        return "start"
    if name == "KeyP":
        return "pause" if sim.toggle_pause() else None
    if name == "Escape":
        if state in (GameState.PLAYING, GameState.PAUSED):
            sim.stop()
            return "stop"
        return "quit"
    return None


class InvadersWindow(arcade.Window):
    """Arcade window for playing (or watching) the invaders Simulation"""

    def __init__(
        self,
        sim: Simulation,
        config: Optional[GameConfig] = None,
        assets_dir: str = DEFAULT_ASSETS,
        scoreboard: Optional[ScoreBoard] = None,
        interactive: bool = True,
    ):
        super().__init__(sim.width, sim.height, "Space Invaders - Arcade")
        self.sim = sim
        self.game_config = config or sim.config
        self.scoreboard = scoreboard
        self.interactive = interactive
        self.held_keys: Set[str] = set()

        self.renderer = ArcadeRenderer(sim.height, os.path.join(assets_dir, "image", "cover.jpg"))
        self.status = StatusBar()

    # ----------------------------
    # Input
    # ----------------------------

    def on_key_press(self, symbol: int, modifiers: int):
        name = KEY_NAMES.get(symbol)
        if name is None or not self.interactive:
            return
        self.held_keys.add(name)

        if handle_key(self.sim, self.game_config, name) == "quit":
            self.close()

    def on_key_release(self, symbol: int, modifiers: int):
        self.held_keys.discard(KEY_NAMES.get(symbol, ""))

    def on_update(self, delta_time: float):
        if self.interactive:
            self.sim.tick(delta_time * 1000.0, self.held_keys)

    # ----------------------------
    # Drawing
    # ----------------------------

    def on_draw(self):
        self.clear()
        present(self.sim, render_sink=self.renderer, ui_sink=self.status)
        self.status.draw()
        self._draw_overlay()

    def _draw_overlay(self):
        state = self.sim.state
        if state is GameState.PLAYING:
            return
        if state is GameState.GAME_OVER:
            title, message = GAME_OVER_TITLES[self.sim.session.outcome]
            message = f"{message} Final Score: {self.sim.session.score}  (ENTER to restart)".strip()
        else:
            title, message = OVERLAY_TITLES[state]

        arcade.draw_lrbt_rectangle_filled(0, self.width, 0, self.height, (0, 0, 0, 170))
        cx, cy = self.width / 2, self.height / 2
        arcade.draw_text(title, cx, cy + 60, (255, 255, 255), 32, anchor_x="center", anchor_y="center")
        arcade.draw_text(message, cx, cy + 20, (220, 220, 220), 16, anchor_x="center", anchor_y="center")

        if state is GameState.MENU:
            arcade.draw_text(
                f"Move: arrows/WASD   Shoot: {self.game_config.shoot_key_label}   "
                f"Time limit: {self.game_config.game_time_minutes:g} minutes",
                cx, cy - 20, (180, 180, 180), 12, anchor_x="center", anchor_y="center",
            )
        elif state is GameState.GAME_OVER and self.scoreboard is not None:
            arcade.draw_text("Your Records", cx, cy - 20, (255, 255, 255), 16, anchor_x="center")
            for i, rec in enumerate(self.scoreboard.best(5)):
                arcade.draw_text(
                    f"{rec['finished_at']}   {rec['score']}", cx, cy - 45 - i * 20,
                    (200, 200, 200), 12, anchor_x="center",
                )


def main():
    parser = argparse.ArgumentParser(description="Play Space Invaders")
    parser.add_argument(
        "--minutes",
        type=float,
        default=5,
        help="Game time limit in minutes (default: 5)",
    )
    parser.add_argument(
        "--shoot-key",
        type=str,
        default="Space",
        help="Key identifier used to shoot, e.g. Space or KeyF (default: Space)",
    )
    parser.add_argument(
        "--assets",
        type=str,
        default=DEFAULT_ASSETS,
        help=f"Directory holding audio/ and image/ assets (default: {DEFAULT_ASSETS})",
    )
    parser.add_argument(
        "--records",
        type=str,
        default="./records/scores.json",
        help="Score records file (default: ./records/scores.json)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = GameConfig.from_dict({"gameTime": args.minutes, "shootKey": args.shoot_key})
    scoreboard = ScoreBoard(args.records)
    sim = Simulation(
        audio=ArcadeAudio(os.path.join(args.assets, "audio")),
        score_reporter=scoreboard,
    )
    sim.config = config

    InvadersWindow(sim, config=config, assets_dir=args.assets, scoreboard=scoreboard)
    arcade.run()


if __name__ == "__main__":
    main()
