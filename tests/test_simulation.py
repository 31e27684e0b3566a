import logging
import random

import pytest

from game.invaders.config import GameConfig, SCORE_TABLE
from game.invaders.entities import Bullet, Enemy
from game.invaders.simulation import Formation, GameState, Outcome, Simulation
from game.invaders.sinks import Cue


def _snapshot(sim):
    return (
        sim.state,
        (sim.player.x, sim.player.y),
        [(e.x, e.y) for e in sim.formation.enemies],
        [(b.x, b.y) for b in sim.player_bullets + sim.enemy_bullets],
        len(sim.particles),
        sim.session.score,
        sim.session.lives,
        sim.session.speed_timer,
        sim.formation.direction,
        sim.formation.speed,
    )


def _tick_without_enemy_fire(sim, n=1, delta=16.0, keys=()):
    for _ in range(n):
        sim.tick(delta, keys)
        sim.enemy_bullets.clear()


# ----------------------------
# Lifecycle
# ----------------------------

def test_new_simulation_starts_in_menu(sim):
    assert sim.state is GameState.MENU
    assert sim.player is None


def test_start_resets_session_and_world(started, audio):
    sim = started
    assert sim.state is GameState.PLAYING
    assert sim.session.score == 0
    assert sim.session.lives == 3
    assert sim.session.level == 1
    assert sim.session.time_limit == 5 * 60 * 1000
    assert sim.formation.speed == 1
    assert sim.formation.direction == 1
    assert len(sim.formation.enemies) == 20
    assert sim.player_bullets == [] and sim.enemy_bullets == [] and sim.particles == []
    assert audio.cues == [Cue.BACKGROUND_START]


def test_grid_layout_and_rows():
    formation = Formation.grid("#FF4444")
    assert len(formation.enemies) == 20
    first, last = formation.enemies[0], formation.enemies[-1]
    assert (first.x, first.y, first.row) == (50, 50, 0)
    assert (last.x, last.y, last.row) == (50 + 4 * 60, 50 + 3 * 50, 3)
    assert sorted({e.row for e in formation.enemies}) == [0, 1, 2, 3]


def test_rows_are_tinted_darker_downwards():
    formation = Formation.grid("#FF4444")
    colors = {e.row: e.color for e in formation.enemies}
    assert colors == {0: "#FF4444", 1: "#D93A3A", 2: "#B23030", 3: "#8C2525"}
    for row in range(4):
        assert len({e.color for e in formation.enemies if e.row == row}) == 1


def test_player_spawns_in_bottom_band(started):
    p = started.player
    assert 0 <= p.x <= started.width - p.width
    assert started.height * 0.6 <= p.y <= started.height - p.height


def test_start_uses_config(sim):
    config = GameConfig(game_time_minutes=2, enemy_color="#00FF00", player_color="#0000FF")
    sim.start(config)
    assert sim.session.time_limit == 2 * 60 * 1000
    assert all(e.color == "#00FF00" for e in sim.formation.enemies if e.row == 0)
    assert sim.player.color == "#0000FF"


def test_restart_after_game_over_uses_same_reset(started, clock):
    sim = started
    clock.now += sim.session.time_limit + 1
    sim.tick(16)
    assert sim.state is GameState.GAME_OVER

    sim.shoot()
    sim.restart()
    assert sim.state is GameState.PLAYING
    assert sim.session.outcome is None
    assert sim.session.score == 0 and sim.session.lives == 3
    assert len(sim.formation.enemies) == 20
    assert sim.session.start_time == clock.now


def test_pause_resume_and_stop(started, audio):
    sim = started
    assert sim.pause()
    assert sim.state is GameState.PAUSED
    assert not sim.pause()
    assert sim.resume()
    assert sim.state is GameState.PLAYING
    assert sim.toggle_pause()
    assert sim.state is GameState.PAUSED
    sim.stop()
    assert sim.state is GameState.MENU
    assert audio.cues == [
        Cue.BACKGROUND_START, Cue.BACKGROUND_STOP, Cue.BACKGROUND_START,
        Cue.BACKGROUND_STOP, Cue.BACKGROUND_STOP,
    ]


@pytest.mark.parametrize("state_change", ["pause", "stop"])
def test_tick_is_noop_unless_playing(started, clock, state_change):
    sim = started
    sim.shoot()
    _tick_without_enemy_fire(sim, 3)
    getattr(sim, state_change)()
    before = _snapshot(sim)

    clock.now += sim.session.time_limit * 2
    for _ in range(20):
        sim.tick(5000, {"ArrowLeft", "ArrowUp"})
    assert sim.shoot() is False
    assert _snapshot(sim) == before


# ----------------------------
# Player
# ----------------------------

def test_player_movement_is_clamped(started):
    sim = started
    _tick_without_enemy_fire(sim, 300, keys={"ArrowLeft", "KeyW"})
    assert sim.player.x == 0
    assert sim.player.y == sim.height * 0.6

    _tick_without_enemy_fire(sim, 300, keys={"KeyD", "ArrowDown"})
    assert sim.player.x == sim.width - sim.player.width
    assert sim.player.y == sim.height - sim.player.height


def test_player_moves_by_speed(started):
    sim = started
    sim.player.x = 400
    _tick_without_enemy_fire(sim, 1, keys={"ArrowRight"})
    assert sim.player.x == 405


# ----------------------------
# Shooting
# ----------------------------

def test_shoot_spawns_bullet_at_player_top_center(started):
    sim = started
    assert sim.shoot()
    b = sim.player_bullets[0]
    assert b.x == sim.player.x + sim.player.width / 2 - 2
    assert b.y == sim.player.y
    assert b.dy == -1 and b.speed == 8


def test_fourth_shot_is_ignored_while_three_bullets_alive(started):
    sim = started
    assert [sim.shoot() for _ in range(4)] == [True, True, True, False]
    assert len(sim.player_bullets) == 3


def test_shoot_is_ignored_outside_play(sim):
    assert sim.shoot() is False
    sim.start()
    sim.pause()
    assert sim.shoot() is False
    assert sim.player_bullets == []


def test_player_bullets_leave_the_top(started):
    sim = started
    sim.formation.enemies.clear()
    sim.player_bullets.append(Bullet(x=10, y=5, dy=-1, speed=8))
    sim.formation.enemies.append(Enemy(x=700, y=300, row=0))
    _tick_without_enemy_fire(sim)
    assert sim.player_bullets == []


# ----------------------------
# Formation
# ----------------------------

def test_formation_moves_sideways(started):
    sim = started
    xs = [e.x for e in sim.formation.enemies]
    _tick_without_enemy_fire(sim)
    assert [e.x for e in sim.formation.enemies] == [x + 1 for x in xs]


def test_formation_flips_and_drops_at_left_edge(started):
    sim = started
    sim.formation.direction = -1
    sim.formation.enemies[0].x = 0
    ys = [e.y for e in sim.formation.enemies]

    _tick_without_enemy_fire(sim)

    assert sim.formation.direction == 1
    assert [e.y for e in sim.formation.enemies] == [y + 20 for y in ys]


def test_formation_drops_once_when_many_enemies_touch(started):
    sim = started
    for e in sim.formation.enemies:
        e.x = sim.width - e.width
    ys = [e.y for e in sim.formation.enemies]

    _tick_without_enemy_fire(sim)

    assert sim.formation.direction == -1
    assert [e.y for e in sim.formation.enemies] == [y + 20 for y in ys]


# ----------------------------
# Collisions and scoring
# ----------------------------

def _aim_at(sim, enemy):
    sim.player.x = enemy.x - 2


def test_scenario_clear_the_board(started, reporter):
    sim = started
    sim.formation.speed = 0

    while sim.formation.enemies:
        # Lowest enemy of the first remaining column
        target = max(
            (e for e in sim.formation.enemies if e.col == sim.formation.enemies[0].col),
            key=lambda e: e.row,
        )
        _aim_at(sim, target)
        assert sim.shoot()
        score_before = sim.session.score
        while sim.player_bullets:
            _tick_without_enemy_fire(sim, delta=0)
        assert sim.session.score - score_before == SCORE_TABLE[target.row]
        assert target not in sim.formation.enemies

    assert sim.state is GameState.GAME_OVER
    assert sim.session.outcome is Outcome.VICTORY
    assert sim.session.victory
    assert sim.session.score == 250
    assert reporter.scores == [250]


def test_kill_spawns_explosion_and_cue(started, audio):
    sim = started
    sim.formation.speed = 0
    target = sim.formation.enemies[-1]
    sim.player_bullets.append(Bullet(x=target.x + 18, y=target.y + target.height + 4, dy=-1, speed=8))

    sim.tick(16)

    assert target not in sim.formation.enemies
    assert sim.player_bullets == []
    assert len(sim.particles) == 10
    assert Cue.ENEMY_HIT in audio.cues
    assert sim.session.score == SCORE_TABLE[target.row]


def test_one_enemy_per_bullet(started):
    sim = started
    sim.formation.speed = 0
    sim.formation.enemies = [Enemy(x=100, y=100, row=0), Enemy(x=100, y=100, row=3)]
    sim.player_bullets.append(Bullet(x=110, y=120, dy=-1, speed=8))

    sim.tick(16)

    # Checked in reverse order: the later enemy is hit
    assert len(sim.formation.enemies) == 1
    assert sim.formation.enemies[0].row == 0
    assert sim.session.score == 20


def test_two_bullets_kill_two_enemies_in_one_tick(started):
    sim = started
    sim.formation.speed = 0
    a, b = sim.formation.enemies[15], sim.formation.enemies[16]
    for e in (a, b):
        sim.player_bullets.append(Bullet(x=e.x + 18, y=e.y + 34, dy=-1, speed=8))

    sim.tick(16)

    assert a not in sim.formation.enemies and b not in sim.formation.enemies
    assert sim.session.score == 40
    assert sim.pop_events()["kills"] == 2


def test_touching_edges_do_not_collide(started):
    sim = started
    sim.formation.speed = 0
    e = sim.formation.enemies[-1]
    # After moving 8 up the bullet top sits exactly on the enemy bottom
    sim.player_bullets.append(Bullet(x=e.x + 18, y=e.y + e.height + 8, dy=-1, speed=8))

    sim.tick(16)

    assert e in sim.formation.enemies
    assert len(sim.player_bullets) == 1


def test_enemy_bullet_hit_costs_a_life_and_respawns(started, audio):
    sim = started
    p = sim.player
    sim.enemy_bullets = [Bullet(x=p.x + 10, y=p.y - 4, dy=1, speed=4)]

    sim.tick(16)

    assert sim.session.lives == 2
    assert sim.state is GameState.PLAYING
    assert sim.player is not p
    assert len(sim.particles) == 10
    assert Cue.PLAYER_HIT in audio.cues


def test_last_life_lost_ends_game_and_reports_once(started, reporter, audio):
    sim = started
    sim.session.score = 35
    sim.session.lives = 1
    p = sim.player
    sim.enemy_bullets = [
        Bullet(x=p.x + 10, y=p.y - 4, dy=1, speed=4),
        Bullet(x=p.x + 20, y=p.y - 4, dy=1, speed=4),
    ]

    sim.tick(16)

    assert sim.session.lives == 0
    assert sim.state is GameState.GAME_OVER
    assert sim.session.outcome is Outcome.DEFEATED
    assert not sim.session.victory
    assert reporter.scores == [35]
    assert audio.cues[-1] is Cue.BACKGROUND_STOP

    sim.tick(16)
    assert reporter.scores == [35]
    assert sim.session.lives == 0


def test_every_enemy_bullet_is_checked(started):
    sim = started
    sim.enemy_bullets = [
        Bullet(x=10, y=sim.height - 1, dy=1, speed=4),
        Bullet(x=30, y=sim.height - 2, dy=1, speed=4),
        Bullet(x=50, y=sim.height, dy=1, speed=4),
    ]
    sim.formation.enemies = [Enemy(x=400, y=50, row=0)]
    sim._last_enemy_shot = sim.clock()

    sim.tick(16)

    assert sim.enemy_bullets == []


def test_particles_expire(started):
    sim = started
    sim._explode(100, 100)
    _tick_without_enemy_fire(sim, 59)
    assert len(sim.particles) == 10
    _tick_without_enemy_fire(sim, 1)
    assert sim.particles == []


# ----------------------------
# Enemy fire
# ----------------------------

def test_enemy_fire_is_rate_limited(started, clock):
    sim = started
    sim.tick(16)
    assert len(sim.enemy_bullets) == 1
    shooter_bullet = sim.enemy_bullets[0]
    assert shooter_bullet.dy == 1 and shooter_bullet.speed == 4

    clock.now += 999
    sim.tick(16)
    assert len(sim.enemy_bullets) == 1

    clock.now += 1
    sim.tick(16)
    assert len(sim.enemy_bullets) == 2


def test_enemy_fire_spawns_at_bottom_center(started):
    sim = started
    sim.formation.speed = 0
    sim.formation.enemies = [Enemy(x=200, y=100, row=1)]
    sim.tick(16)
    b = sim.enemy_bullets[0]
    assert (b.x, b.y) == (200 + 18, 130)


def test_enemy_fire_skips_blocked_lanes(started, clock):
    sim = started
    sim.formation.speed = 0
    sim.formation.enemies = [Enemy(x=100, y=100, row=0)]
    sim.enemy_bullets = [Bullet(x=110, y=150, dy=1, speed=4)]

    sim.tick(16)
    assert len(sim.enemy_bullets) == 1

    sim.enemy_bullets = [Bullet(x=125, y=150, dy=1, speed=4)]
    sim.tick(16)
    assert len(sim.enemy_bullets) == 2


# ----------------------------
# Speed ramp and timer
# ----------------------------

def test_speed_ramp_caps_at_four_increases(started):
    sim = started
    _tick_without_enemy_fire(sim, 1, delta=4999)
    assert sim.formation.speed == 1

    _tick_without_enemy_fire(sim, 1, delta=1)
    assert sim.formation.speed == 1.5
    assert sim.session.speed_timer == 0

    _tick_without_enemy_fire(sim, 10, delta=5000)
    assert sim.formation.speed == 3.0
    assert sim.session.speed_increases == 4


def test_speed_ramp_accumulates_small_deltas(started):
    sim = started
    _tick_without_enemy_fire(sim, 312, delta=16)
    assert sim.formation.speed == 1
    _tick_without_enemy_fire(sim, 1, delta=16)
    assert sim.formation.speed == 1.5


def test_time_up_ends_game_without_victory(started, clock, reporter):
    sim = started
    clock.now += 5 * 60 * 1000

    sim.tick(16)

    assert sim.state is GameState.GAME_OVER
    assert sim.session.outcome is Outcome.TIME_UP
    assert not sim.session.victory
    assert len(sim.formation.enemies) == 20
    assert reporter.scores == [0]


def test_zero_minute_budget_ends_on_first_tick(sim):
    sim.start(GameConfig(game_time_minutes=0))
    sim.tick(16)
    assert sim.session.outcome is Outcome.TIME_UP


def test_remaining_time_tracks_clock(started, clock):
    clock.now += 90_000
    started.tick(16)
    assert started.session.time_remaining == 5 * 60 * 1000 - 90_000


# ----------------------------
# Side channels
# ----------------------------

class ExplodingAudio:
    def play(self, cue):
        raise RuntimeError("no audio device")


def test_audio_failures_are_logged_not_raised(clock, caplog):
    sim = Simulation(audio=ExplodingAudio(), clock=clock, rng=random.Random(0))
    with caplog.at_level(logging.WARNING, logger="game.invaders.simulation"):
        sim.start()
        sim.pause()
    assert sim.state is GameState.PAUSED
    assert "Audio cue" in caplog.text


class ExplodingReporter:
    def report_score(self, score):
        raise OSError("disk full")


def test_score_report_failure_does_not_break_game_over(clock, caplog):
    sim = Simulation(score_reporter=ExplodingReporter(), clock=clock, rng=random.Random(0))
    sim.start()
    clock.now += sim.session.time_limit
    with caplog.at_level(logging.WARNING):
        sim.tick(16)
    assert sim.state is GameState.GAME_OVER
    assert "Score report failed" in caplog.text


# ----------------------------
# Long-run invariants
# ----------------------------

def test_random_play_invariants(clock):
    rng = random.Random(7)
    sim = Simulation(clock=clock, rng=random.Random(99))
    sim.start()
    moves = ["ArrowLeft", "ArrowRight", "ArrowUp", "ArrowDown"]

    last_score, last_lives = 0, sim.session.lives
    for step in range(4000):
        if not sim.playing:
            break
        if step % 7 == 0:
            sim.shoot()
            assert len(sim.player_bullets) <= 3
        clock.now += 16
        sim.tick(16, {rng.choice(moves)})

        events = sim.pop_events()
        gained = sim.session.score - last_score
        assert gained == events["points"]
        assert 0 <= gained <= 3 * max(SCORE_TABLE)
        assert gained % min(SCORE_TABLE) == 0
        assert sim.session.lives <= last_lives
        assert sim.session.lives >= 0
        if sim.session.lives == 0:
            assert sim.state is GameState.GAME_OVER
        last_score, last_lives = sim.session.score, sim.session.lives

        p = sim.player
        assert 0 <= p.x <= sim.width - p.width
        assert sim.height * 0.6 <= p.y <= sim.height - p.height
        assert sim.formation.speed <= 3.0
