"""Tests for the GameEngine: movement, collisions, round flow and input."""

import random

import pytest

from stellar.context import GameOverReason, GameState, GameStats
from stellar.engine import GameEngine, InputAction

from conftest import RecordingReporter


def kinds(notices):
    return [n.kind for n in notices]


class TestInitializeRound:
    def test_start_state(self, engine):
        """A new round starts playing with the player on the start cell."""
        snap = engine.get_snapshot()
        assert snap.game_state is GameState.PLAYING
        assert snap.player == (0, 0)
        assert len(snap.enemies) == 2
        assert len(snap.keys) == 3
        assert snap.keys_remaining == 3
        assert not snap.goal_reachable
        assert snap.tick_ms == 1000
        assert snap.total_rounds == 5

    def test_reinitialize_stays_valid(self, engine):
        """Re-initialising the same round always yields a legal board."""
        for _ in range(20):
            rs = engine.initialize_round(3, 4)
            enemy_cells = {e.pos for e in rs.enemies}
            assert rs.player == (0, 0)
            assert (0, 0) not in enemy_cells | set(rs.keys)
            assert (9, 9) not in enemy_cells | set(rs.keys)
            assert not enemy_cells & set(rs.keys)
            assert len(set(rs.keys)) == len(rs.keys)

    def test_sets_level_and_round(self, engine):
        """Explicit level and round land in the stats and drive the tick interval."""
        engine.initialize_round(2, 3)
        assert engine.stats.level == 2
        assert engine.stats.round == 3
        assert engine.get_snapshot().tick_ms == 940

    def test_bad_level_leaves_state_alone(self, engine):
        """A rejected level or round does not touch the running game."""
        with pytest.raises(ValueError):
            engine.initialize_round(0, 1)
        with pytest.raises(ValueError):
            engine.initialize_round(None, 0)
        assert (engine.stats.level, engine.stats.round) == (1, 1)
        assert engine.state is GameState.PLAYING
        engine.handle_input("down")
        assert engine.get_snapshot().player == (0, 1)

    def test_start_game_at_saved_level(self, settings, reporter):
        """A new game can resume at a later level and is reported."""
        eng = GameEngine(settings, GameStats(level=3), reporter=reporter, rng=random.Random(9))
        eng.start_game()
        assert (eng.stats.level, eng.stats.round) == (3, 1)
        assert eng.get_snapshot().total_rounds == 15
        assert reporter.game_calls == [3]

    def test_round_started_notice(self, engine):
        """Each round announces itself."""
        engine.initialize_round(1, 2)
        notices = engine.drain_notices()
        assert kinds(notices) == ["round_started"]
        assert notices[0].data["round"] == 2


class TestEnemyMovement:
    def test_diagonal_step(self, engine, layout):
        """Enemies move one cell along their direction per tick."""
        layout(engine, enemies=[((4, 4), (1, -1))], keys=[(2, 2)])
        engine.on_tick()
        enemy = engine.get_snapshot().enemies[0]
        assert enemy.pos == (5, 3)
        assert enemy.direction == (1, -1)

    def test_bounce_off_wall(self, engine, layout):
        """Leaving the grid flips that axis and steps back inside."""
        layout(engine, enemies=[((9, 5), (1, 1))], keys=[(2, 2)])
        engine.on_tick()
        enemy = engine.get_snapshot().enemies[0]
        assert enemy.pos == (8, 6)
        assert enemy.direction == (-1, 1)

    def test_bounce_in_corner(self, engine, layout):
        """A corner flips both axes."""
        layout(engine, player=(5, 0), enemies=[((0, 9), (-1, 1))], keys=[(2, 2)])
        engine.on_tick()
        enemy = engine.get_snapshot().enemies[0]
        assert enemy.pos == (1, 8)
        assert enemy.direction == (1, -1)

    def test_enemies_stay_on_grid(self, engine):
        """Many ticks never move an enemy off the grid."""
        for _ in range(200):
            engine.on_tick()
            if engine.state is not GameState.PLAYING:
                engine.restart()
            for e in engine.get_snapshot().enemies:
                assert 0 <= e.pos.x < 10 and 0 <= e.pos.y < 10

    def test_clock_drives_ticks(self, engine, layout):
        """update() steps enemies once per tick interval."""
        layout(engine, enemies=[((4, 4), (1, 1))], keys=[(2, 2)])
        engine.update(0.5)
        assert engine.get_snapshot().enemies[0].pos == (4, 4)
        engine.update(0.5)
        assert engine.get_snapshot().enemies[0].pos == (5, 5)
        engine.update(2.0)
        assert engine.get_snapshot().enemies[0].pos == (7, 7)

    def test_enemy_walks_into_player(self, engine, layout):
        """An enemy stepping onto the player ends the game."""
        layout(engine, player=(5, 5), enemies=[((4, 4), (1, 1))], keys=[(2, 2)])
        engine.on_tick()
        snap = engine.get_snapshot()
        assert snap.game_state is GameState.GAME_OVER
        assert snap.game_over_reason is GameOverReason.ENEMY

    def test_no_ticks_while_paused(self, engine, layout):
        """Ticks and clock updates do nothing while paused."""
        layout(engine, enemies=[((4, 4), (1, 1))], keys=[(2, 2)])
        engine.toggle_pause()
        engine.on_tick()
        engine.update(5.0)
        assert engine.get_snapshot().enemies[0].pos == (4, 4)
        engine.toggle_pause()
        engine.on_tick()
        assert engine.get_snapshot().enemies[0].pos == (5, 5)


class TestCollisions:
    def test_caught_moving_onto_enemy(self, engine, layout):
        """Moving right from (8, 9) onto an enemy at the goal is game over."""
        layout(engine, player=(8, 9), enemies=[((9, 9), (1, 1))], keys=[])
        engine.handle_input(InputAction.RIGHT)
        snap = engine.get_snapshot()
        assert snap.game_state is GameState.GAME_OVER
        assert snap.game_over_reason is GameOverReason.ENEMY
        assert engine.stats.rounds_completed == 0

    def test_caught_regardless_of_keys(self, engine, layout):
        """Enemy contact wins over an outstanding key."""
        layout(engine, player=(8, 9), enemies=[((9, 9), (1, 1))], keys=[(3, 3)])
        engine.handle_input("right")
        assert engine.state is GameState.GAME_OVER

    def test_key_pickup(self, engine, layout):
        """Picking up a key removes it and pays 100 points per level."""
        engine.stats.level = 2
        layout(engine, enemies=[((5, 5), (1, 1))], keys=[(1, 0), (4, 4)])
        engine.handle_input("right")
        snap = engine.get_snapshot()
        s = snap.stats
        assert snap.keys == [(4, 4)]
        assert snap.keys_remaining == 1
        assert (s.score, s.session_score) == (200, 200)
        assert (s.keys, s.keys_collected, s.total_keys_collected) == (1, 1, 1)

    def test_keys_remaining_decrements_by_one(self, engine, layout):
        """keys_remaining drops by exactly one per key and never goes negative."""
        layout(engine, enemies=[((5, 5), (1, 1))], keys=[(1, 0), (2, 0), (3, 0)])
        seen = [engine.ctx.keys_remaining]
        for _ in range(5):
            engine.handle_input("right")
            seen.append(engine.ctx.keys_remaining)
        assert seen == [3, 2, 1, 0, 0, 0]
        assert engine.ctx.goal_reachable
        assert "all_keys_collected" in kinds(engine.drain_notices())

    def test_full_round(self, engine, layout):
        """Three keys then the goal: 300 for keys plus a 500 bonus."""
        layout(engine, enemies=[((0, 5), (1, 1)), ((5, 5), (1, 1))], keys=[(1, 0), (2, 0), (3, 0)])
        for _ in range(9):
            engine.handle_input("right")
        assert engine.stats.score == 300
        for _ in range(9):
            engine.handle_input("down")
        s = engine.stats
        assert engine.state is GameState.ROUND_COMPLETE
        assert s.score == 800
        assert s.session_score == 800
        assert s.rounds_completed == 1
        assert s.keys == 3

    def test_locked_goal_pushes_back(self, engine, layout):
        """Reaching the goal with a key left sends the player back to (8, 9)."""
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[(5, 5)])
        engine.handle_input("right")
        snap = engine.get_snapshot()
        assert snap.player == (8, 9)
        assert snap.game_state is GameState.PLAYING
        notice = [n for n in engine.drain_notices() if n.kind == "collect_keys_first"][0]
        assert notice.data["remaining"] == 1

    def test_locked_goal_from_above(self, engine, layout):
        """Entering from above pushes back up."""
        layout(engine, player=(9, 8), enemies=[((0, 5), (1, 1))], keys=[(5, 5)])
        engine.handle_input("down")
        assert engine.get_snapshot().player == (9, 8)

    def test_push_back_is_reevaluated(self, engine, layout):
        """Being pushed back onto an enemy still counts as caught."""
        layout(engine, player=(9, 9), enemies=[((8, 9), (1, 1))], keys=[(5, 5)])
        engine.ctx.dirty = True
        engine.dispatch(engine.collisions.evaluate)
        snap = engine.get_snapshot()
        assert snap.player == (8, 9)
        assert snap.game_state is GameState.GAME_OVER
        assert snap.game_over_reason is GameOverReason.ENEMY

    def test_movement_is_clamped(self, engine, layout):
        """Walking into a wall leaves the player in place."""
        layout(engine, enemies=[((5, 5), (1, 1))], keys=[(3, 3)])
        engine.handle_input("up")
        engine.handle_input("left")
        assert engine.get_snapshot().player == (0, 0)


class TestRoundFlow:
    def test_round_advances_after_delay(self, engine, layout):
        """Two seconds after a round completes the next one starts."""
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        engine.stats.keys_collected = 3
        engine.handle_input("right")
        assert engine.state is GameState.ROUND_COMPLETE
        engine.update(1.0)
        assert engine.state is GameState.ROUND_COMPLETE
        engine.update(1.0)
        s = engine.stats
        assert engine.state is GameState.PLAYING
        assert (s.level, s.round, s.keys_collected) == (1, 2, 0)
        assert engine.get_snapshot().player == (0, 0)

    def test_no_input_between_rounds(self, engine, layout):
        """Moves are ignored while a round is wrapping up."""
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        engine.handle_input("right")
        engine.handle_input("left")
        assert engine.get_snapshot().player == (9, 9)

    def test_level_complete(self, engine, layout, reporter):
        """Finishing the last round completes the level and reports it."""
        engine.initialize_round(1, 5)
        engine.stats.score = 1200
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        engine.handle_input("right")
        assert engine.state is GameState.LEVEL_COMPLETE
        assert reporter.level_calls == [(2, 1700)]
        assert engine.stats.score == 1700

        engine.update(2.0)
        assert engine.state is GameState.LEVEL_COMPLETE
        engine.update(2.0)
        s = engine.stats
        assert engine.state is GameState.PLAYING
        assert (s.level, s.round, s.keys_collected) == (2, 1, 0)
        assert engine.get_snapshot().total_rounds == 10

    def test_every_round_is_reported(self, engine, layout, reporter):
        """Finished rounds reach the reporter as they happen."""
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        engine.handle_input("right")
        engine.advance_transition()
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        engine.handle_input("right")
        assert reporter.round_calls == [(1, 1), (1, 2)]
        assert engine.stats.rounds_completed == 2

    def test_advance_transition_skips_delay(self, engine, layout):
        """advance_transition starts the next round right away."""
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        engine.handle_input("right")
        engine.advance_transition()
        assert engine.state is GameState.PLAYING
        assert engine.stats.round == 2

    def test_advance_transition_noop_when_playing(self, engine):
        """Nothing to skip while playing."""
        engine.advance_transition()
        assert engine.stats.round == 1

    def test_reporter_failure_is_contained(self, settings, layout):
        """A crashing reporter does not stop the level from advancing."""
        reporter = RecordingReporter(fail=True)
        eng = GameEngine(settings, GameStats(), reporter=reporter, rng=random.Random(5))
        eng.initialize_round(1, 5)
        layout(eng, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        eng.handle_input("right")
        assert eng.state is GameState.LEVEL_COMPLETE
        eng.update(4.0)
        assert (eng.stats.level, eng.stats.round) == (2, 1)
        assert reporter.level_calls == [(2, 500)]

    def test_no_reporter(self, settings, layout):
        """The engine runs without a reporter."""
        eng = GameEngine(settings, rng=random.Random(5))
        eng.initialize_round(1, 5)
        layout(eng, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        eng.handle_input("right")
        assert eng.state is GameState.LEVEL_COMPLETE


class TestInput:
    def test_pause_toggle(self, engine):
        """Pause stops movement; pausing again resumes."""
        engine.handle_input("pause")
        assert engine.state is GameState.PAUSED
        engine.handle_input("right")
        assert engine.get_snapshot().player == (0, 0)
        engine.handle_input(InputAction.PAUSE)
        assert engine.state is GameState.PLAYING

    def test_pause_ignored_after_game_over(self, engine):
        """Pause cannot revive a finished game."""
        engine.end_game()
        engine.handle_input("pause")
        assert engine.state is GameState.GAME_OVER

    def test_restart_only_after_game_over(self, engine, layout):
        """The restart key does nothing mid-game."""
        engine.stats.score = 400
        engine.handle_input("restart")
        assert engine.stats.score == 400
        engine.end_game()
        engine.handle_input("restart")
        assert engine.state is GameState.PLAYING
        assert engine.stats.score == 0

    def test_unknown_input(self, engine):
        """Unknown inputs are reported and ignored."""
        assert engine.handle_input("jump") is False
        assert engine.state is GameState.PLAYING

    def test_parse_aliases(self):
        """Actions parse from any case."""
        assert InputAction.parse(" Left ") is InputAction.LEFT
        assert InputAction.parse("PAUSE") is InputAction.PAUSE
        assert InputAction.parse("diagonal") is None


class TestGameOverAndRestart:
    def test_end_game(self, engine):
        """Ending the game is a manual game over."""
        engine.end_game()
        snap = engine.get_snapshot()
        assert snap.game_state is GameState.GAME_OVER
        assert snap.game_over_reason is GameOverReason.MANUAL

    def test_end_game_while_paused(self, engine):
        """A paused game can be ended."""
        engine.toggle_pause()
        engine.end_game()
        assert engine.state is GameState.GAME_OVER

    def test_restart_keeps_carried_totals(self, engine):
        """Restart resets progress counters but keeps keys, high score and sync totals."""
        s = engine.stats
        s.level, s.round, s.score, s.keys = 3, 7, 5000, 12
        s.high_score, s.session_score, s.total_keys_collected = 9000, 5000, 12
        s.keys_collected, s.rounds_completed = 2, 16
        engine.restart()
        assert (s.level, s.round, s.score, s.keys_collected, s.rounds_completed) == (1, 1, 0, 0, 0)
        assert (s.keys, s.high_score, s.session_score, s.total_keys_collected) == (12, 9000, 5000, 12)
        assert engine.state is GameState.PLAYING

    def test_restart_starts_a_new_game(self, engine, reporter):
        """Restarting counts as a new game, always at level 1."""
        engine.stats.level = 4
        engine.end_game()
        engine.handle_input("restart")
        assert reporter.game_calls == [1]
        assert engine.stats.level == 1

    def test_restart_cancels_transition(self, engine, layout):
        """Restarting during a round transition drops the pending advance."""
        layout(engine, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        engine.handle_input("right")
        engine.restart()
        engine.update(3.0)
        assert engine.stats.round == 1

    def test_tick_after_game_over_is_noop(self, engine, layout):
        """Ticks after game over change nothing."""
        layout(engine, player=(5, 5), enemies=[((4, 4), (1, 1))], keys=[(2, 2)])
        engine.on_tick()
        assert engine.state is GameState.GAME_OVER
        before = engine.get_snapshot().enemies
        engine.on_tick()
        engine.update(3.0)
        assert engine.get_snapshot().enemies == before


class TestDispatch:
    def test_nested_commands_run_after(self, engine):
        """A command issued from inside another runs once the first finishes."""
        order = []

        def inner():
            order.append("inner")

        def outer():
            engine.dispatch(inner)
            order.append("outer")
            return "done"

        assert engine.dispatch(outer) == "done"
        assert order == ["outer", "inner"]

    def test_failed_command_drops_its_queue(self, engine):
        """Commands queued by a failing command never leak into the next dispatch."""
        order = []

        def stray():
            order.append("stray")

        def broken():
            engine.dispatch(stray)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            engine.dispatch(broken)
        engine.dispatch(lambda: order.append("next"))
        assert order == ["next"]
        engine.handle_input("right")
        assert engine.get_snapshot().player == (1, 0)

    def test_reporter_calling_back(self, settings, layout):
        """A reporter may poke the engine from inside a level completion."""
        calls = []

        class Nosy(RecordingReporter):
            def report_level_complete(self, new_level, total_score):
                super().report_level_complete(new_level, total_score)
                eng.toggle_pause()
                calls.append(eng.state)

        eng = GameEngine(settings, reporter=Nosy(), rng=random.Random(1))
        eng.initialize_round(1, 5)
        layout(eng, player=(8, 9), enemies=[((0, 5), (1, 1))], keys=[])
        eng.handle_input("right")
        assert calls == [GameState.LEVEL_COMPLETE]
        assert eng.state is GameState.LEVEL_COMPLETE


class TestSnapshot:
    def test_to_dict(self, engine):
        """Snapshots serialise to plain JSON types."""
        data = engine.get_snapshot().to_dict()
        assert data["game_state"] == "playing"
        assert data["player"] == {"x": 0, "y": 0}
        assert len(data["enemies"]) == 2
        assert set(data["enemies"][0]) == {"id", "x", "y", "dx", "dy"}
        assert data["stats"]["level"] == 1
        assert data["game_over_reason"] is None

    def test_stats_are_a_copy(self, engine):
        """Changing a snapshot does not touch the engine."""
        snap = engine.get_snapshot()
        snap.stats.score = 999
        assert engine.stats.score == 0

    def test_notices_drain_once(self, engine):
        """Notices are handed out once."""
        engine.toggle_pause()
        snap = engine.get_snapshot(include_notices=True)
        assert kinds(snap.notices) == ["paused"]
        assert engine.drain_notices() == []
