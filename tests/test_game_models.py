"""
Tests for the game domain models.
"""

import pytest

from domain.models.game import OPEN_STATUSES, Game, GameMode, GameStatus, MapSelectionMode


class TestGameStatusTransitions:
    """The lifecycle state machine."""

    @pytest.mark.parametrize(
        "source, target",
        [
            (GameStatus.QUEUE, GameStatus.LOBBY),
            (GameStatus.QUEUE, GameStatus.CANCELLED),
            (GameStatus.LOBBY, GameStatus.IN_PROGRESS),
            (GameStatus.LOBBY, GameStatus.CANCELLED),
            (GameStatus.IN_PROGRESS, GameStatus.COMPLETED),
        ],
    )
    def test_allowed(self, source, target):
        assert GameStatus.can_transition(source, target)

    @pytest.mark.parametrize(
        "source, target",
        [
            (GameStatus.QUEUE, GameStatus.IN_PROGRESS),
            (GameStatus.QUEUE, GameStatus.COMPLETED),
            (GameStatus.LOBBY, GameStatus.QUEUE),
            (GameStatus.LOBBY, GameStatus.COMPLETED),
            (GameStatus.IN_PROGRESS, GameStatus.CANCELLED),
            (GameStatus.IN_PROGRESS, GameStatus.LOBBY),
        ],
    )
    def test_rejected(self, source, target):
        assert not GameStatus.can_transition(source, target)

    @pytest.mark.parametrize("source", [GameStatus.COMPLETED, GameStatus.CANCELLED])
    def test_closed_games_go_nowhere(self, source):
        assert not any(GameStatus.can_transition(source, target) for target in GameStatus)

    def test_open_statuses(self):
        assert OPEN_STATUSES == (GameStatus.QUEUE, GameStatus.LOBBY)


class TestGame:
    def _game(self, **overrides):
        fields = dict(
            game_id="g1",
            match_number=1,
            game_mode=GameMode.WINGMAN,
            map_selection_mode=MapSelectionMode.ALL_PICK,
            host_player_id="host",
            max_players=4,
            current_players=1,
            status=GameStatus.QUEUE,
            start_time=0,
        )
        fields.update(overrides)
        return Game(**fields)

    def test_mode_capacity(self):
        assert [m.capacity for m in GameMode] == [10, 4, 6, 2]

    def test_password_check(self):
        assert self._game().check_password(None)
        locked = self._game(password="pw")
        assert locked.check_password("pw")
        assert not locked.check_password("nope")

    def test_public_dict_hides_password(self):
        data = self._game(password="pw", map_anim_select_start_time=5000).to_public_dict(
            reveal_duration_ms=10_000
        )
        assert "password" not in data
        assert data["has_password"] is True
        assert data["map_reveal_ends_at"] == 15_000
