"""Tests for favorites handling and game list ordering."""

from datetime import date

import pytest

import dashboard


def game(game_id, status, home=1, away=2, start='', day='2024-06-01', home_score=0, away_score=0):
    return {
        'id': game_id,
        'abstractStatus': status,
        'startTime': start,
        'date': day,
        'homeTeam': {'id': home, 'score': home_score},
        'awayTeam': {'id': away, 'score': away_score},
    }


class TestFavorites:
    def test_add_is_idempotent(self):
        favorites = dashboard.add_favorite([], {'id': 147, 'name': 'New York Yankees'})
        again = dashboard.add_favorite(favorites, {'id': 147, 'name': 'New York Yankees'})
        assert len(again) == len(favorites) == 1

    def test_add_matches_ids_across_types(self):
        favorites = [{'id': 147, 'name': 'New York Yankees'}]
        assert len(dashboard.add_favorite(favorites, {'id': '147'})) == 1

    def test_add_does_not_mutate(self):
        favorites = [{'id': 1}]
        dashboard.add_favorite(favorites, {'id': 2})
        assert favorites == [{'id': 1}]

    def test_remove(self):
        favorites = [{'id': 1}, {'id': 2}]
        assert dashboard.remove_favorite(favorites, '1') == [{'id': 2}]

    def test_round_trip_through_storage(self):
        favorites = [{'id': 147, 'name': 'New York Yankees'}]
        assert dashboard.load_favorites(dashboard.dump_favorites(favorites)) == favorites

    @pytest.mark.parametrize('raw', [None, '', 'not json', '{"id": 1}', '[1, 2]'])
    def test_unreadable_storage_loads_empty(self, raw):
        assert dashboard.load_favorites(raw) == []


class TestOrderGames:
    def test_favorites_first_then_live_upcoming_final(self):
        games = [
            game(1, 'Final', home=10, away=11),
            game(2, 'Preview', home=12, away=13, start='2024-06-01T23:05:00Z'),
            game(3, 'Live', home=14, away=15),
            game(4, 'Final', home=147, away=16),
            game(5, 'Preview', home=17, away=147, start='2024-06-01T17:05:00Z'),
            game(6, 'Preview', home=18, away=19, start='2024-06-01T17:10:00Z'),
        ]
        ordered = dashboard.order_games(games, {'147'})
        assert [g['id'] for g in ordered] == [5, 4, 3, 6, 2, 1]

    def test_no_favorites(self):
        games = [game(1, 'Final'), game(2, 'Live')]
        assert [g['id'] for g in dashboard.order_games(games, set())] == [2, 1]

    def test_group_by_status(self):
        groups = dashboard.group_by_status([game(1, 'Live'), game(2, 'Preview'), game(3, 'Final')])
        assert [g['id'] for g in groups['live']] == [1]
        assert [g['id'] for g in groups['upcoming']] == [2]
        assert [g['id'] for g in groups['completed']] == [3]


class TestSchedule:
    def test_windows(self):
        today = date(2024, 6, 15)
        assert dashboard.schedule_window('default', today) == (date(2024, 6, 8), date(2024, 6, 29))
        assert dashboard.schedule_window('week', today) == (date(2024, 6, 12), date(2024, 6, 19))
        assert dashboard.schedule_window('month', today) == (date(2024, 6, 1), date(2024, 6, 30))
        assert dashboard.schedule_window('season', today) == (date(2024, 4, 1), date(2024, 10, 31))

    def test_month_window_in_december(self):
        assert dashboard.schedule_window('month', date(2024, 12, 31)) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_group_by_week(self):
        games = [game(2, 'Final', day='2024-06-08'), game(1, 'Final', day='2024-06-01'), game(3, 'Preview', day='2024-07-01')]
        groups = dashboard.group_schedule(games)
        assert list(groups) == ['Week 1 (June)', 'Week 2 (June)', 'Week 1 (July)']

    def test_group_by_month(self):
        games = [game(1, 'Final', day='2024-06-01'), game(2, 'Final', day='2024-06-30')]
        assert list(dashboard.group_schedule(games, by_month=True)) == ['June']

    def test_result_and_score_line(self):
        won = game(1, 'Final', home=147, away=111, home_score=5, away_score=3)
        assert dashboard.game_result(won, 147) == 'W'
        assert dashboard.game_result(won, '111') == 'L'
        assert dashboard.score_line(won, 111) == '3-5'

    def test_result_for_unfinished(self):
        upcoming = game(1, 'Preview', home=147)
        assert dashboard.game_result(upcoming, 147) == '-'
        assert dashboard.score_line(upcoming, 147) == ''
        assert dashboard.game_result(game(2, 'Final', home=147), 147) == 'T'

    def test_schedule_groups_annotate_from_team_side(self):
        games = [
            game(1, 'Final', home=147, away=111, home_score=2, away_score=4, day='2024-06-02'),
            game(2, 'Live', home=111, away=147, home_score=1, away_score=3, day='2024-06-09'),
        ]
        groups = dashboard.schedule_groups(games, '147')
        assert [g['label'] for g in groups] == ['Week 1 (June)', 'Week 2 (June)']
        assert (groups[0]['games'][0]['result'], groups[0]['games'][0]['scoreLine']) == ('L', '2-4')
        assert (groups[1]['games'][0]['result'], groups[1]['games'][0]['scoreLine']) == ('-', '3-1')
        assert 'result' not in games[0]
