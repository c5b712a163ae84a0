"""Shared fixtures: an app wired to mock upstream clients and a fake clock."""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from diamondboard import create_app  # noqa: E402
from mlb_api import MLBStatsAPI, SportsDBAPI  # noqa: E402
from resource_cache import ResourceCache  # noqa: E402
from settings import Settings  # noqa: E402


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# =============================================================================
# UPSTREAM PAYLOAD BUILDERS
# =============================================================================

YANKEES = (147, 'New York Yankees')
RED_SOX = (111, 'Boston Red Sox')
DODGERS = (119, 'Los Angeles Dodgers')
GIANTS = (137, 'San Francisco Giants')


def schedule_game(game_pk, date, status='Preview', home=YANKEES, away=RED_SOX,
                  home_score=None, away_score=None, start='23:05:00Z'):
    game = {
        'gamePk': game_pk,
        'gameDate': f"{date}T{start}",
        'officialDate': date,
        'status': {'abstractGameState': status, 'detailedState': {
            'Preview': 'Scheduled', 'Live': 'In Progress', 'Final': 'Final'
        }.get(status, status)},
        'teams': {
            'home': {
                'team': {'id': home[0], 'name': home[1]},
                'leagueRecord': {'wins': 40, 'losses': 30},
            },
            'away': {
                'team': {'id': away[0], 'name': away[1]},
                'leagueRecord': {'wins': 35, 'losses': 35},
            },
        },
        'venue': {'name': 'Yankee Stadium'},
    }
    if home_score is not None:
        game['teams']['home']['score'] = home_score
        game['teams']['away']['score'] = away_score
    if status == 'Live':
        game['linescore'] = {
            'currentInning': 5,
            'currentInningOrdinal': '5th',
            'inningState': 'Top',
            'innings': [{'num': 1, 'home': {'runs': 1}, 'away': {'runs': 0}}],
        }
    return game


def schedule_payload(date, games):
    return {'dates': [{'date': date, 'games': games}]}


def game_feed(game_pk, status, home_runs=3, away_runs=2):
    return {
        'gamePk': game_pk,
        'gameData': {
            'game': {'pk': game_pk},
            'datetime': {'dateTime': '2024-06-01T23:05:00Z', 'officialDate': '2024-06-01'},
            'status': {'abstractGameState': status, 'detailedState': status},
            'teams': {
                'home': {'id': 147, 'name': 'New York Yankees', 'record': {'wins': 40, 'losses': 30}},
                'away': {'id': 111, 'name': 'Boston Red Sox', 'record': {'wins': 35, 'losses': 35}},
            },
            'venue': {'name': 'Yankee Stadium'},
        },
        'liveData': {
            'linescore': {
                'currentInning': 9,
                'currentInningOrdinal': '9th',
                'inningState': 'Bottom',
                'teams': {
                    'home': {'runs': home_runs, 'hits': 8, 'errors': 0},
                    'away': {'runs': away_runs, 'hits': 6, 'errors': 1},
                },
            },
        },
    }


def standings_division(league, division, rows):
    return {
        'league': {'name': league},
        'division': {'name': division},
        'teamRecords': [
            {
                'team': {'id': team_id, 'name': name},
                'divisionRank': str(rank),
                'wins': 50 - rank,
                'losses': 30 + rank,
                'winningPercentage': '.600',
                'gamesBack': '-' if rank == 1 else f"{rank}.0",
            }
            for team_id, name, rank in rows
        ],
    }


def leaders_payload(category, count=10):
    return {
        'leagueLeaders': [{
            'leaderCategory': category,
            'season': '2024',
            'leaders': [
                {
                    'rank': i + 1,
                    'value': str(40 - i),
                    'person': {'id': 600000 + i, 'fullName': f"Player {i + 1}"},
                    'team': {'id': 147, 'name': 'New York Yankees'},
                }
                for i in range(count)
            ],
        }]
    }


def sportsdb_events(team_id, opponent_id, event_id):
    upcoming = {'events': [{
        'idEvent': f"{event_id}1",
        'strLeague': 'MLB',
        'idHomeTeam': team_id,
        'strHomeTeam': f"Team {team_id}",
        'idAwayTeam': opponent_id,
        'strAwayTeam': f"Team {opponent_id}",
        'strTimestamp': '2024-06-02T23:05:00',
    }]}
    past = {'results': [{
        'idEvent': f"{event_id}0",
        'strLeague': 'MLB',
        'idHomeTeam': opponent_id,
        'strHomeTeam': f"Team {opponent_id}",
        'idAwayTeam': team_id,
        'strAwayTeam': f"Team {team_id}",
        'intHomeScore': '4',
        'intAwayScore': '6',
        'dateEvent': '2024-05-31',
    }]}
    return upcoming, past


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        secret_key='test',
        ratelimit_enabled=False,
        secure_cookies=False,
        scores_max_workers=4,
    )


@pytest.fixture
def cache(clock, settings):
    return ResourceCache(ttls=settings.cache_ttls, max_entries=settings.cache_max_entries, clock=clock)


@pytest.fixture
def mlb():
    return Mock(spec=MLBStatsAPI)


@pytest.fixture
def sportsdb():
    return Mock(spec=SportsDBAPI)


@pytest.fixture
def app(settings, mlb, sportsdb, cache):
    return create_app(settings, mlb=mlb, sportsdb=sportsdb, cache=cache)


@pytest.fixture
def client(app):
    return app.test_client()
