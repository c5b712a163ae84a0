"""Favorites and game-list rules shared by the dashboard views.

These mirror what the browser client does with the API responses: keeping
the favorites list, putting favorite teams' games first, grouping games by
state and laying a team schedule out by week or month.
"""
import json
import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)

FAVORITES_KEY = 'mlbFavoriteTeams'

# Live games lead, then upcoming, then finished
STATUS_RANK = {'Live': 0, 'Preview': 1, 'Final': 2}

SCHEDULE_RANGES = ('default', 'week', 'month', 'season')
SCHEDULE_GROUPINGS = ('week', 'month')


def _same_id(a, b):
    return a is not None and b is not None and str(a) == str(b)


def add_favorite(favorites, team):
    """Return favorites with team appended, unless a team with its id is already there"""
    if any(_same_id(fav.get('id'), team.get('id')) for fav in favorites):
        return list(favorites)
    return list(favorites) + [team]


def remove_favorite(favorites, team_id):
    return [fav for fav in favorites if not _same_id(fav.get('id'), team_id)]


def favorite_ids(favorites):
    return {str(fav.get('id')) for fav in favorites if fav.get('id') is not None}


def dump_favorites(favorites):
    return json.dumps(favorites, separators=(',', ':'))


def load_favorites(raw):
    """Parse a stored favorites list. Anything unreadable comes back empty."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Failed to parse stored favorites")
        return []
    if not isinstance(parsed, list):
        logger.warning("Stored favorites is not a list")
        return []
    return [team for team in parsed if isinstance(team, dict) and 'id' in team]


def is_favorite_game(game, ids):
    home = str((game.get('homeTeam') or {}).get('id'))
    away = str((game.get('awayTeam') or {}).get('id'))
    return home in ids or away in ids


def _game_sort_key(game):
    status = game.get('abstractStatus')
    rank = STATUS_RANK.get(status, 1)
    # Only upcoming games are ordered by first pitch
    start = (game.get('startTime') or '') if status == 'Preview' else ''
    return (rank, start)


def order_games(games, ids):
    """Favorite teams' games first; each part ordered live, upcoming, final"""
    ids = {str(i) for i in ids}
    favorites = [game for game in games if is_favorite_game(game, ids)]
    others = [game for game in games if not is_favorite_game(game, ids)]
    return sorted(favorites, key=_game_sort_key) + sorted(others, key=_game_sort_key)


def group_by_status(games):
    groups = {'live': [], 'upcoming': [], 'completed': []}
    for game in games:
        status = game.get('abstractStatus')
        if status == 'Live':
            groups['live'].append(game)
        elif status == 'Final':
            groups['completed'].append(game)
        else:
            groups['upcoming'].append(game)
    return groups


def schedule_window(kind, today=None):
    """Start and end dates for one of the schedule range presets"""
    today = today or date.today()
    if kind == 'week':
        return today - timedelta(days=3), today + timedelta(days=4)
    if kind == 'month':
        first = today.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        return first, next_month - timedelta(days=1)
    if kind == 'season':
        return date(today.year, 4, 1), date(today.year, 10, 31)
    return today - timedelta(days=7), today + timedelta(days=14)


def _game_day(game):
    raw = game.get('date') or (game.get('startTime') or '')[:10]
    try:
        return datetime.strptime(raw, '%Y-%m-%d').date()
    except ValueError:
        return None


def group_schedule(games, by_month=False):
    """Bucket schedule games under 'Week N (Month)' or 'Month' labels, in date order"""
    groups = OrderedDict()
    dated = [(day, game) for game in games for day in [_game_day(game)] if day is not None]
    dated.sort(key=lambda pair: pair[0])
    for day, game in dated:
        month = day.strftime('%B')
        label = month if by_month else f"Week {(day.day + 6) // 7} ({month})"
        groups.setdefault(label, []).append(game)
    return groups


def _team_scores(game, team_id):
    home = game.get('homeTeam') or {}
    away = game.get('awayTeam') or {}
    if _same_id(home.get('id'), team_id):
        return home.get('score', 0), away.get('score', 0)
    return away.get('score', 0), home.get('score', 0)


def game_result(game, team_id):
    if game.get('abstractStatus') != 'Final':
        return '-'
    ours, theirs = _team_scores(game, team_id)
    if ours > theirs:
        return 'W'
    if ours < theirs:
        return 'L'
    return 'T'


def score_line(game, team_id):
    if game.get('abstractStatus') == 'Preview':
        return ''
    ours, theirs = _team_scores(game, team_id)
    return f"{ours}-{theirs}"


def schedule_groups(games, team_id, by_month=False):
    """Grouped team schedule with each game's result and score line from the team's side"""
    return [
        {
            'label': label,
            'games': [
                dict(game, result=game_result(game, team_id), scoreLine=score_line(game, team_id))
                for game in group
            ],
        }
        for label, group in group_schedule(games, by_month=by_month).items()
    ]
