from flask import Blueprint, Flask, current_app, jsonify, make_response, request, send_from_directory
import json
import logging
import os
import re
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytz
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

import dashboard
from mappers import (
    LEADER_CATEGORIES,
    map_game_detail,
    map_leaders,
    map_schedule_games,
    map_search_teams,
    map_standings,
    map_team_events,
    map_teams,
)
from mlb_api import MLBStatsAPI, SportsDBAPI, UpstreamError
from resource_cache import GameStatusLedger, ResourceCache
from settings import Settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EASTERN = pytz.timezone('US/Eastern')

# Rate limiting; storage and default limits come from the app config
limiter = Limiter(key_func=get_remote_address, strategy="fixed-window")

bp = Blueprint('diamondboard', __name__)

# Security: Input validation patterns
VALID_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
VALID_ID_PATTERN = re.compile(r'^\d{1,10}$')
VALID_SEASON_PATTERN = re.compile(r'^\d{4}$')
VALID_TEAM_PATTERN = re.compile(r'^[\w\s\'\.\-&]+$')
VALID_LEAGUE_PATTERN = re.compile(r'^[\w\s\.\-&]+$')

MAX_FAVORITES_BYTES = 10000


def sanitize_input(value, pattern, max_length=100):
    """Sanitize and validate input strings"""
    if not value:
        return None

    # Remove leading/trailing whitespace
    value = value.strip()

    # Check length
    if len(value) > max_length:
        logger.warning(f"Input too long: {len(value)} characters")
        return None

    # Check pattern
    if not pattern.match(value):
        logger.warning(f"Input failed pattern validation: {value}")
        return None

    return value


def valid_date(value):
    """Return value if it is a real YYYY-MM-DD calendar date"""
    value = sanitize_input(value, VALID_DATE_PATTERN, max_length=10)
    if not value:
        return None
    try:
        datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        logger.warning(f"Invalid calendar date: {value}")
        return None
    return value


class MLBDashboard:
    """Cache-backed access to upstream data, reshaped for the dashboard"""

    def __init__(self, settings, mlb, sportsdb, cache, ledger=None):
        self.settings = settings
        self.mlb = mlb
        self.sportsdb = sportsdb
        self.cache = cache
        self.ledger = ledger or GameStatusLedger()

    def today(self):
        return datetime.now(EASTERN).strftime('%Y-%m-%d')

    def current_season(self):
        return str(datetime.now(EASTERN).year)

    def get_teams(self):
        return self.cache.get_or_fetch('teams', 'mlb', lambda: map_teams(self.mlb.get_teams()))

    def get_games_for_date(self, date):
        games = self.cache.get_or_fetch(
            'games', date, lambda: map_schedule_games(self.mlb.get_schedule(date), date=date)
        )
        return self.ledger.reconcile_all(games)

    def get_game(self, game_id):
        game = self.cache.get_or_fetch(
            'game', str(game_id), lambda: map_game_detail(self.mlb.get_game_feed(game_id))
        )
        return self.ledger.reconcile(game, view='detail')

    def get_team_games(self, team_id, start_date, end_date):
        key = f"{team_id}:{start_date}:{end_date}"
        games = self.cache.get_or_fetch(
            'schedule', key,
            lambda: map_schedule_games(self.mlb.get_team_schedule(team_id, start_date, end_date)),
        )
        return self.ledger.reconcile_all(games)

    def get_standings(self, season=None):
        season = season or self.current_season()
        return self.cache.get_or_fetch(
            'standings', season, lambda: map_standings(self.mlb.get_standings(season))
        )

    def get_leaders(self, category, season=None):
        season = season or self.current_season()
        stat_group = LEADER_CATEGORIES[category][1]
        return self.cache.get_or_fetch(
            'leaders', f"{category}:{season}",
            lambda: map_leaders(self.mlb.get_leaders(category, season, stat_group), category, season),
        )

    def search_teams(self, query, league=None):
        """Search TheSportsDB by team name, or list a league filtered by name"""
        def fetch():
            if league and league != 'all':
                teams = map_search_teams(self.sportsdb.teams_in_league(league))
            else:
                teams = map_search_teams(self.sportsdb.search_teams(query))
            if league == 'all':
                return teams
            needle = query.lower()
            return [team for team in teams if needle in team['name'].lower()]

        return self.cache.get_or_fetch('search', f"{league or ''}:{query.lower()}", fetch)

    def _fetch_team_events(self, team_id):
        upcoming = self.sportsdb.next_events(team_id)
        past = self.sportsdb.last_events(team_id)
        return map_team_events(upcoming, past)

    def _team_events(self, team_id):
        try:
            return self.cache.get_or_fetch('scores', team_id, lambda: self._fetch_team_events(team_id))
        except Exception as e:
            # One team's failure must not sink the others
            logger.error(f"Error fetching scores for team {team_id}: {e}")
            return []

    def get_scores(self, team_ids):
        """Events for the given teams, fetching only teams without fresh cached scores"""
        requested = list(dict.fromkeys(str(team_id) for team_id in team_ids))
        events_by_team = {}
        missing = []
        for team_id in requested:
            events, fresh = self.cache.get('scores', team_id)
            if fresh:
                events_by_team[team_id] = events
            else:
                missing.append(team_id)

        if missing:
            logger.info(f"Fetching scores for {len(missing)} of {len(requested)} teams")
            workers = max(1, min(len(missing), self.settings.scores_max_workers))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {team_id: pool.submit(self._team_events, team_id) for team_id in missing}
                for team_id, future in futures.items():
                    events_by_team[team_id] = future.result()

        return self._filter_events(
            (event for team_id in requested for event in events_by_team.get(team_id, [])),
            set(requested),
        )

    def cached_scores(self, team_ids):
        """Fresh cached events for the given teams; None when nothing fresh is cached"""
        fresh_lists = [events for _, events, fresh in self.cache.entries('scores') if fresh]
        if not fresh_lists:
            return None
        return self._filter_events(
            (event for events in fresh_lists for event in events),
            {str(team_id) for team_id in team_ids},
        )

    @staticmethod
    def _filter_events(events, team_ids):
        # Deduplicate by event id, keep events involving a requested team
        unique = OrderedDict()
        for event in events:
            unique.setdefault(event.get('id') or id(event), event)
        return [
            event for event in unique.values()
            if str(event['homeTeam']['id']) in team_ids or str(event['awayTeam']['id']) in team_ids
        ]


def get_dashboard():
    return current_app.extensions['diamondboard']


def upstream_failure(message, error):
    logger.error(f"{message}: {error} (url={getattr(error, 'url', None)})")
    return jsonify({'error': message}), 500


# Security headers middleware
@bp.after_app_request
def add_security_headers(response):
    """Add security headers to all responses"""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    response.headers['Content-Security-Policy'] = (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' https://www.mlbstatic.com https://*.thesportsdb.com data:; "
        "connect-src 'self'; "
        "frame-ancestors 'none';"
    )
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    return response


@bp.route('/health')
@limiter.exempt
def health():
    # Sweep entries past their max age
    get_dashboard().cache.purge()
    return jsonify({'status': 'ok'})


@bp.route('/api/mlb/teams')
@limiter.limit("30 per minute")
def get_teams():
    """All MLB teams, alphabetical"""
    try:
        return jsonify(get_dashboard().get_teams())
    except UpstreamError as e:
        return upstream_failure('Failed to fetch MLB teams', e)


def _games_for_date(date):
    try:
        return jsonify(get_dashboard().get_games_for_date(date))
    except UpstreamError as e:
        return upstream_failure('Failed to fetch games', e)


@bp.route('/api/mlb/games/today')
@limiter.limit("60 per minute")
def get_games_today():
    """Today's games (US/Eastern calendar day)"""
    return _games_for_date(get_dashboard().today())


@bp.route('/api/mlb/games/date/<date>')
@limiter.limit("60 per minute")
def get_games_by_date(date):
    date = valid_date(date)
    if not date:
        return jsonify({'error': 'Date must be in YYYY-MM-DD format'}), 400
    return _games_for_date(date)


@bp.route('/api/mlb/games/<game_id>')
@limiter.limit("60 per minute")  # Live games are polled every 30s
def get_game(game_id):
    """Box score and current play for one game"""
    game_id = sanitize_input(game_id, VALID_ID_PATTERN, max_length=10)
    if not game_id:
        return jsonify({'error': 'Invalid game id'}), 400

    try:
        return jsonify(get_dashboard().get_game(game_id))
    except UpstreamError as e:
        return upstream_failure('Failed to fetch game details', e)


@bp.route('/api/mlb/teams/<team_id>/games')
@limiter.limit("30 per minute")
def get_team_games(team_id):
    """Team schedule for explicit dates or a range preset, optionally grouped"""
    team_id = sanitize_input(team_id, VALID_ID_PATTERN, max_length=10)
    if not team_id:
        return jsonify({'error': 'Invalid team id'}), 400

    group_by = request.args.get('groupBy')
    if group_by and group_by not in dashboard.SCHEDULE_GROUPINGS:
        return jsonify({
            'error': f"Invalid groupBy. Must be one of: {', '.join(dashboard.SCHEDULE_GROUPINGS)}"
        }), 400

    start_date = request.args.get('startDate')
    end_date = request.args.get('endDate')
    range_kind = request.args.get('range')
    if not start_date and not end_date and range_kind:
        if range_kind not in dashboard.SCHEDULE_RANGES:
            return jsonify({
                'error': f"Invalid range. Must be one of: {', '.join(dashboard.SCHEDULE_RANGES)}"
            }), 400
        today = datetime.strptime(get_dashboard().today(), '%Y-%m-%d').date()
        start, end = dashboard.schedule_window(range_kind, today)
        start_date, end_date = start.isoformat(), end.isoformat()

    if not start_date or not end_date:
        return jsonify({'error': 'startDate and endDate are required'}), 400

    start_date, end_date = valid_date(start_date), valid_date(end_date)
    if not start_date or not end_date:
        return jsonify({'error': 'Dates must be in YYYY-MM-DD format'}), 400
    if start_date > end_date:
        return jsonify({'error': 'startDate must not be after endDate'}), 400

    try:
        games = get_dashboard().get_team_games(team_id, start_date, end_date)
    except UpstreamError as e:
        return upstream_failure('Failed to fetch team schedule', e)

    if not group_by:
        return jsonify(games)
    return jsonify(dashboard.schedule_groups(games, team_id, by_month=group_by == 'month'))


def _season_arg():
    """(season, error) from the optional season query parameter"""
    season = request.args.get('season')
    if season is None or season == '':
        return None, None
    season = sanitize_input(season, VALID_SEASON_PATTERN, max_length=4)
    if not season:
        return None, 'Season must be a four digit year'
    return season, None


@bp.route('/api/mlb/standings')
@limiter.limit("30 per minute")
def get_standings():
    season, error = _season_arg()
    if error:
        return jsonify({'error': error}), 400

    try:
        return jsonify(get_dashboard().get_standings(season))
    except UpstreamError as e:
        return upstream_failure('Failed to fetch standings', e)


@bp.route('/api/mlb/leaders')
@limiter.limit("30 per minute")
def get_leaders():
    category = request.args.get('category')
    if not category:
        return jsonify({'error': 'Category is required'}), 400
    if category not in LEADER_CATEGORIES:
        return jsonify({
            'error': f"Invalid category. Must be one of: {', '.join(LEADER_CATEGORIES)}"
        }), 400

    season, error = _season_arg()
    if error:
        return jsonify({'error': error}), 400

    try:
        return jsonify(get_dashboard().get_leaders(category, season))
    except UpstreamError as e:
        return upstream_failure('Failed to fetch league leaders', e)


@bp.route('/api/search')
@limiter.limit("20 per minute")
def search_teams():
    if not request.args.get('q'):
        return jsonify({'error': 'Search term is required'}), 400

    query = sanitize_input(request.args.get('q'), VALID_TEAM_PATTERN, max_length=100)
    if not query:
        return jsonify({'error': 'Invalid search term'}), 400

    league = request.args.get('league')
    if league:
        league = sanitize_input(league, VALID_LEAGUE_PATTERN, max_length=100)
        if not league:
            return jsonify({'error': 'Invalid league'}), 400

    try:
        return jsonify(get_dashboard().search_teams(query, league))
    except UpstreamError as e:
        return upstream_failure('Failed to search teams', e)


@bp.route('/api/scores', methods=['POST'])
@limiter.limit("20 per minute")
def post_scores():
    """Recent and upcoming events for the posted favorite teams"""
    body = request.get_json(silent=True) or {}
    teams = body.get('teams') if isinstance(body, dict) else None
    if not teams or not isinstance(teams, list):
        return jsonify({'error': 'Teams array is required'}), 400

    team_ids = [team.get('id') for team in teams if isinstance(team, dict) and team.get('id')]
    if len(team_ids) != len(teams):
        return jsonify({'error': 'Every team needs an id'}), 400

    return jsonify(get_dashboard().get_scores(team_ids))


@bp.route('/api/device/scores')
@limiter.limit("60 per minute")
def get_device_scores():
    """Compact scores for embedded displays; never triggers an upstream fetch"""
    teams = request.args.get('teams')
    if not teams:
        return jsonify({'error': 'Team IDs required'}), 400

    team_ids = [team_id.strip() for team_id in teams.split(',') if team_id.strip()]
    scores = get_dashboard().cached_scores(team_ids)
    if scores is None:
        return jsonify({
            'error': 'No cached scores available',
            'message': 'Please fetch scores via the frontend first'
        }), 404

    return jsonify([
        {
            'id': score['id'],
            'home': {'team': score['homeTeam']['name'], 'score': score['homeTeam']['score']},
            'away': {'team': score['awayTeam']['name'], 'score': score['awayTeam']['score']},
            'status': score['status'],
        }
        for score in scores
    ])


def _stored_favorites():
    return dashboard.load_favorites(request.cookies.get(dashboard.FAVORITES_KEY))


def _favorites_response(favorites):
    response = make_response(jsonify(favorites))
    # An empty list is never written, so a bad read cannot wipe what is stored
    if favorites:
        response.set_cookie(
            dashboard.FAVORITES_KEY,
            dashboard.dump_favorites(favorites),
            max_age=365*24*60*60,  # 1 year
            httponly=True,
            secure=current_app.config['DIAMONDBOARD_SECURE_COOKIES'],
            samesite='Lax'
        )
    return response


@bp.route('/api/favorites')
@limiter.limit("30 per minute")
def list_favorites():
    return jsonify(_stored_favorites())


@bp.route('/api/favorites', methods=['POST'])
@limiter.limit("10 per minute")
def add_favorite():
    team = request.get_json(silent=True)
    if not isinstance(team, dict) or team.get('id') in (None, ''):
        return jsonify({'error': 'A team with an id is required'}), 400

    favorites = dashboard.add_favorite(_stored_favorites(), team)
    # Security: Limit cookie size to prevent abuse
    if len(json.dumps(favorites)) > MAX_FAVORITES_BYTES:
        return jsonify({'error': 'Favorites too large'}), 400

    return _favorites_response(favorites)


@bp.route('/api/favorites/<team_id>', methods=['DELETE'])
@limiter.limit("10 per minute")
def remove_favorite(team_id):
    return _favorites_response(dashboard.remove_favorite(_stored_favorites(), team_id))


@bp.route('/api/mlb/dashboard')
@limiter.limit("60 per minute")
def get_dashboard_view():
    """Today's games with favorite teams first, plus live/upcoming/completed groups"""
    favorites = _stored_favorites()
    try:
        games = get_dashboard().get_games_for_date(get_dashboard().today())
    except UpstreamError as e:
        return upstream_failure('Failed to fetch games', e)

    ordered = dashboard.order_games(games, dashboard.favorite_ids(favorites))
    return jsonify({
        'favorites': favorites,
        'games': ordered,
        'groups': dashboard.group_by_status(ordered),
    })


@bp.route('/', defaults={'path': ''})
@bp.route('/<path:path>')
@limiter.exempt
def spa_shell(path):
    """Serve the client build in production, 404 otherwise"""
    if not current_app.config['DIAMONDBOARD_PRODUCTION']:
        return 'API endpoint not found', 404

    build_dir = os.path.abspath(current_app.config['DIAMONDBOARD_CLIENT_BUILD'])
    if path and os.path.isfile(os.path.join(build_dir, path)):
        return send_from_directory(build_dir, path)
    if not os.path.isfile(os.path.join(build_dir, 'index.html')):
        logger.error(f"Client build missing at {build_dir}")
        return 'Client build not found', 404
    return send_from_directory(build_dir, 'index.html')


def ratelimit_exceeded(e):
    logger.warning(f"Rate limit exceeded for {get_remote_address()}: {e.description}")
    return jsonify({'error': f"Rate limit exceeded: {e.description}"}), 429


def create_app(settings=None, mlb=None, sportsdb=None, cache=None):
    """Build the Flask app; upstream clients and cache can be swapped in for tests"""
    settings = settings or Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=settings.secret_key,
        RATELIMIT_DEFAULT=settings.ratelimit_default,
        RATELIMIT_STORAGE_URI=settings.ratelimit_storage_uri,
        RATELIMIT_ENABLED=settings.ratelimit_enabled,
        DIAMONDBOARD_PRODUCTION=settings.production,
        DIAMONDBOARD_CLIENT_BUILD=settings.client_build_dir,
        DIAMONDBOARD_SECURE_COOKIES=settings.secure_cookies,
    )

    mlb = mlb or MLBStatsAPI(settings.mlb_api_base, timeout=settings.upstream_timeout)
    sportsdb = sportsdb or SportsDBAPI(
        settings.sportsdb_api_base, api_key=settings.sportsdb_api_key, timeout=settings.upstream_timeout
    )
    cache = cache or ResourceCache(ttls=settings.cache_ttls, max_entries=settings.cache_max_entries)
    app.extensions['diamondboard'] = MLBDashboard(settings, mlb, sportsdb, cache)

    limiter.init_app(app)
    app.register_blueprint(bp)
    app.register_error_handler(429, ratelimit_exceeded)

    logger.info(f"Diamondboard ready (env={settings.env})")
    return app


def main():
    settings = Settings.from_env()
    create_app(settings).run(host='0.0.0.0', port=settings.port, debug=False)


if __name__ == '__main__':
    main()
