import logging

import requests

logger = logging.getLogger(__name__)

USER_AGENT = 'Diamondboard/1.0'


class UpstreamError(Exception):
    """Raised when an upstream call fails or returns something unusable"""

    def __init__(self, message, url=None, status_code=None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class _JSONClient:
    def __init__(self, base_url, timeout=10, session=None):
        self.base_url = base_url.rstrip('/')
        self.request_timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': USER_AGENT})

    def _make_api_request(self, path, params=None):
        """GET a JSON document; no retries, any failure becomes UpstreamError"""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.get(url, params=params, timeout=self.request_timeout)
        except requests.Timeout as e:
            logger.warning(f"Request timeout for {url}: {e}")
            raise UpstreamError(f"Timed out fetching {url}", url=url) from e
        except requests.RequestException as e:
            logger.error(f"Request error for {url}: {e}")
            raise UpstreamError(f"Could not reach {url}", url=url) from e

        if not response.ok:
            logger.error(f"Upstream returned {response.status_code} for {url} params={params}")
            raise UpstreamError(
                f"Upstream returned {response.status_code}", url=url, status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Malformed JSON from {url}: {e}")
            raise UpstreamError(f"Malformed response from {url}", url=url) from e


class MLBStatsAPI(_JSONClient):
    """Thin client for the public MLB Stats API"""

    SPORT_ID = 1
    AL_NL = '103,104'
    SCHEDULE_HYDRATE = 'team,linescore,probablePitcher,venue'

    def __init__(self, base_url='https://statsapi.mlb.com/api', timeout=10, session=None):
        super().__init__(base_url, timeout=timeout, session=session)

    def get_teams(self):
        return self._make_api_request('v1/teams', {'sportId': self.SPORT_ID})

    def get_schedule(self, date):
        return self._make_api_request('v1/schedule', {
            'sportId': self.SPORT_ID,
            'date': date,
            'hydrate': self.SCHEDULE_HYDRATE,
        })

    def get_team_schedule(self, team_id, start_date, end_date):
        return self._make_api_request('v1/schedule', {
            'sportId': self.SPORT_ID,
            'teamId': team_id,
            'startDate': start_date,
            'endDate': end_date,
            'hydrate': self.SCHEDULE_HYDRATE,
        })

    def get_game_feed(self, game_id):
        # The live feed is only published under v1.1
        return self._make_api_request(f"v1.1/game/{game_id}/feed/live")

    def get_standings(self, season):
        return self._make_api_request('v1/standings', {
            'leagueId': self.AL_NL,
            'season': season,
            'standingsTypes': 'regularSeason',
            'hydrate': 'team,division,league',
        })

    def get_leaders(self, category, season, stat_group, limit=5):
        return self._make_api_request('v1/stats/leaders', {
            'leaderCategories': category,
            'season': season,
            'sportId': self.SPORT_ID,
            'statGroup': stat_group,
            'limit': limit,
        })


class SportsDBAPI(_JSONClient):
    """Client for TheSportsDB, used for team search and favorite scores"""

    def __init__(self, base_url='https://www.thesportsdb.com/api/v1/json', api_key='3', timeout=10, session=None):
        super().__init__(f"{base_url.rstrip('/')}/{api_key}", timeout=timeout, session=session)

    def search_teams(self, name):
        return self._make_api_request('searchteams.php', {'t': name})

    def teams_in_league(self, league):
        return self._make_api_request('search_all_teams.php', {'l': league})

    def next_events(self, team_id):
        return self._make_api_request('eventsnext.php', {'id': team_id})

    def last_events(self, team_id):
        return self._make_api_request('eventslast.php', {'id': team_id})
