"""Reshape upstream JSON into the dashboard's schema.

Every mapper is a pure function. Records are built from the dataclasses
below so that a field missing upstream always comes out with the default
declared here (None, 0, '' or an empty list) instead of a KeyError.
Output keys are camelCase, which is what the browser client reads.
"""

from dataclasses import asdict, dataclass, field
from typing import List, Optional

LOGO_URL = 'https://www.mlbstatic.com/team-logos/{}.svg'
MAX_LEADERS = 5

# category id -> (display name, stat group)
LEADER_CATEGORIES = {
    'homeRuns': ('Home Runs', 'hitting'),
    'battingAverage': ('Batting Average', 'hitting'),
    'rbi': ('Runs Batted In', 'hitting'),
    'hits': ('Hits', 'hitting'),
    'stolenBases': ('Stolen Bases', 'hitting'),
    'era': ('Earned Run Average', 'pitching'),
    'wins': ('Wins', 'pitching'),
    'strikeouts': ('Strikeouts', 'pitching'),
}

ABSTRACT_STATUSES = ('Preview', 'Live', 'Final')


# ---------------------------------------------------------------------------
# Defensive accessors
# ---------------------------------------------------------------------------

def _dig(data, *path, default=None):
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return default
            current = current[step]
        elif isinstance(current, dict):
            current = current.get(step)
        else:
            return default
        if current is None:
            return default
    return current


def _int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _str(value, default=''):
    return default if value is None else str(value)


def _list(value):
    return value if isinstance(value, list) else []


def _dict(value):
    return value if isinstance(value, dict) else {}


def _dicts(value):
    # Items of a wrongly shaped list are dropped, not fatal
    return [item for item in _list(value) if isinstance(item, dict)]


def _camel(name):
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _camelize(value):
    if isinstance(value, dict):
        return {_camel(key): _camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_camelize(item) for item in value]
    return value


def serialize(record):
    """Dataclass -> JSON-ready dict with camelCase keys"""
    return _camelize(asdict(record))


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

@dataclass
class Team:
    id: Optional[int]
    name: str = ''
    abbreviation: str = ''
    team_name: str = ''
    location_name: str = ''
    division: str = ''
    league: str = ''
    venue: str = ''
    logo_url: str = ''


@dataclass
class GameTeam:
    id: Optional[int]
    name: str = ''
    abbreviation: str = ''
    score: int = 0
    wins: int = 0
    losses: int = 0
    probable_pitcher: Optional[str] = None


@dataclass
class InningHalf:
    runs: Optional[int] = None
    hits: int = 0
    errors: int = 0


@dataclass
class Inning:
    num: int
    home: InningHalf = field(default_factory=InningHalf)
    away: InningHalf = field(default_factory=InningHalf)


@dataclass
class Linescore:
    current_inning: Optional[int] = None
    inning_state: str = ''
    innings: List[Inning] = field(default_factory=list)


@dataclass
class Game:
    id: Optional[int]
    date: str = ''
    start_time: str = ''
    abstract_status: str = 'Preview'
    detailed_status: str = ''
    inning_state: str = ''
    venue: str = ''
    home_team: GameTeam = None
    away_team: GameTeam = None
    linescore: Linescore = field(default_factory=Linescore)


@dataclass
class BattingLine:
    at_bats: int = 0
    hits: int = 0
    runs: int = 0
    rbi: int = 0
    base_on_balls: int = 0
    strike_outs: int = 0
    avg: str = '.000'


@dataclass
class Batter:
    id: Optional[int]
    name: str = ''
    position: str = ''
    batting: BattingLine = field(default_factory=BattingLine)


@dataclass
class PitchingLine:
    innings_pitched: str = '0.0'
    era: str = '0.00'
    strike_outs: int = 0
    base_on_balls: int = 0
    pitches_thrown: int = 0


@dataclass
class Pitcher:
    id: Optional[int]
    name: str = ''
    stats: PitchingLine = field(default_factory=PitchingLine)


@dataclass
class DetailTeam:
    id: Optional[int]
    name: str = ''
    abbreviation: str = ''
    score: int = 0
    hits: int = 0
    errors: int = 0
    left_on_base: int = 0
    wins: int = 0
    losses: int = 0
    probable_pitcher: Optional[str] = None
    current_batters: List[Batter] = field(default_factory=list)


@dataclass
class Weather:
    condition: str = ''
    temp: str = ''
    wind: str = ''


@dataclass
class Count:
    balls: int = 0
    strikes: int = 0
    outs: int = 0


@dataclass
class Bases:
    first: bool = False
    second: bool = False
    third: bool = False


@dataclass
class PlayEvent:
    description: str = ''
    is_pitch: bool = False


@dataclass
class CurrentPlay:
    count: Count = field(default_factory=Count)
    offense: Bases = field(default_factory=Bases)
    batter: Optional[str] = None
    pitcher: Optional[str] = None
    play_events: List[PlayEvent] = field(default_factory=list)


@dataclass
class Decision:
    id: Optional[int]
    full_name: str = ''


@dataclass
class Decisions:
    winner: Optional[Decision] = None
    loser: Optional[Decision] = None
    save: Optional[Decision] = None


@dataclass
class GameDetail:
    id: Optional[int]
    date: str = ''
    start_time: str = ''
    abstract_status: str = 'Preview'
    detailed_status: str = ''
    inning_state: str = ''
    venue: str = ''
    weather: Optional[Weather] = None
    teams: dict = field(default_factory=dict)
    linescore: Linescore = field(default_factory=Linescore)
    pitchers: dict = field(default_factory=dict)
    current_play: Optional[CurrentPlay] = None
    decisions: Optional[Decisions] = None


@dataclass
class StandingsRow:
    id: Optional[int]
    name: str = ''
    rank: Optional[int] = None
    wins: int = 0
    losses: int = 0
    winning_percentage: str = '.000'
    games_back: str = '-'
    home_record: str = '0-0'
    away_record: str = '0-0'
    streak: str = ''
    run_differential: int = 0


@dataclass
class StandingsRecord:
    league: str = ''
    division: str = ''
    teams: List[StandingsRow] = field(default_factory=list)


@dataclass
class LeaderEntry:
    rank: Optional[int]
    value: str = ''
    player: dict = field(default_factory=dict)
    team: Optional[dict] = None


@dataclass
class SearchTeam:
    id: Optional[str]
    name: str = ''
    league: str = ''
    logo: str = ''
    sport: str = ''


@dataclass
class ScoreTeam:
    id: Optional[str]
    name: str = ''
    score: int = 0


@dataclass
class ScoreEvent:
    id: Optional[str]
    league: str = ''
    home_team: ScoreTeam = None
    away_team: ScoreTeam = None
    status: str = 'scheduled'
    scheduled_time: Optional[str] = None
    completed_time: Optional[str] = None


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

def map_team(raw):
    team_id = _int(raw.get('id'), None)
    return Team(
        id=team_id,
        name=_str(raw.get('name')),
        abbreviation=_str(raw.get('abbreviation')),
        team_name=_str(raw.get('teamName')),
        location_name=_str(raw.get('locationName')),
        division=_str(_dig(raw, 'division', 'name')),
        league=_str(_dig(raw, 'league', 'name')),
        venue=_str(_dig(raw, 'venue', 'name')),
        logo_url=LOGO_URL.format(team_id) if team_id is not None else '',
    )


def map_teams(payload):
    """Teams payload -> list of Team dicts sorted by name"""
    teams = [map_team(raw) for raw in _dicts(_dig(payload, 'teams'))]
    teams.sort(key=lambda team: team.name.lower())
    return [serialize(team) for team in teams]


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

def _abstract_status(raw_status):
    status = _dig(raw_status, 'abstractGameState')
    return status if status in ABSTRACT_STATUSES else 'Preview'


def _inning_label(linescore, abstract_status):
    if abstract_status != 'Live':
        return ''
    state = _str(_dig(linescore, 'inningState'))
    ordinal = _str(_dig(linescore, 'currentInningOrdinal'))
    return f"{state} {ordinal}".strip()


def map_linescore(raw):
    innings = []
    for raw_inning in _dicts(_dig(raw, 'innings')):
        innings.append(Inning(
            num=_int(raw_inning.get('num'), len(innings) + 1),
            home=_map_inning_half(raw_inning.get('home')),
            away=_map_inning_half(raw_inning.get('away')),
        ))
    return Linescore(
        current_inning=_int(_dig(raw, 'currentInning'), None),
        inning_state=_str(_dig(raw, 'inningState')),
        innings=innings,
    )


def _map_inning_half(raw):
    return InningHalf(
        runs=_int(_dig(raw, 'runs'), None),
        hits=_int(_dig(raw, 'hits')),
        errors=_int(_dig(raw, 'errors')),
    )


def _map_game_team(raw):
    return GameTeam(
        id=_int(_dig(raw, 'team', 'id'), None),
        name=_str(_dig(raw, 'team', 'name')),
        abbreviation=_str(_dig(raw, 'team', 'abbreviation')),
        score=_int(_dig(raw, 'score')),
        wins=_int(_dig(raw, 'leagueRecord', 'wins')),
        losses=_int(_dig(raw, 'leagueRecord', 'losses')),
        probable_pitcher=_dig(raw, 'probablePitcher', 'fullName'),
    )


def map_game(raw):
    """One schedule entry -> Game dict"""
    status = _abstract_status(raw.get('status'))
    start_time = _str(raw.get('gameDate'))
    return serialize(Game(
        id=_int(raw.get('gamePk'), None),
        date=_str(raw.get('officialDate')) or start_time[:10],
        start_time=start_time,
        abstract_status=status,
        detailed_status=_str(_dig(raw, 'status', 'detailedState')),
        inning_state=_inning_label(raw.get('linescore'), status),
        venue=_str(_dig(raw, 'venue', 'name')),
        home_team=_map_game_team(_dig(raw, 'teams', 'home')),
        away_team=_map_game_team(_dig(raw, 'teams', 'away')),
        linescore=map_linescore(raw.get('linescore')),
    ))


def map_schedule_games(payload, date=None):
    """Schedule payload -> flat list of Game dicts.

    When ``date`` is given only the block for that official date is used,
    so a request for one day never leaks games from a neighbouring day.
    """
    games = []
    for block in _dicts(_dig(payload, 'dates')):
        if date is not None and block.get('date') not in (None, date):
            continue
        for raw in _dicts(block.get('games')):
            games.append(map_game(raw))
    if date is not None:
        games = [game for game in games if game['date'] == date]
    return games


# ---------------------------------------------------------------------------
# Game detail (live feed)
# ---------------------------------------------------------------------------

def _boxscore_player(box_team, player_id):
    return _dig(box_team, 'players', f"ID{player_id}", default={})


def _map_batters(box_team):
    batters = []
    for player_id in _list(_dig(box_team, 'battingOrder')):
        player = _boxscore_player(box_team, player_id)
        batting = _dict(_dig(player, 'stats', 'batting'))
        batters.append(Batter(
            id=_int(_dig(player, 'person', 'id'), _int(player_id, None)),
            name=_str(_dig(player, 'person', 'fullName')),
            position=_str(_dig(player, 'position', 'abbreviation')),
            batting=BattingLine(
                at_bats=_int(batting.get('atBats')),
                hits=_int(batting.get('hits')),
                runs=_int(batting.get('runs')),
                rbi=_int(batting.get('rbi')),
                base_on_balls=_int(batting.get('baseOnBalls')),
                strike_outs=_int(batting.get('strikeOuts')),
                avg=_str(_dig(player, 'seasonStats', 'batting', 'avg'), '.000'),
            ),
        ))
    return batters


def _map_current_pitcher(box_team):
    pitcher_ids = _list(_dig(box_team, 'pitchers'))
    if not pitcher_ids:
        return None
    player = _boxscore_player(box_team, pitcher_ids[-1])
    pitching = _dict(_dig(player, 'stats', 'pitching'))
    return Pitcher(
        id=_int(_dig(player, 'person', 'id'), _int(pitcher_ids[-1], None)),
        name=_str(_dig(player, 'person', 'fullName')),
        stats=PitchingLine(
            innings_pitched=_str(pitching.get('inningsPitched'), '0.0'),
            era=_str(_dig(player, 'seasonStats', 'pitching', 'era'), '0.00'),
            strike_outs=_int(pitching.get('strikeOuts')),
            base_on_balls=_int(pitching.get('baseOnBalls')),
            pitches_thrown=_int(pitching.get('pitchesThrown', pitching.get('numberOfPitches'))),
        ),
    )


def _map_detail_team(game_data, live_data, side):
    team = _dict(_dig(game_data, 'teams', side))
    totals = _dict(_dig(live_data, 'linescore', 'teams', side))
    box_team = _dict(_dig(live_data, 'boxscore', 'teams', side))
    return DetailTeam(
        id=_int(team.get('id'), None),
        name=_str(team.get('name')),
        abbreviation=_str(team.get('abbreviation')),
        score=_int(totals.get('runs')),
        hits=_int(totals.get('hits')),
        errors=_int(totals.get('errors')),
        left_on_base=_int(totals.get('leftOnBase')),
        wins=_int(_dig(team, 'record', 'wins', default=_dig(team, 'record', 'leagueRecord', 'wins'))),
        losses=_int(_dig(team, 'record', 'losses', default=_dig(team, 'record', 'leagueRecord', 'losses'))),
        probable_pitcher=_dig(game_data, 'probablePitchers', side, 'fullName'),
        current_batters=_map_batters(box_team),
    )


def _map_current_play(live_data):
    play = _dict(_dig(live_data, 'plays', 'currentPlay'))
    if not play:
        return None
    offense = _dict(_dig(live_data, 'linescore', 'offense'))
    return CurrentPlay(
        count=Count(
            balls=_int(_dig(play, 'count', 'balls')),
            strikes=_int(_dig(play, 'count', 'strikes')),
            outs=_int(_dig(play, 'count', 'outs')),
        ),
        offense=Bases(
            first=bool(offense.get('first')),
            second=bool(offense.get('second')),
            third=bool(offense.get('third')),
        ),
        batter=_dig(play, 'matchup', 'batter', 'fullName'),
        pitcher=_dig(play, 'matchup', 'pitcher', 'fullName'),
        play_events=[
            PlayEvent(
                description=_str(_dig(event, 'details', 'description')),
                is_pitch=bool(event.get('isPitch')),
            )
            for event in _dicts(play.get('playEvents'))
        ],
    )


def _map_decision(raw):
    if not isinstance(raw, dict):
        return None
    return Decision(id=_int(raw.get('id'), None), full_name=_str(raw.get('fullName')))


def map_game_detail(payload):
    """Live feed payload -> GameDetail dict"""
    game_data = _dict(_dig(payload, 'gameData'))
    live_data = _dict(_dig(payload, 'liveData'))
    status = _abstract_status(game_data.get('status'))
    linescore = live_data.get('linescore')
    start_time = _str(_dig(game_data, 'datetime', 'dateTime'))

    weather = _dict(game_data.get('weather'))
    raw_decisions = _dict(live_data.get('decisions'))
    box_teams = _dict(_dig(live_data, 'boxscore', 'teams'))

    detail = GameDetail(
        id=_int(_dig(game_data, 'game', 'pk', default=_dig(payload, 'gamePk')), None),
        date=_str(_dig(game_data, 'datetime', 'officialDate')) or start_time[:10],
        start_time=start_time,
        abstract_status=status,
        detailed_status=_str(_dig(game_data, 'status', 'detailedState')),
        inning_state=_inning_label(linescore, status),
        venue=_str(_dig(game_data, 'venue', 'name')),
        weather=Weather(
            condition=_str(weather.get('condition')),
            temp=_str(weather.get('temp')),
            wind=_str(weather.get('wind')),
        ) if weather else None,
        teams={
            'home': _map_detail_team(game_data, live_data, 'home'),
            'away': _map_detail_team(game_data, live_data, 'away'),
        },
        linescore=map_linescore(linescore),
        pitchers={
            'home': {'current': _map_current_pitcher(box_teams.get('home'))},
            'away': {'current': _map_current_pitcher(box_teams.get('away'))},
        },
        current_play=_map_current_play(live_data) if status == 'Live' else None,
        decisions=Decisions(
            winner=_map_decision(raw_decisions.get('winner')),
            loser=_map_decision(raw_decisions.get('loser')),
            save=_map_decision(raw_decisions.get('save')),
        ) if status == 'Final' and raw_decisions else None,
    )
    return serialize(detail)


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------

def _split_record(team_record, split_type):
    for split in _dicts(_dig(team_record, 'records', 'splitRecords')):
        if split.get('type') == split_type:
            return f"{_int(split.get('wins'))}-{_int(split.get('losses'))}"
    return '0-0'


def _rank_key(row):
    # Unranked rows sink to the bottom
    return (row.rank is None, row.rank if row.rank is not None else 0)


def map_standings(payload):
    """Standings payload -> StandingsRecord dicts, rows ascending by rank"""
    records = []
    for raw in _dicts(_dig(payload, 'records')):
        rows = []
        for team_record in _dicts(raw.get('teamRecords')):
            rows.append(StandingsRow(
                id=_int(_dig(team_record, 'team', 'id'), None),
                name=_str(_dig(team_record, 'team', 'name')),
                rank=_int(team_record.get('divisionRank'), None),
                wins=_int(team_record.get('wins')),
                losses=_int(team_record.get('losses')),
                winning_percentage=_str(team_record.get('winningPercentage'), '.000'),
                games_back=_str(team_record.get('gamesBack'), '-'),
                home_record=_split_record(team_record, 'home'),
                away_record=_split_record(team_record, 'away'),
                streak=_str(_dig(team_record, 'streak', 'streakCode')),
                run_differential=_int(team_record.get('runDifferential')),
            ))
        rows.sort(key=_rank_key)
        records.append(StandingsRecord(
            league=_str(_dig(raw, 'league', 'name')),
            division=_str(_dig(raw, 'division', 'name')),
            teams=rows,
        ))
    records.sort(key=lambda record: (record.league, record.division))
    return [serialize(record) for record in records]


# ---------------------------------------------------------------------------
# Leaders
# ---------------------------------------------------------------------------

def map_leaders(payload, category, season=None):
    """Leaders payload -> {category, displayName, season, leaders}"""
    display_name = LEADER_CATEGORIES.get(category, (category, None))[0]
    blocks = _dicts(_dig(payload, 'leagueLeaders'))
    block = next((b for b in blocks if b.get('leaderCategory') == category), blocks[0] if blocks else {})

    leaders = []
    for raw in _dicts(block.get('leaders'))[:MAX_LEADERS]:
        team_id = _dig(raw, 'team', 'id')
        leaders.append(LeaderEntry(
            rank=_int(raw.get('rank'), None),
            value=_str(raw.get('value')),
            player={
                'id': _int(_dig(raw, 'person', 'id'), None),
                'name': _str(_dig(raw, 'person', 'fullName')),
            },
            team={'id': _int(team_id, None), 'name': _str(_dig(raw, 'team', 'name'))} if team_id else None,
        ))

    return {
        'category': category,
        'displayName': display_name,
        'season': _str(block.get('season'), _str(season)),
        'leaders': [serialize(entry) for entry in leaders],
    }


# ---------------------------------------------------------------------------
# TheSportsDB
# ---------------------------------------------------------------------------

def map_search_teams(payload):
    teams = []
    for raw in _dicts(_dig(payload, 'teams')):
        teams.append(serialize(SearchTeam(
            id=_str(raw.get('idTeam'), None),
            name=_str(raw.get('strTeam')),
            league=_str(raw.get('strLeague')),
            logo=_str(raw.get('strBadge') or raw.get('strTeamBadge')),
            sport=_str(raw.get('strSport')),
        )))
    return teams


def _score_team(raw, side, with_score):
    return ScoreTeam(
        id=_str(raw.get(f"id{side}Team"), None),
        name=_str(raw.get(f"str{side}Team")),
        score=_int(raw.get(f"int{side}Score")) if with_score else 0,
    )


def map_team_events(upcoming_payload, past_payload):
    """eventsnext + eventslast payloads -> ScoreEvent dicts"""
    events = []
    for raw in _dicts(_dig(upcoming_payload, 'events')):
        events.append(ScoreEvent(
            id=_str(raw.get('idEvent'), None),
            league=_str(raw.get('strLeague')),
            home_team=_score_team(raw, 'Home', False),
            away_team=_score_team(raw, 'Away', False),
            status='scheduled',
            scheduled_time=_str(raw.get('strTimestamp'), None),
        ))
    past = _dig(past_payload, 'results', default=_dig(past_payload, 'events'))
    for raw in _dicts(past):
        events.append(ScoreEvent(
            id=_str(raw.get('idEvent'), None),
            league=_str(raw.get('strLeague')),
            home_team=_score_team(raw, 'Home', True),
            away_team=_score_team(raw, 'Away', True),
            status='completed',
            completed_time=_str(raw.get('dateEvent'), None),
        ))
    return [serialize(event) for event in events]


