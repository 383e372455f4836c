"""
Market metadata extraction: venue, teams and event type from free text.

Used once, at the normalisation boundary, so the scorer and ranker only
ever see typed ``Market.venue`` / ``Market.event_type`` / ``participants``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class Team:
    name: str
    league: str
    city: str


# ── Locations ────────────────────────────────────────────────────────

CITIES = (
    "New York", "Los Angeles", "Chicago", "Houston", "Phoenix", "Philadelphia",
    "San Antonio", "San Diego", "Dallas", "San Jose", "Austin", "Jacksonville",
    "Fort Worth", "Columbus", "Charlotte", "San Francisco", "Indianapolis",
    "Seattle", "Denver", "Washington", "Boston", "Nashville", "Detroit",
    "Oklahoma City", "Portland", "Las Vegas", "Memphis", "Louisville",
    "Baltimore", "Milwaukee", "Sacramento", "Kansas City", "Atlanta", "Miami",
    "Minneapolis", "Tampa", "New Orleans", "Cleveland", "Pittsburgh",
    "Cincinnati", "Orlando", "Buffalo", "Salt Lake City", "Green Bay",
    "Foxborough", "East Rutherford", "Glendale", "Arlington", "Santa Clara",
    "Inglewood", "Toronto", "Montreal", "Vancouver", "Mexico City",
    "London", "Paris", "Madrid", "Barcelona", "Manchester", "Liverpool",
    "Munich", "Milan", "Rome", "Tokyo", "Seoul", "Sydney", "Melbourne",
    "Dubai", "Mumbai", "Delhi", "Singapore", "Hong Kong", "Sao Paulo",
    "Buenos Aires", "Monaco", "Silverstone", "Augusta",
)

STATES = (
    "Alabama", "Alaska", "Arizona", "Arkansas", "California", "Colorado",
    "Connecticut", "Delaware", "Florida", "Georgia", "Hawaii", "Idaho",
    "Illinois", "Indiana", "Iowa", "Kansas", "Kentucky", "Louisiana",
    "Maine", "Maryland", "Massachusetts", "Michigan", "Minnesota", "Mississippi",
    "Missouri", "Montana", "Nebraska", "Nevada", "New Hampshire", "New Jersey",
    "New Mexico", "North Carolina", "North Dakota", "Ohio", "Oklahoma", "Oregon",
    "Pennsylvania", "Rhode Island", "South Carolina", "South Dakota",
    "Tennessee", "Texas", "Utah", "Vermont", "Virginia", "West Virginia",
    "Wisconsin", "Wyoming",
)


def _word_pattern(phrases: Iterable[str]) -> re.Pattern:
    # Longest first so "Kansas City" wins over "Kansas".
    ordered = sorted(phrases, key=len, reverse=True)
    return re.compile(
        r"\b(" + "|".join(re.escape(p) for p in ordered) + r")\b", re.IGNORECASE
    )


_CITY_RE = _word_pattern(CITIES)
_STATE_RE = _word_pattern(STATES)
_CANONICAL = {p.lower(): p for p in CITIES + STATES}


def extract_location(text: str | None) -> Optional[str]:
    """First city named in ``text``, else first US state, else None."""
    if not text:
        return None
    for pattern in (_CITY_RE, _STATE_RE):
        match = pattern.search(text)
        if match:
            return _CANONICAL[match.group(1).lower()]
    return None


# ── Teams ────────────────────────────────────────────────────────────
# Nicknames that are also ordinary words ("heat", "magic", "jazz",
# "thunder", "kings") or shared across leagues ("giants", "cardinals",
# "rangers") only match in their full city+name form.

_TEAM_TABLE: tuple[tuple[str, str, str, tuple[str, ...]], ...] = (
    # NFL
    ("Buffalo Bills", "NFL", "Buffalo", ("bills",)),
    ("Miami Dolphins", "NFL", "Miami", ("dolphins",)),
    ("New England Patriots", "NFL", "Foxborough", ("patriots",)),
    ("New York Jets", "NFL", "East Rutherford", ()),
    ("Baltimore Ravens", "NFL", "Baltimore", ("ravens",)),
    ("Cincinnati Bengals", "NFL", "Cincinnati", ("bengals",)),
    ("Cleveland Browns", "NFL", "Cleveland", ("browns",)),
    ("Pittsburgh Steelers", "NFL", "Pittsburgh", ("steelers",)),
    ("Houston Texans", "NFL", "Houston", ("texans",)),
    ("Indianapolis Colts", "NFL", "Indianapolis", ("colts",)),
    ("Jacksonville Jaguars", "NFL", "Jacksonville", ("jaguars",)),
    ("Tennessee Titans", "NFL", "Nashville", ("titans",)),
    ("Denver Broncos", "NFL", "Denver", ("broncos",)),
    ("Kansas City Chiefs", "NFL", "Kansas City", ("chiefs",)),
    ("Las Vegas Raiders", "NFL", "Las Vegas", ("raiders",)),
    ("Los Angeles Chargers", "NFL", "Inglewood", ("chargers",)),
    ("Dallas Cowboys", "NFL", "Arlington", ("cowboys",)),
    ("New York Giants", "NFL", "East Rutherford", ()),
    ("Philadelphia Eagles", "NFL", "Philadelphia", ("eagles",)),
    ("Washington Commanders", "NFL", "Washington", ("commanders",)),
    ("Chicago Bears", "NFL", "Chicago", ("bears",)),
    ("Detroit Lions", "NFL", "Detroit", ("lions",)),
    ("Green Bay Packers", "NFL", "Green Bay", ("packers",)),
    ("Minnesota Vikings", "NFL", "Minneapolis", ("vikings",)),
    ("Atlanta Falcons", "NFL", "Atlanta", ("falcons",)),
    ("Carolina Panthers", "NFL", "Charlotte", ()),
    ("New Orleans Saints", "NFL", "New Orleans", ("saints",)),
    ("Tampa Bay Buccaneers", "NFL", "Tampa", ("buccaneers", "bucs")),
    ("Arizona Cardinals", "NFL", "Glendale", ()),
    ("Los Angeles Rams", "NFL", "Inglewood", ()),
    ("San Francisco 49ers", "NFL", "Santa Clara", ("49ers", "niners")),
    ("Seattle Seahawks", "NFL", "Seattle", ("seahawks",)),
    # NBA
    ("Boston Celtics", "NBA", "Boston", ("celtics",)),
    ("Brooklyn Nets", "NBA", "New York", ()),
    ("New York Knicks", "NBA", "New York", ("knicks",)),
    ("Philadelphia 76ers", "NBA", "Philadelphia", ("76ers", "sixers")),
    ("Toronto Raptors", "NBA", "Toronto", ("raptors",)),
    ("Chicago Bulls", "NBA", "Chicago", ()),
    ("Cleveland Cavaliers", "NBA", "Cleveland", ("cavaliers", "cavs")),
    ("Detroit Pistons", "NBA", "Detroit", ("pistons",)),
    ("Indiana Pacers", "NBA", "Indianapolis", ("pacers",)),
    ("Milwaukee Bucks", "NBA", "Milwaukee", ("bucks",)),
    ("Atlanta Hawks", "NBA", "Atlanta", ()),
    ("Charlotte Hornets", "NBA", "Charlotte", ("hornets",)),
    ("Miami Heat", "NBA", "Miami", ()),
    ("Orlando Magic", "NBA", "Orlando", ()),
    ("Washington Wizards", "NBA", "Washington", ("wizards",)),
    ("Denver Nuggets", "NBA", "Denver", ("nuggets",)),
    ("Minnesota Timberwolves", "NBA", "Minneapolis", ("timberwolves",)),
    ("Oklahoma City Thunder", "NBA", "Oklahoma City", ()),
    ("Portland Trail Blazers", "NBA", "Portland", ("trail blazers", "blazers")),
    ("Utah Jazz", "NBA", "Salt Lake City", ()),
    ("Golden State Warriors", "NBA", "San Francisco", ("warriors",)),
    ("Los Angeles Clippers", "NBA", "Los Angeles", ("clippers",)),
    ("Los Angeles Lakers", "NBA", "Los Angeles", ("lakers",)),
    ("Phoenix Suns", "NBA", "Phoenix", ()),
    ("Sacramento Kings", "NBA", "Sacramento", ()),
    ("Dallas Mavericks", "NBA", "Dallas", ("mavericks", "mavs")),
    ("Houston Rockets", "NBA", "Houston", ()),
    ("Memphis Grizzlies", "NBA", "Memphis", ("grizzlies",)),
    ("New Orleans Pelicans", "NBA", "New Orleans", ("pelicans",)),
    ("San Antonio Spurs", "NBA", "San Antonio", ("spurs",)),
    # MLB
    ("Arizona Diamondbacks", "MLB", "Phoenix", ("diamondbacks",)),
    ("Atlanta Braves", "MLB", "Atlanta", ("braves",)),
    ("Baltimore Orioles", "MLB", "Baltimore", ("orioles",)),
    ("Boston Red Sox", "MLB", "Boston", ("red sox",)),
    ("Chicago Cubs", "MLB", "Chicago", ("cubs",)),
    ("Chicago White Sox", "MLB", "Chicago", ("white sox",)),
    ("Cincinnati Reds", "MLB", "Cincinnati", ()),
    ("Cleveland Guardians", "MLB", "Cleveland", ("guardians",)),
    ("Colorado Rockies", "MLB", "Denver", ("rockies",)),
    ("Detroit Tigers", "MLB", "Detroit", ()),
    ("Houston Astros", "MLB", "Houston", ("astros",)),
    ("Kansas City Royals", "MLB", "Kansas City", ()),
    ("Los Angeles Angels", "MLB", "Los Angeles", ()),
    ("Los Angeles Dodgers", "MLB", "Los Angeles", ("dodgers",)),
    ("Miami Marlins", "MLB", "Miami", ("marlins",)),
    ("Milwaukee Brewers", "MLB", "Milwaukee", ("brewers",)),
    ("Minnesota Twins", "MLB", "Minneapolis", ()),
    ("New York Mets", "MLB", "New York", ("mets",)),
    ("New York Yankees", "MLB", "New York", ("yankees",)),
    ("Athletics", "MLB", "Sacramento", ("oakland athletics",)),
    ("Philadelphia Phillies", "MLB", "Philadelphia", ("phillies",)),
    ("Pittsburgh Pirates", "MLB", "Pittsburgh", ()),
    ("San Diego Padres", "MLB", "San Diego", ("padres",)),
    ("San Francisco Giants", "MLB", "San Francisco", ()),
    ("Seattle Mariners", "MLB", "Seattle", ("mariners",)),
    ("St. Louis Cardinals", "MLB", "St. Louis", ("st louis cardinals",)),
    ("Tampa Bay Rays", "MLB", "Tampa", ()),
    ("Texas Rangers", "MLB", "Arlington", ()),
    ("Toronto Blue Jays", "MLB", "Toronto", ("blue jays",)),
    ("Washington Nationals", "MLB", "Washington", ("nationals",)),
)

TEAMS: tuple[tuple[re.Pattern, Team], ...] = tuple(
    (_word_pattern((name,) + aliases), Team(name, league, city))
    for name, league, city, aliases in _TEAM_TABLE
)


def extract_teams(text: str | None) -> list[Team]:
    """Teams named in ``text``, in table order, without duplicates."""
    if not text:
        return []
    return [team for pattern, team in TEAMS if pattern.search(text)]


# ── Event type ───────────────────────────────────────────────────────

SPORT_EVENT_TYPES = frozenset({
    "NFL", "NBA", "MLB", "NHL", "Soccer", "Golf", "Tennis", "Cricket",
    "Rugby", "F1", "Marathon", "Sports",
})

# Order matters: first matching tag wins.
_TAG_EVENT_TYPES = (
    ("nfl", "NFL"), ("nba", "NBA"), ("mlb", "MLB"), ("nhl", "NHL"),
    ("golf", "Golf"), ("tennis", "Tennis"), ("soccer", "Soccer"),
    ("premier league", "Soccer"), ("champions league", "Soccer"),
    ("cricket", "Cricket"), ("rugby", "Rugby"), ("f1", "F1"),
    ("formula 1", "F1"), ("weather", "Weather"), ("climate", "Weather"),
    ("sports", "Sports"),
)

# Soccer before American football so "football club" is not read as NFL.
_TEXT_EVENT_TYPES = (
    (re.compile(r"\b(soccer|premier league|champions league|la liga|serie a|"
                r"bundesliga|mls|fc)\b", re.I), "Soccer"),
    (re.compile(r"\bnfl\b|\bsuper bowl\b|\bamerican football\b", re.I), "NFL"),
    (re.compile(r"\bnba\b|\bbasketball\b", re.I), "NBA"),
    (re.compile(r"\bmlb\b|\bbaseball\b|\bworld series\b", re.I), "MLB"),
    (re.compile(r"\bnhl\b|\bhockey\b|\bstanley cup\b", re.I), "NHL"),
    (re.compile(r"\bmarathon\b", re.I), "Marathon"),
    (re.compile(r"\b(golf|pga|masters tournament|ryder cup)\b", re.I), "Golf"),
    (re.compile(r"\b(tennis|wimbledon|atp|wta|us open|french open|"
                r"australian open)\b", re.I), "Tennis"),
    (re.compile(r"\b(cricket|ipl|t20)\b", re.I), "Cricket"),
    (re.compile(r"\brugby\b", re.I), "Rugby"),
    (re.compile(r"\b(f1|formula 1|grand prix)\b", re.I), "F1"),
    (re.compile(r"\bfootball\b", re.I), "Soccer"),
)


def infer_event_type(
    title: str,
    description: str = "",
    tags: Iterable[str] = (),
    teams: Iterable[Team] = (),
) -> Optional[str]:
    """Tags first, then named teams, then keyword patterns over the text."""
    tag_text = " ".join(t.lower() for t in tags)
    for needle, event_type in _TAG_EVENT_TYPES:
        if re.search(rf"\b{re.escape(needle)}\b", tag_text):
            # A generic "Sports" tag is weaker than a named team or league.
            if event_type != "Sports":
                return event_type
            break

    teams = list(teams)
    if teams:
        return teams[0].league

    text = f"{title} {description}"
    for pattern, event_type in _TEXT_EVENT_TYPES:
        if pattern.search(text):
            return event_type

    return "Sports" if "sports" in tag_text else None


def is_sport(event_type: Optional[str]) -> bool:
    return event_type in SPORT_EVENT_TYPES
