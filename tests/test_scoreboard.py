"""
Tests for scoreboard aggregation.
"""
from datetime import date

import pytest

from app.models import GameStatus
from app.scoreboard import (
    get_game,
    get_scoreboard,
    get_team_game_log,
    parse_calendar_date,
    parse_scoreboard,
    parse_status,
)
from conftest import http_error
from payloads import competitor, event, final_game, scoreboard, scoreboard_route

NBA_STATS_ROUTE = "stats.nba.com/stats/scoreboardv2"


def march_15_slate():
    """Eight games on 2024-03-15: three final, two live, three scheduled."""
    return scoreboard([
        final_game("401", "BOS", "PHX", 127, 112, "53-14", "38-29"),
        final_game("402", "DEN", "MIN", 100, 115, "46-21", "47-20"),
        final_game("403", "MIA", "DET", 104, 101, "36-30", "10-57"),
        event("404", competitor("LAL", "58", "home", "36-32"), competitor("SAC", "61", "away", "38-28"),
              state="in", completed=False, period=3, clock="5:12", detail="3rd 5:12"),
        event("405", competitor("GSW", "22", "home"), competitor("NYK", "30", "away"),
              state="in", completed=False, period=1, clock="0.0", detail="End of 1st"),
        event("406", competitor("UTA", "0", "home"), competitor("POR", "0", "away"),
              state="pre", completed=False, period=0, clock="0.0", detail="9:00 PM ET"),
        event("407", competitor("OKC", None, "home"), competitor("MEM", None, "away"),
              state="pre", completed=False, period=0, detail="9:30 PM ET"),
        event("408", competitor("SAS", None, "home"), competitor("NOP", None, "away"),
              state="pre", completed=False, period=0, detail="10:00 PM ET"),
    ])


def test_date_slate(fake_client):
    fake_client.add(scoreboard_route("20240315"), march_15_slate())

    result = get_scoreboard("2024-03-15", client=fake_client)

    assert result.game_date == "2024-03-15"
    assert result.source == "espn"
    assert len(result.games) == 8
    statuses = [g.status for g in result.games]
    assert statuses.count(GameStatus.FINAL) == 3
    assert statuses.count(GameStatus.LIVE) == 2
    assert statuses.count(GameStatus.SCHEDULED) == 3


def test_final_games_carry_consistent_winner(fake_client):
    fake_client.add(scoreboard_route("20240315"), march_15_slate())
    result = get_scoreboard(date(2024, 3, 15), client=fake_client)

    for game in result.games:
        if game.status == GameStatus.FINAL:
            assert game.home.winner is not game.away.winner
            winner = game.home if game.home.winner else game.away
            loser = game.away if game.home.winner else game.home
            assert winner.score > loser.score
        else:
            assert game.home.winner is None and game.away.winner is None


def test_game_fields(fake_client):
    fake_client.add(scoreboard_route("20240315"), march_15_slate())
    games = {g.game_id: g for g in get_scoreboard("2024-03-15", client=fake_client).games}

    boston = games["401"]
    assert boston.home.tricode == "BOS"
    assert boston.home.record == "53-14"
    assert boston.game_code == "PHXBOS"

    live = games["404"]
    assert live.period == 3
    assert live.clock == "5:12"
    assert live.status_text == "3rd 5:12"

    # provider abbreviations normalize to tricodes
    assert games["405"].home.tricode == "GSW"
    assert games["405"].away.tricode == "NYK"
    assert games["406"].home.tricode == "UTA"
    assert games["408"].away.tricode == "NOP"

    assert games["407"].home.score is None


def test_same_date_is_idempotent(fake_client):
    fake_client.add(scoreboard_route("20240315"), march_15_slate())
    first = get_scoreboard("2024-03-15", client=fake_client).to_dict()
    second = get_scoreboard("20240315", client=fake_client).to_dict()
    assert first == second


def test_completed_wins_over_state():
    status = parse_status({"period": 4, "type": {"state": "in", "completed": True, "detail": "Final"}})
    assert status["status"] == GameStatus.FINAL
    assert parse_status({"type": {"state": "in"}})["status"] == GameStatus.LIVE
    assert parse_status({"type": {"state": "pre"}})["status"] == GameStatus.SCHEDULED
    assert parse_status(None)["status"] == GameStatus.SCHEDULED


def test_tied_final_has_no_winner():
    payload = scoreboard([final_game("1", "BOS", "NYK", 100, 100)])
    game = parse_scoreboard(payload, date(2024, 3, 15)).games[0]
    assert game.home.winner is None
    assert game.away.winner is None


@pytest.mark.parametrize("payload", [{}, {"events": []}, {"events": None}, [], "oops", None])
def test_empty_or_malformed_payload_gives_no_games(payload):
    result = parse_scoreboard(payload, date(2024, 7, 4))
    assert result.games == []
    assert result.game_date == "2024-07-04"


def test_malformed_events_are_skipped():
    good = final_game("1", "BOS", "NYK", 100, 90)
    no_away = event("2", competitor("LAL", "1", "home"), competitor("DEN", "1", "home"))
    payload = scoreboard([good, no_away, {"id": "3"}, "junk"])
    result = parse_scoreboard(payload, date(2024, 3, 15))
    assert [g.game_id for g in result.games] == ["1"]


def test_game_date_comes_from_provider_day():
    result = parse_scoreboard(scoreboard([], day="2024-03-16"), date(2024, 3, 15))
    assert result.game_date == "2024-03-16"


def test_off_day_returns_empty_scoreboard(fake_client):
    fake_client.add(scoreboard_route("20240704"), {"events": []})
    result = get_scoreboard("2024-07-04", client=fake_client)
    assert result is not None
    assert result.games == []
    assert fake_client.calls_matching(NBA_STATS_ROUTE) == []


def test_secondary_provider_used_when_primary_fails(fake_client):
    fake_client.add(scoreboard_route("20240315"), http_error(503))
    fake_client.add(NBA_STATS_ROUTE, {
        "resultSets": [
            {
                "name": "GameHeader",
                "headers": ["GAME_ID", "GAME_DATE_EST", "GAME_STATUS_ID", "GAME_STATUS_TEXT",
                            "HOME_TEAM_ID", "VISITOR_TEAM_ID", "LIVE_PERIOD", "LIVE_PC_TIME"],
                "rowSet": [["0022300950", "2024-03-15T00:00:00", 3, "Final", 1610612738, 1610612756, 4, " "]],
            },
            {
                "name": "LineScore",
                "headers": ["GAME_ID", "TEAM_ID", "TEAM_ABBREVIATION", "TEAM_CITY_NAME",
                            "TEAM_NAME", "TEAM_WINS_LOSSES", "PTS"],
                "rowSet": [
                    ["0022300950", 1610612738, "BOS", "Boston", "Celtics", "53-14", 127],
                    ["0022300950", 1610612756, "PHX", "Phoenix", "Suns", "38-29", 112],
                ],
            },
        ]
    })

    result = get_scoreboard("2024-03-15", client=fake_client)

    assert result.source == "nba-stats"
    assert len(result.games) == 1
    game = result.games[0]
    assert game.status == GameStatus.FINAL
    assert game.home.tricode == "BOS"
    assert game.home.winner is True
    assert game.away.record == "38-29"
    assert "GameDate=2024-03-15" in fake_client.calls_matching(NBA_STATS_ROUTE)[0]


def test_both_providers_failing_returns_none(fake_client):
    fake_client.add(scoreboard_route("20240315"), http_error(500))
    fake_client.add(NBA_STATS_ROUTE, http_error(503))
    assert get_scoreboard("2024-03-15", client=fake_client) is None


@pytest.mark.parametrize("value", ["2024-13-01", "March 15", "", "2024/03/15"])
def test_invalid_date_rejected(fake_client, value):
    with pytest.raises(ValueError):
        get_scoreboard(value, client=fake_client)
    assert fake_client.calls == []


def test_parse_calendar_date_formats():
    assert parse_calendar_date("2024-03-15") == date(2024, 3, 15)
    assert parse_calendar_date("20240315") == date(2024, 3, 15)
    assert parse_calendar_date(date(2024, 3, 15)) == date(2024, 3, 15)


def test_get_game(fake_client):
    game = final_game("401", "BOS", "PHX", 127, 112)
    fake_client.add("summary?event=401", {
        "header": {"id": "401", "competitions": [dict(game["competitions"][0], date="2024-03-15T23:00Z")]}
    })

    result = get_game("401", client=fake_client)

    assert result.game_id == "401"
    assert result.home.tricode == "BOS"
    assert result.home.winner is True
    assert result.start_time_utc == "2024-03-15T23:00Z"


def test_get_game_missing(fake_client):
    assert get_game("999", client=fake_client) is None
    fake_client.add("summary?event=998", {"header": {}})
    assert get_game("998", client=fake_client) is None


def test_team_game_log_most_recent_first(fake_client):
    events = [
        final_game("1", "LAL", "BOS", 100, 110),
        final_game("2", "DEN", "LAL", 99, 120),
        final_game("3", "LAL", "GSW", 130, 101),
        event("4", competitor("LAL", None, "home"), competitor("SAC", None, "away"),
              state="pre", completed=False),
    ]
    fake_client.add("teams/13/schedule", {"events": events})

    log = get_team_game_log("Lakers", limit=2, client=fake_client)

    assert [g.game_id for g in log] == ["3", "2"]
    assert log[0].opponent == "GSW"
    assert log[0].home is True
    assert log[0].result == "W"
    assert log[1].home is False
    assert log[1].team_score == 120


def test_team_game_log_unknown_team_and_failure(fake_client):
    assert get_team_game_log("xyz", client=fake_client) == []
    fake_client.add("teams/13/schedule", http_error(503))
    assert get_team_game_log("LAL", client=fake_client) is None
