import pytest
from fastapi.testclient import TestClient

from conftest import SQUAD, XI_442, pick
from main import app

ADMIN = {"X-User-Id": "admin", "X-User-Role": "admin"}
U1 = {"X-User-Id": "u1"}


@pytest.fixture
def client(db):
    return TestClient(app)


def test_rules(client):
    body = client.get("/api/rules").json()
    assert body["squad_size"] == 15
    assert body["free_transfers"] == 3
    assert body["lineup"]["starting_size"] == 11


def test_seeding_is_admin_only(client):
    r = client.post("/api/clubs", json={"name": "Rovers"}, headers=U1)
    assert r.status_code == 403
    assert r.json()["reason"] == "forbidden"

    club = client.post("/api/clubs", json={"name": "Rovers"}, headers=ADMIN).json()["id"]
    r = client.post("/api/players", json={"name": "Keeper", "club_id": club, "position": "GK", "price": 7.5},
                    headers=ADMIN)
    assert r.status_code == 200
    r = client.post("/api/players", json={"name": "Pricey", "club_id": club, "position": "ST", "price": 13},
                    headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["reason"] == "price"
    assert [p["name"] for p in client.get("/api/players").json()] == ["Keeper"]


def test_fixture_creates_match(client, league):
    r = client.post("/api/fixtures", json={"gameweek_id": league["gw2"], "home_club_id": league["c2"],
                                           "away_club_id": league["c4"]}, headers=ADMIN)
    match_id = r.json()["match_id"]
    assert client.get(f"/api/matches/{match_id}").json()["result"] == "0-0"
    assert len(client.get("/api/fixtures", params={"gameweek_id": league["gw2"]}).json()) == 1


def test_requires_identity(client, league):
    r = client.post("/api/fantasy/teams", json={"team_name": "x", "player_ids": pick(league, SQUAD)})
    assert r.status_code == 401


def test_team_lifecycle(client, league):
    r = client.post("/api/fantasy/teams", json={"team_name": "Team One", "player_ids": pick(league, SQUAD)},
                    headers=U1)
    assert r.status_code == 200
    team = r.json()
    assert team["effective_gameweek"] == 1
    assert len(team["players"]) == 15

    r = client.put(f"/api/fantasy/teams/{team['id']}/lineup", headers=U1, json={
        "starting_player_ids": pick(league, XI_442), "captain": league["f1"], "vice_captain": league["m1"],
    })
    assert r.status_code == 200
    assert r.json()["captain"] == league["f1"]
    assert "1" in r.json()["lineup_snapshots"]

    r = client.post(f"/api/fantasy/teams/{team['id']}/transfers", headers=U1,
                    json={"transfers": [{"out": league["d5"], "in": league["d6"]}]})
    assert r.status_code == 200
    assert r.json()["transfers"]["used_in_gw"] == 1

    me = client.get("/api/fantasy/teams/me", headers=U1).json()
    assert me["id"] == team["id"]


def test_errors_carry_reason(client, league):
    r = client.post("/api/fantasy/teams", json={"team_name": "Short", "player_ids": pick(league, SQUAD[:14])},
                    headers=U1)
    assert r.status_code == 400
    assert r.json()["reason"] == "squad_size"

    r = client.get("/api/fantasy/teams/9999")
    assert r.status_code == 404
    assert r.json()["reason"] == "not_found"

    r = client.patch(f"/api/matches/{league['match1']}", json={"fulltime": True}, headers=U1)
    assert r.status_code == 403


def test_match_update_over_http(client, league):
    r = client.patch(f"/api/matches/{league['match1']}", headers=ADMIN, json={
        "goals": [{"scorer": league["f1"], "team": "away"}],
        "fulltime": True,
    })
    assert r.status_code == 200
    body = r.json()
    assert body["result"] == "0-1"
    assert body["fulltime"] and body["fantasy_processed"]
