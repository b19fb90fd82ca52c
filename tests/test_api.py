import pytest

MENTAL = "arithmetic:add-10"


def record_body(token="api-1", correct=10):
    return {
        "trainerId": MENTAL,
        "attemptId": token,
        "kind": "mental",
        "level": "accuracy-input",
        "presetId": "accuracy-input",
        "total": 10,
        "correct": correct,
        "mistakes": 10 - correct,
        "time": 35,
        "won": False,
    }


@pytest.fixture
def authed(client, auth_cookies):
    client.cookies.update(auth_cookies)
    return client


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", f"/api/progress/trainer/{MENTAL}"),
        ("post", "/api/progress/record"),
        ("get", "/api/achievements"),
        ("get", "/api/stats/summary"),
        ("get", f"/api/trainers/{MENTAL}/presets"),
        ("get", "/api/challenge/today"),
    ],
)
async def test_routes_require_the_auth_cookie(client, method, path):
    response = await getattr(client, method)(path)
    assert response.status_code == 401


async def test_invalid_cookie_is_rejected(client):
    client.cookies.set("mt_auth", "forged.token")
    response = await client.get("/api/achievements")
    assert response.status_code == 401


async def test_progress_is_null_before_first_record(authed):
    response = await authed.get(f"/api/progress/trainer/{MENTAL}")
    assert response.status_code == 200
    assert response.json() == {"trainerId": MENTAL, "progress": None}


async def test_record_then_read_progress(authed):
    response = await authed.post("/api/progress/record", json=record_body())
    assert response.status_code == 200
    data = response.json()
    assert data["trainerId"] == MENTAL
    assert data["duplicate"] is False
    assert data["progress"]["accuracy-input"] is True
    unlocked = [a["id"] for a in data["newlyUnlockedAchievements"]]
    assert unlocked == ["first-10-problems", "perfect-session"]
    assert data["newlyUnlockedAchievements"][0]["iconKey"] == "star"

    again = await authed.post("/api/progress/record", json=record_body())
    assert again.json()["duplicate"] is True
    assert again.json()["newlyUnlockedAchievements"] == []

    progress = await authed.get(f"/api/progress/trainer/{MENTAL}")
    assert progress.json()["progress"] == {
        "accuracy-choice": False,
        "accuracy-input": True,
        "speed": False,
        "raceStars": 0,
    }


async def test_record_rejects_bad_input(authed):
    bad_kind = await authed.post("/api/progress/record", json={**record_body(), "kind": "drill"})
    assert bad_kind.status_code == 400
    assert bad_kind.json()["detail"] == "invalid_trainer"

    bad_level = await authed.post("/api/progress/record", json={**record_body(), "level": "lvl9"})
    assert bad_level.status_code == 400
    assert bad_level.json()["detail"] == "invalid_input"

    unknown = await authed.post("/api/progress/record", json={**record_body(), "trainerId": "column-cubes", "kind": "column"})
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "invalid_trainer"

    not_json = await authed.post(
        "/api/progress/record", content=b"{oops", headers={"content-type": "application/json"}
    )
    assert not_json.status_code == 400


async def test_unknown_trainer_progress_is_404(authed):
    response = await authed.get("/api/progress/trainer/column-cubes")
    assert response.status_code == 404


async def test_presets_view(authed):
    await authed.post("/api/progress/record", json=record_body())
    response = await authed.get(f"/api/trainers/{MENTAL}/presets")
    assert response.status_code == 200
    data = response.json()
    assert data["archetype"] == "mental"
    assert data["unlockPolicy"]["type"] == "custom"
    presets = {p["id"]: p for p in data["presets"]}
    assert presets["accuracy-input"]["completed"] is True
    assert presets["speed"]["locked"] is False
    assert presets["race:1"]["locked"] is True
    assert presets["race:1"]["reason"] == "Сначала пройди “Скорость”"
    assert data["crystals"] == {"earned": 10, "cap": 50, "preRaceDone": False}


async def test_stats_achievements_and_challenge(authed):
    await authed.post("/api/progress/record", json=record_body(correct=8))

    stats = (await authed.get("/api/stats/summary")).json()
    assert stats["totalProblems"] == 10
    assert stats["totalCorrect"] == 8
    assert stats["accuracyPct"] == 80.0
    assert stats["totalCrystals"] == 10
    assert len(stats["week"]) == 7
    assert stats["week"][-1]["successSessions"] == 1

    achievements = (await authed.get("/api/achievements")).json()["achievements"]
    first = next(a for a in achievements if a["id"] == "first-10-problems")
    assert first["unlockedAt"] is not None
    assert first["iconKey"] == "star"

    challenge = (await authed.get("/api/challenge/today")).json()
    assert challenge["today"]["progress"] == 1
    assert challenge["today"]["rewardCrystals"] == 50
    assert challenge["streak"]["streakDays"] == 1
    assert challenge["streak"]["milestoneRewardCrystals"] == 70
