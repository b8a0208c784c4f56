import pytest

from conftest import auth_headers, department
from ova.services.occurrences import refer_occurrences


@pytest.fixture()
def referred(db, make_user, make_occurrence):
    qa = make_user("QUALITY_ASSURANCE", "Quality")
    manager = make_user("DEPARTMENT_MANAGER", "Nursing")
    occ = make_occurrence(qa)
    [assignment_id] = refer_occurrences(
        db,
        occurrence_ids=[occ.id],
        department_ids=[department(db, "Nursing").id],
        message="Need the ward's view",
        user=qa)
    return {
        "qa": qa,
        "manager": manager,
        "occurrence": occ,
        "assignment_id": assignment_id
    }


def _issue(client, user, assignment_id):
    return client.post("/api/feedback/tokens",
                       headers=auth_headers(user),
                       json={"assignment_id": assignment_id})


def test_share_check_submit(client, referred):
    r = _issue(client, referred["manager"], referred["assignment_id"])
    assert r.status_code == 201
    out = r.json()
    assert out["emailed"] is False
    assert out["link"] == f"http://ova.test/feedback/{out['token']}"

    check = client.get(f"/api/feedback/{out['token']}").json()
    assert check["valid"] is True
    assert check["occurrence"]["department_name"] == "Nursing"
    assert check["occurrence"]["referral_message"] == "Need the ward's view"
    assert check["occurrence"]["occurrence_no"] == \
        referred["occurrence"].occurrence_no

    r = client.post("/api/feedback/submit",
                    json={
                        "token": out["token"],
                        "message": "Night shift was short two nurses"
                    })
    assert r.status_code == 200
    assert r.json()["message"] == "Feedback submitted"

    again = client.post("/api/feedback/submit",
                        json={
                            "token": out["token"],
                            "message": "Second answer"
                        })
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "already-used"

    check = client.get(f"/api/feedback/{out['token']}").json()
    assert check == {
        "valid": False,
        "reason": "already-used",
        "message": "Token already used",
        "expires_at": None,
        "occurrence": None,
    }

    tokens = client.get(
        f"/api/feedback/assignments/{referred['assignment_id']}",
        headers=auth_headers(referred["manager"])).json()
    assert tokens[0]["used"] is True
    assert tokens[0]["response_message"] == "Night shift was short two nurses"


def test_unknown_token(client):
    assert client.get("/api/feedback/nope").json()["reason"] == "invalid"
    r = client.post("/api/feedback/submit",
                    json={
                        "token": "nope",
                        "message": "hello"
                    })
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid"


def test_share_needs_permission(client, make_user, referred):
    emp = make_user("EMPLOYEE", "Nursing")
    assert _issue(client, emp,
                  referred["assignment_id"]).status_code == 403


def test_share_needs_access(client, make_user, referred):
    # right permission, wrong department
    other = make_user("DEPARTMENT_MANAGER", "Security")
    assert _issue(client, other,
                  referred["assignment_id"]).status_code == 403


def test_unknown_assignment(client, referred):
    assert _issue(client, referred["qa"], 9999).status_code == 404
