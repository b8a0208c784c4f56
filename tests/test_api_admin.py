from conftest import auth_headers, department, severity
from ova.models import Role


def test_user_crud(client, admin, db):
    h = auth_headers(admin)
    nursing = department(db, "Nursing").id
    role_id = db.query(Role).filter(Role.name == "EMPLOYEE").one().id
    body = {
        "name": "Jane Ward",
        "email": "Jane.Ward@ova.org",
        "password": "initial-pass",
        "department_id": nursing,
        "role_id": role_id,
    }
    r = client.post("/api/users/", headers=h, json=body)
    assert r.status_code == 201
    created = r.json()
    assert created["email"] == "jane.ward@ova.org"

    assert client.post("/api/users/", headers=h,
                       json=body).status_code == 409
    assert client.post("/api/users/",
                       headers=h,
                       json=dict(body, email="x@ova.org",
                                 role_id=9999)).status_code == 400

    login = client.post("/api/auth/login",
                        json={
                            "email": "jane.ward@ova.org",
                            "password": "initial-pass"
                        }).json()
    assert login["is_first_login"] is True

    r = client.delete(f"/api/users/{created['id']}", headers=h)
    assert r.json() == {"message": "Deactivated"}
    assert client.post("/api/auth/login",
                       json={
                           "email": "jane.ward@ova.org",
                           "password": "initial-pass"
                       }).status_code == 403

    assert client.delete(f"/api/users/{admin.id}",
                         headers=h).status_code == 400


def test_users_need_permission(client, make_user):
    r = client.get("/api/users/", headers=auth_headers(make_user()))
    assert r.status_code == 403


def test_roles(client, admin, make_user, db):
    h = auth_headers(admin)
    r = client.post("/api/roles/",
                    headers=h,
                    json={
                        "name": "auditor",
                        "permission_ids": []
                    })
    assert r.status_code == 201
    role = r.json()
    assert role["name"] == "AUDITOR"
    assert client.post("/api/roles/", headers=h,
                       json={"name": "Auditor"}).status_code == 409

    assert client.delete(f"/api/roles/{role['id']}",
                         headers=h).json() == {"message": "Deleted"}

    make_user("EMPLOYEE")
    employee = db.query(Role).filter(Role.name == "EMPLOYEE").one()
    r = client.delete(f"/api/roles/{employee.id}", headers=h)
    assert r.status_code == 409


def test_departments(client, admin, make_user, make_occurrence, db):
    from ova.services.occurrences import refer_occurrences

    h = auth_headers(admin)
    r = client.post("/api/departments/",
                    headers=h,
                    json={"name": "Pharmacy"})
    assert r.status_code == 201
    pharmacy = r.json()["id"]
    assert client.post("/api/departments/", headers=h,
                       json={"name": "Pharmacy"}).status_code == 409

    qa = make_user("QUALITY_ASSURANCE", "Quality")
    occ = make_occurrence(qa)
    refer_occurrences(db,
                      occurrence_ids=[occ.id],
                      department_ids=[pharmacy],
                      message=None,
                      user=qa)

    stats = client.get(f"/api/departments/{pharmacy}/stats",
                       headers=h).json()
    assert stats == {
        "total_occurrences": 1,
        "open_occurrences": 1,
        "completed_occurrences": 0,
        "high_risk_occurrences": 1,
    }
    page = client.get(f"/api/departments/{pharmacy}/occurrences",
                      headers=h).json()
    assert [o["id"] for o in page["items"]] == [occ.id]

    assert client.delete(f"/api/departments/{pharmacy}",
                         headers=h).status_code == 409


def test_notifications_endpoints(client, db, make_user, make_occurrence):
    from ova.services.occurrences import refer_occurrences

    manager = make_user("DEPARTMENT_MANAGER", "Nursing")
    qa = make_user("QUALITY_ASSURANCE", "Quality")
    mh = auth_headers(manager)

    r = client.put("/api/notifications/preferences",
                   headers=mh,
                   json={
                       "enabled": True,
                       "channel": "MOBILE",
                       "severity_ids": [severity(db, "HIGH").id],
                   })
    assert r.status_code == 200
    assert r.json()["channel"] == "MOBILE"

    occ = make_occurrence(qa)
    refer_occurrences(db,
                      occurrence_ids=[occ.id],
                      department_ids=[department(db, "Nursing").id],
                      message=None,
                      user=qa)

    listing = client.get("/api/notifications/", headers=mh).json()
    assert listing["count"] == 1
    n = listing["notifications"][0]
    assert n["type"] == "REFERRAL"
    assert n["reference_ids"] == [occ.id]

    # someone else's notification
    assert client.post(f"/api/notifications/{n['id']}/read",
                       headers=auth_headers(qa)).status_code == 404
    assert client.post(f"/api/notifications/{n['id']}/read",
                       headers=mh).status_code == 200
    assert client.get("/api/notifications/unread-count",
                      headers=mh).json() == {"count": 0}
    assert client.post("/api/notifications/read-all",
                       headers=mh).json() == {"updated": 0}


def test_preferences_reject_sub_incidents(client, make_user, taxonomy):
    r = client.put("/api/notifications/preferences",
                   headers=auth_headers(make_user()),
                   json={"incident_ids": [taxonomy["punching"].id]})
    assert r.status_code == 422


def test_report_exports(client, make_user, make_occurrence):
    qa = make_user("QUALITY_ASSURANCE", "Quality")
    make_occurrence(qa)
    h = auth_headers(qa)

    r = client.post("/api/reports/export?format=csv", headers=h, json={})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment" in r.headers["content-disposition"]
    assert r.text.splitlines()[0].startswith("Occurrence No")

    r = client.post("/api/reports/export?format=xlsx", headers=h, json={})
    assert r.status_code == 200
    assert r.content[:2] == b"PK"

    r = client.post("/api/reports/export?format=pdf", headers=h, json={})
    assert r.status_code == 422

    stats = client.post("/api/reports/statistics", headers=h,
                        json={}).json()
    assert stats["total_occurrences"] == 1

    # employees have no report access
    assert client.post("/api/reports/summary",
                       headers=auth_headers(make_user()),
                       json={}).status_code == 403


def test_dashboard_endpoint(client, make_user):
    qa = make_user("QUALITY_ASSURANCE", "Quality")
    r = client.get("/api/dashboard/", headers=auth_headers(qa))
    assert r.status_code == 200
    assert r.json()["is_department"] is False

    r = client.get("/api/dashboard/", headers=auth_headers(make_user()))
    assert r.status_code == 403
