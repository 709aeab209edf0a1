import json
from datetime import date

from fastapi.testclient import TestClient

from mutualaid.api.dependencies import get_db
from mutualaid.auth.jwt import get_current_user
from mutualaid.constants import MemberStatus, Role
from mutualaid.main import app
from mutualaid.models.models import ActivityLog, Member

CURRENT_YEAR = date.today().year


def _override_get_db(session):
    def _inner():
        try:
            yield session
        finally:
            pass
    return _inner


def _override_user(user):
    def _inner():
        return user
    return _inner


def _client(db_session, user) -> TestClient:
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    app.dependency_overrides[get_current_user] = _override_user(user)
    return TestClient(app)


def _activity_types(db_session):
    return [entry.activity_type for entry in db_session.query(ActivityLog).order_by(ActivityLog.id).all()]


def test_register_member_generates_number_and_logs_activity(db_session, create_user):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    client = _client(db_session, treasurer)
    try:
        resp = client.post(
            "/members/",
            json={
                "name": "Ana Santos",
                "email": "ana@example.com",
                "registration_year": CURRENT_YEAR - 1,
                "payments": [{"year": CURRENT_YEAR, "amount": "780"}],
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["member_number"].startswith(f"GM{CURRENT_YEAR}")
        assert data["delinquent_years"] == 0
        assert data["status"] == MemberStatus.ACTIVE.value
        assert _activity_types(db_session) == ["member_added"]
        entry = db_session.query(ActivityLog).one()
        assert entry.actor_user_id == treasurer.id
        assert entry.actor_name == "Treasurer"
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_register_member_rejects_duplicate_payment_years(db_session, create_user):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    client = _client(db_session, treasurer)
    try:
        resp = client.post(
            "/members/",
            json={
                "name": "Dup Years",
                "registration_year": CURRENT_YEAR - 3,
                "payments": [{"year": CURRENT_YEAR}, {"year": CURRENT_YEAR}],
            },
        )
        assert resp.status_code == 422
        assert db_session.query(Member).count() == 0
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_secretary_cannot_register_members(db_session, create_user):
    secretary = create_user(email="secretary@example.com", role=Role.SECRETARY)
    client = _client(db_session, secretary)
    try:
        resp = client.post("/members/", json={"name": "Nope"})
        assert resp.status_code == 403
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_list_members_includes_latest_payment(db_session, create_user, create_member):
    viewer = create_user(email="viewer@example.com", role=Role.MEMBER)
    member = create_member(
        name="Listed",
        registration_year=CURRENT_YEAR - 3,
        paid_years=(CURRENT_YEAR - 2, CURRENT_YEAR - 1),
    )
    client = _client(db_session, viewer)
    try:
        resp = client.get("/members/")
        assert resp.status_code == 200
        rows = resp.json()
        assert [row["id"] for row in rows] == [member.id]
        assert rows[0]["latest_payment"]["year"] == CURRENT_YEAR - 1
        assert rows[0]["delinquent_years"] == 1
        assert rows[0]["status"] == MemberStatus.INACTIVE.value
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_adding_payment_recomputes_delinquency(db_session, create_user, create_member):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    member = create_member(name="Late", registration_year=CURRENT_YEAR - 4, paid_years=(CURRENT_YEAR - 2,))
    assert member.delinquent_years == 3
    assert member.status == MemberStatus.INACTIVE.value

    client = _client(db_session, treasurer)
    try:
        resp = client.post(f"/members/{member.id}/payments", json={"year": CURRENT_YEAR})
        assert resp.status_code == 200
        assert resp.json()["is_paid"] is True
        assert resp.json()["date"] == date.today().isoformat()

        resp = client.get(f"/members/{member.id}/payments")
        assert resp.status_code == 200
        detail = resp.json()
        assert detail["unpaid_years"] == [CURRENT_YEAR - 3, CURRENT_YEAR - 1]
        assert detail["delinquent_years"] == 2
        assert detail["total_delinquent_amount"] in ("1560", "1560.00", 1560)
        assert detail["status"] == MemberStatus.ACTIVE.value
        assert "payment_added" in _activity_types(db_session)
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_adding_payment_twice_for_same_year_replaces_it(db_session, create_user, create_member):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    member = create_member(name="Twice", registration_year=CURRENT_YEAR - 1)
    client = _client(db_session, treasurer)
    try:
        client.post(f"/members/{member.id}/payments", json={"year": CURRENT_YEAR, "amount": "700"})
        resp = client.post(f"/members/{member.id}/payments", json={"year": CURRENT_YEAR, "amount": "780"})
        assert resp.status_code == 200
        db_session.refresh(member)
        assert len(member.payments) == 1
        assert member.payments[0].amount == 780
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_update_payment_for_missing_year_is_not_found(db_session, create_user, create_member):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    member = create_member(name="Missing", registration_year=CURRENT_YEAR - 2)
    client = _client(db_session, treasurer)
    try:
        resp = client.put(f"/members/{member.id}/payments/{CURRENT_YEAR}", json={"amount": "500"})
        assert resp.status_code == 404
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_marking_payment_unpaid_increases_delinquency(db_session, create_user, create_member):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    member = create_member(name="Flip", registration_year=CURRENT_YEAR - 1, paid_years=(CURRENT_YEAR,))
    assert member.delinquent_years == 0
    client = _client(db_session, treasurer)
    try:
        resp = client.put(f"/members/{member.id}/payments/{CURRENT_YEAR}", json={"is_paid": False})
        assert resp.status_code == 200
        db_session.refresh(member)
        assert member.delinquent_years == 1
        assert member.status == MemberStatus.INACTIVE.value
        assert "payment_updated" in _activity_types(db_session)
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_terminal_status_survives_recompute(db_session, create_user, create_member):
    president = create_user(email="president@example.com", role=Role.PRESIDENT)
    member = create_member(name="Served", registration_year=CURRENT_YEAR - 8)
    client = _client(db_session, president)
    try:
        resp = client.put(f"/members/{member.id}/status", json={"status": "Served"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "Served"

        resp = client.post("/members/recompute")
        assert resp.status_code == 200
        db_session.refresh(member)
        assert member.status == MemberStatus.SERVED.value
        assert member.delinquent_years == 8
        assert "status_changed" in _activity_types(db_session)
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_manual_active_status_is_recomputed(db_session, create_user, create_member):
    president = create_user(email="president@example.com", role=Role.PRESIDENT)
    member = create_member(name="Dropped", registration_year=CURRENT_YEAR - 6)
    assert member.status == MemberStatus.DROPPED.value
    client = _client(db_session, president)
    try:
        resp = client.put(f"/members/{member.id}/status", json={"status": "Active"})
        assert resp.status_code == 200
        assert resp.json()["status"] == MemberStatus.DROPPED.value
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_update_member_details(db_session, create_user, create_member):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    member = create_member(name="Rename", registration_year=CURRENT_YEAR - 1)
    client = _client(db_session, treasurer)
    try:
        resp = client.put(f"/members/{member.id}", json={"phone": "0917-555-0100", "address": "Quezon City"})
        assert resp.status_code == 200
        assert resp.json()["phone"] == "0917-555-0100"
        entry = db_session.query(ActivityLog).filter(ActivityLog.activity_type == "member_updated").one()
        details = json.loads(entry.details)
        assert details["after"]["address"] == "Quezon City"
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_update_ignores_null_for_required_fields(db_session, create_user, create_member):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    member = create_member(name="Keep", registration_year=CURRENT_YEAR - 2)
    client = _client(db_session, treasurer)
    try:
        resp = client.put(f"/members/{member.id}", json={"registration_year": None})
        assert resp.status_code == 200
        assert resp.json()["registration_year"] == CURRENT_YEAR - 2

        resp = client.put(f"/members/{member.id}", json={"name": None, "notes": "Moved to Cebu"})
        assert resp.status_code == 200
        assert resp.json()["name"] == member.name
        assert resp.json()["notes"] == "Moved to Cebu"
        assert resp.json()["delinquent_years"] == 2
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_recompute_logs_each_status_change(db_session, create_user, create_member):
    president = create_user(email="president@example.com", role=Role.PRESIDENT)
    stale = create_member(name="Stale", registration_year=CURRENT_YEAR - 6)
    current = create_member(name="Current", registration_year=CURRENT_YEAR - 1, paid_years=[CURRENT_YEAR - 1, CURRENT_YEAR])
    stale.status = MemberStatus.ACTIVE.value
    db_session.commit()
    client = _client(db_session, president)
    try:
        resp = client.post("/members/recompute")
        assert resp.status_code == 200
        assert resp.json()["updated"] == 1

        entries = db_session.query(ActivityLog).filter(ActivityLog.activity_type == "status_changed").all()
        assert [entry.target_entity_id for entry in entries] == [str(stale.id)]
        assert entries[0].actor_user_id == president.id
        assert json.loads(entries[0].details) == {"before": "Active", "after": "Dropped"}
        db_session.refresh(current)
        assert current.status == MemberStatus.ACTIVE.value
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_delete_requires_confirmation(db_session, create_user, create_member):
    treasurer = create_user(email="treasurer@example.com", role=Role.TREASURER)
    member = create_member(name="Gone", registration_year=CURRENT_YEAR - 2, paid_years=(CURRENT_YEAR - 1,))
    member_id = member.id
    client = _client(db_session, treasurer)
    try:
        resp = client.delete(f"/members/{member_id}")
        assert resp.status_code == 400
        assert db_session.get(Member, member_id) is not None

        resp = client.delete(f"/members/{member_id}", params={"confirm": "true"})
        assert resp.status_code == 204
        db_session.expire_all()
        assert db_session.get(Member, member_id) is None
        assert "member_deleted" in _activity_types(db_session)

        resp = client.delete(f"/members/{member_id}", params={"confirm": "true"})
        assert resp.status_code == 404
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_member_can_only_view_own_payment_history(db_session, create_user, create_member):
    own = create_member(name="Own", registration_year=CURRENT_YEAR - 2)
    other = create_member(name="Other", registration_year=CURRENT_YEAR - 2)
    viewer = create_user(email="member@example.com", role=Role.MEMBER, member_number=own.member_number)
    client = _client(db_session, viewer)
    try:
        assert client.get(f"/members/{own.id}/payments").status_code == 200
        assert client.get(f"/members/{other.id}/payments").status_code == 403

        resp = client.get("/members/me")
        assert resp.status_code == 200
        assert resp.json()["member_number"] == own.member_number
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_unlinked_user_has_no_member_record(db_session, create_user):
    viewer = create_user(email="lonely@example.com", role=Role.MEMBER)
    client = _client(db_session, viewer)
    try:
        assert client.get("/members/me").status_code == 404
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_birthday_celebrants_endpoint(db_session, create_user, create_member):
    viewer = create_user(email="viewer@example.com", role=Role.MEMBER)
    celebrant = create_member(name="Birthday", date_of_birth=date(1990, 3, 15))
    create_member(name="Other Day", date_of_birth=date(1990, 3, 16))
    create_member(name="Unknown")
    client = _client(db_session, viewer)
    try:
        resp = client.get("/members/birthdays", params={"on": "2024-03-15"})
        assert resp.status_code == 200
        assert [row["id"] for row in resp.json()] == [celebrant.id]
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_certificate_is_rendered_as_pdf(db_session, create_user, create_member, tmp_path, monkeypatch):
    from mutualaid.config import settings

    monkeypatch.setattr(settings, "pdf_output_dir", str(tmp_path / "pdfs"))
    secretary = create_user(email="secretary@example.com", role=Role.SECRETARY)
    member = create_member(name="Certified", registration_year=CURRENT_YEAR - 1)
    client = _client(db_session, secretary)
    try:
        resp = client.get(f"/members/{member.id}/certificate")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content.startswith(b"%PDF")
        assert (tmp_path / "pdfs" / f"certificate_{member.member_number}.pdf").exists()
    finally:
        app.dependency_overrides.clear()
        client.close()


def test_unknown_member_is_not_found(db_session, create_user):
    admin = create_user(email="admin@example.com", role=Role.ADMIN)
    client = _client(db_session, admin)
    try:
        resp = client.get("/members/9999")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Member not found"
    finally:
        app.dependency_overrides.clear()
        client.close()
