from flask_app.models import User, db


def test_login_page_renders(client):
    response = client.get("/login")
    assert response.status_code == 200
    assert b"Log In" in response.data


def test_login_with_bad_password(client, admin_user, admin_logs):
    db.session.add(admin_user)
    db.session.commit()

    response = client.post("/login", data={"username": "admin", "password": "wrongpass"})

    assert response.status_code == 401
    assert b"Invalid username or password." in response.data
    assert admin_logs() == []


def test_inactive_user_cannot_log_in(client, inactive_user):
    db.session.add(inactive_user)
    db.session.commit()

    response = client.post("/login", data={"username": "inactiveuser", "password": "userpass123"})

    assert response.status_code == 401


def test_login_records_audit_and_last_login(client, admin_user, admin_logs):
    db.session.add(admin_user)
    db.session.commit()

    response = client.post("/login", data={"username": "admin", "password": "adminpass123"})

    assert response.status_code == 302
    assert admin_logs() == ["LOGIN"]
    assert db.session.get(User, admin_user.id).last_login is not None


def test_login_honours_relative_next(client, admin_user):
    db.session.add(admin_user)
    db.session.commit()

    response = client.post(
        "/login?next=/importer/health", data={"username": "admin", "password": "adminpass123"}
    )
    assert response.headers["Location"].endswith("/importer/health")


def test_login_ignores_absolute_next(client, admin_user):
    db.session.add(admin_user)
    db.session.commit()

    response = client.post(
        "/login?next=https://evil.example.test/", data={"username": "admin", "password": "adminpass123"}
    )
    assert "evil.example.test" not in response.headers["Location"]


def test_logout(logged_in_admin):
    client, _admin = logged_in_admin

    response = client.get("/logout", follow_redirects=True)

    assert b"You have been logged out." in response.data
    assert client.get("/admin/hostfully/").status_code == 302


def test_regular_user_sees_landing_page(logged_in_user):
    client, _user = logged_in_user
    response = client.get("/")
    assert response.status_code == 200
