import pytest
from werkzeug.security import generate_password_hash

from app.fbms import auth, create_app
from app.fbms.models import Base

CSRF_TOKEN = "test-csrf-token"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DATA_BACKEND", "sql")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv(
        "APP_USERS",
        ",".join(
            [
                f"admin@example.com:admin:{generate_password_hash('pw')}",
                f"member@example.com:member:{generate_password_hash('pw')}",
            ]
        ),
    )
    for k in ("ADMIN_EMAIL", "ADMIN_PASSWORD", "SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY",
              "S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    auth._login_attempts.clear()

    app = create_app()
    app.config["TESTING"] = True
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    yield app
    app.extensions["fbms_store"].close()


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email: str):
    r = client.post("/auth/login", data={"email": email, "password": "pw"})
    assert r.status_code == 302
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF_TOKEN
    return client


@pytest.fixture()
def admin_client(app):
    return _login(app.test_client(), "admin@example.com")


@pytest.fixture()
def member_client(app):
    return _login(app.test_client(), "member@example.com")


@pytest.fixture()
def csrf():
    """Form data carrying the session's CSRF token."""

    def _data(**fields):
        return {"csrf_token": CSRF_TOKEN, **fields}

    return _data
