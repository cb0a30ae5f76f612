from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from swaadgharka import main
from swaadgharka.core import startup_checks
from swaadgharka.core.errors import AppError, NotFound
from swaadgharka.core.metrics import request_metrics
from swaadgharka.middleware.observability import ObservabilityMiddleware

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def _boundary_app():
    app = FastAPI()
    app.add_middleware(ObservabilityMiddleware)
    app.add_exception_handler(AppError, main.app_error_handler)
    app.add_exception_handler(RequestValidationError, main.validation_error_handler)
    app.add_exception_handler(Exception, main.unhandled_error_handler)

    @app.get("/things/{thing_id}")
    def get_thing(thing_id: int):
        if thing_id == 404:
            raise NotFound("Thing not found")
        if thing_id == 500:
            raise RuntimeError("database exploded")
        return {"id": thing_id}

    return app


def _memory_engine():
    return create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


def test_request_id_is_echoed_or_generated():
    client = TestClient(_boundary_app())

    echoed = client.get("/things/1", headers={"X-Request-ID": "req-123"})
    generated = client.get("/things/1")

    assert echoed.headers["X-Request-ID"] == "req-123"
    assert len(generated.headers["X-Request-ID"]) == 36


def test_metrics_bucket_by_route_template():
    client = TestClient(_boundary_app())
    before = request_metrics.snapshot().get("GET /things/{thing_id}", {}).get("total_requests", 0)

    client.get("/things/7")
    client.get("/things/8")

    assert request_metrics.snapshot()["GET /things/{thing_id}"]["total_requests"] == before + 2


def test_error_envelopes():
    client = TestClient(_boundary_app())

    missing = client.get("/things/404")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Thing not found", "code": "not_found"}

    invalid = client.get("/things/abc")
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "validation_failed"
    assert invalid.json()["errors"][0]["field"] == "thing_id"


def test_unhandled_errors_hide_trace_in_production(monkeypatch):
    client = TestClient(_boundary_app(), raise_server_exceptions=False)

    monkeypatch.setattr(main, "IS_PROD", False)
    dev = client.get("/things/500")
    assert dev.status_code == 500
    assert dev.json()["code"] == "internal_error"
    assert "database exploded" in dev.json()["trace"]
    assert "timestamp" in dev.json()

    monkeypatch.setattr(main, "IS_PROD", True)
    prod = client.get("/things/500")
    assert prod.status_code == 500
    assert "trace" not in prod.json()
    assert prod.json()["message"] == "Internal server error"


def test_sqlite_is_refused_in_production(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./swaadgharka.db")

    with pytest.raises(RuntimeError, match="SQLite is forbidden"):
        startup_checks.validate_database_environment()


def test_jwt_secret_is_required_in_production(monkeypatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setattr(startup_checks, "JWT_SECRET_KEY", "")

    with pytest.raises(RuntimeError, match="JWT_SECRET_KEY"):
        startup_checks.validate_security_settings()

    monkeypatch.setattr(startup_checks, "JWT_SECRET_KEY", "s3cret")
    startup_checks.validate_security_settings()


def test_migration_state_is_checked_against_alembic_heads(monkeypatch):
    monkeypatch.setenv("ENV", "dev")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "postgresql://kitchen@db/swaadgharka")
    engine = _memory_engine()

    with pytest.raises(RuntimeError, match="no migration state"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)

    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)"))
        connection.execute(text("INSERT INTO alembic_version (version_num) VALUES ('0000_old')"))

    with pytest.raises(RuntimeError, match="Pending migrations"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)

    with engine.begin() as connection:
        connection.execute(text("UPDATE alembic_version SET version_num = '0002_user_profile'"))

    startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_migration_check_is_skipped_for_tests_and_sqlite(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("ENV", "test")
    startup_checks.ensure_migrations_applied(engine=_memory_engine(), alembic_config_path=Path("/nonexistent"))

    monkeypatch.setenv("ENV", "dev")
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./swaadgharka.db")
    startup_checks.ensure_migrations_applied(engine=_memory_engine(), alembic_config_path=Path("/nonexistent"))
