import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from soba import create_app
from soba.core.forms.models import Form, FormEngine, FormVersion
from soba.extensions import db

WORKSPACE_ID = "ws-1"
ACTOR_ID = "user-1"

FORMIO_ENV = {
    "PLUGIN_FORMIO_V5_API_BASE_URL": "http://formio.test",
    "PLUGIN_FORMIO_V5_ADMIN_API_URL": "http://formio.test/admin",
    "PLUGIN_FORMIO_V5_RENDER_API_URL": "http://formio.test/render",
    "PLUGIN_FORMIO_V5_ADMIN_USERNAME": "admin",
    "PLUGIN_FORMIO_V5_ADMIN_PASSWORD": "admin-secret",
    "PLUGIN_FORMIO_V5_MANAGER_USERNAME": "manager",
    "PLUGIN_FORMIO_V5_MANAGER_PASSWORD": "manager-secret",
}


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, CLI)")


@pytest.fixture()
def app():
    """
    Per-test app on an in-memory SQLite database.

    The schema is created from model metadata and dropped afterwards, so every
    test starts from empty tables.
    """
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    try:
        yield app
    finally:
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def formio_env(monkeypatch):
    for key, value in FORMIO_ENV.items():
        monkeypatch.setenv(key, value)
    return dict(FORMIO_ENV)


@pytest.fixture()
def forms(app):
    """Seed workspace ws-1 with the formio-v5 engine, one form and form version fv-1."""
    engine = FormEngine(code="formio-v5", name="Form.io v5", version="v5", is_active=True, is_default=True)
    db.session.add(engine)
    db.session.flush()

    form = Form(
        id="form-1",
        workspace_id=WORKSPACE_ID,
        form_engine_id=engine.id,
        slug="intake",
        name="Intake",
        created_by=ACTOR_ID,
        updated_by=ACTOR_ID,
    )
    db.session.add(form)
    db.session.flush()

    form_version = FormVersion(
        id="fv-1",
        workspace_id=WORKSPACE_ID,
        form_id=form.id,
        version_no=1,
        created_by=ACTOR_ID,
        updated_by=ACTOR_ID,
    )
    db.session.add(form_version)
    db.session.commit()
    return SimpleNamespace(engine=engine, form=form, form_version=form_version)
