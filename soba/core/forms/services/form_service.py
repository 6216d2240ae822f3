"""Form services: engine seeding and form creation."""

from __future__ import annotations

from typing import Iterable, List, Optional

from soba.core.errors import ConflictError, ValidationError
from soba.core.forms.models import Form, FormEngine
from soba.extensions import db
from soba.platform.engines.registry import FormEngineRecord, assert_form_engine_invariants


def get_default_engine() -> Optional[FormEngine]:
    return FormEngine.query.filter_by(is_default=True, is_active=True).first()


def seed_form_engines(catalog: Iterable[dict], default_code: str) -> List[FormEngine]:
    """
    Upsert a platform engine row per installed engine and pick the default.

    Engines already present keep their active flag; new rows start active.
    """
    engines = {engine.code: engine for engine in FormEngine.query.all()}
    for entry in catalog:
        engine = engines.get(entry["code"])
        if engine is None:
            engine = FormEngine(code=entry["code"], name=entry["name"], is_active=True)
            db.session.add(engine)
            engines[engine.code] = engine
        engine.name = entry["name"]
        engine.version = entry.get("version")

    if default_code not in engines:
        raise ValidationError(f"Default form engine '{default_code}' is not installed")
    for engine in engines.values():
        engine.is_default = engine.code == default_code

    assert_form_engine_invariants(
        [FormEngineRecord(e.code, bool(e.is_active), bool(e.is_default)) for e in engines.values()]
    )
    db.session.commit()
    return sorted(engines.values(), key=lambda e: e.code)


def create_form(
    workspace_id: str,
    actor_id: str,
    *,
    slug: str,
    name: str,
    engine_code: str | None = None,
    description: str | None = None,
) -> Form:
    slug_norm = (slug or "").strip()
    name_norm = (name or "").strip()
    if not slug_norm or not name_norm:
        raise ValidationError("Form slug and name are required")

    if engine_code:
        engine = FormEngine.query.filter_by(code=engine_code, is_active=True).first()
        if engine is None:
            raise ValidationError(f"Form engine '{engine_code}' is not available")
    else:
        engine = get_default_engine()
        if engine is None:
            raise ValidationError("No default form engine is configured")

    existing = (
        Form.query.filter_by(workspace_id=workspace_id, slug=slug_norm)
        .filter(Form.deleted_at.is_(None))
        .first()
    )
    if existing:
        raise ConflictError(f"Form slug '{slug_norm}' already exists")

    form = Form(
        workspace_id=workspace_id,
        form_engine_id=engine.id,
        slug=slug_norm,
        name=name_norm,
        description=(description or "").strip() or None,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.session.add(form)
    db.session.commit()
    return form
