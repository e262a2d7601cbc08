from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.egw.models import TemplateOverride
from app.egw.modules.etemplate.attrs import TemplateParseError
from app.egw.modules.etemplate.loader import find_override
from app.egw.modules.etemplate.transforms import transform_template

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    name = (name or "").strip()
    return name[: -len(".xet")] if name.endswith(".xet") else name


def get_override(s: Session, app: str, template_set: str, name: str) -> TemplateOverride | None:
    return find_override(s, app, template_set, normalize_name(name))


def list_overrides(s: Session, app: str | None = None) -> list[TemplateOverride]:
    q = s.query(TemplateOverride)
    if app:
        q = q.filter(TemplateOverride.app == app)
    return q.order_by(TemplateOverride.app.asc(), TemplateOverride.template_set.asc(), TemplateOverride.name.asc()).all()


def save_override(
    s: Session,
    *,
    app: str,
    template_set: str,
    name: str,
    content: str,
    comment: str | None = None,
) -> TemplateOverride:
    """
    Create or replace a customised template.

    The content is run through the transforms once, so a template that would
    fail on delivery is rejected here.
    """
    app = (app or "").strip()
    template_set = (template_set or "").strip() or "default"
    name = normalize_name(name)
    if not app or not name:
        raise ValueError("app and name are required.")
    if "/" in app or "/" in template_set or "/" in name or ".." in name:
        raise ValueError("app, template set and name must not contain path separators.")
    if not (content or "").strip():
        raise ValueError("Template content is empty.")
    try:
        transform_template(content, name + ".xet")
    except TemplateParseError as e:
        raise ValueError(f"Template does not transform: {e}") from e

    row = get_override(s, app, template_set, name)
    now = datetime.utcnow()
    if row is None:
        row = TemplateOverride(app=app, template_set=template_set, name=name, created_at=now)
        s.add(row)
    row.content = content
    row.comment = comment
    row.updated_at = now
    s.flush()
    logger.info("Saved template override %s/%s/%s id=%s", app, template_set, name, row.id)
    return row


def delete_override(s: Session, app: str, template_set: str, name: str) -> bool:
    row = get_override(s, app, template_set, name)
    if row is None:
        return False
    s.delete(row)
    logger.info("Deleted template override %s/%s/%s", app, template_set, normalize_name(name))
    return True
