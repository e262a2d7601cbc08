import os
import time

import pytest

from app.egw import create_app
from app.egw.db import create_schema, session_scope
from app.egw.models import TemplateOverride
from app.egw.modules.etemplate.service import purge_cached
from app.egw.modules.overrides.service import delete_override, get_override, list_overrides, save_override
from app.egw.storage import storage_from_config

URL = "/api/etemplate.php/addressbook/templates/default/edit.xet"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("SERVER_ROOT", str(tmp_path / "egroupware"))
    monkeypatch.setenv("TEMP_DIR", str(tmp_path / "tmp"))
    monkeypatch.setenv("INSTALL_ID", "test")
    monkeypatch.setenv("CACHE_BACKEND", "local")

    shipped = tmp_path / "egroupware" / "addressbook" / "templates" / "default" / "edit.xet"
    shipped.parent.mkdir(parents=True)
    shipped.write_text('<overlay><description value="shipped"/></overlay>', encoding="utf-8")
    past = time.time() - 3600
    os.utime(shipped, (past, past))

    app = create_app()
    create_schema(app)
    return app


def test_save_creates_then_updates(app):
    with session_scope(app) as s:
        row = save_override(s, app="addressbook", template_set="", name="edit.xet", content="<overlay/>")
        assert row.id is not None
        assert row.template_set == "default"
        assert row.name == "edit"
        first_id = row.id

    with session_scope(app) as s:
        row = save_override(
            s, app="addressbook", template_set="default", name="edit", content="<overlay>v2</overlay>", comment="v2"
        )
        assert row.id == first_id

    with session_scope(app) as s:
        assert s.query(TemplateOverride).count() == 1
        row = get_override(s, "addressbook", "default", "edit.xet")
        assert row.content == "<overlay>v2</overlay>"
        assert row.comment == "v2"
        assert row.updated_at >= row.created_at


def test_save_validates_input(app):
    with session_scope(app) as s:
        with pytest.raises(ValueError, match="required"):
            save_override(s, app="", template_set="default", name="edit", content="<overlay/>")
        with pytest.raises(ValueError, match="path separators"):
            save_override(s, app="addressbook", template_set="default", name="../edit", content="<overlay/>")
        with pytest.raises(ValueError, match="empty"):
            save_override(s, app="addressbook", template_set="default", name="edit", content="  ")
        with pytest.raises(ValueError, match="does not transform"):
            save_override(
                s, app="addressbook", template_set="default", name="edit", content="<overlay><button disabled/></overlay>"
            )


def test_list_and_delete(app):
    with session_scope(app) as s:
        save_override(s, app="calendar", template_set="default", name="edit", content="<overlay/>")
        save_override(s, app="addressbook", template_set="mobile", name="edit", content="<overlay/>")
        save_override(s, app="addressbook", template_set="default", name="index", content="<overlay/>")

    with session_scope(app) as s:
        rows = list_overrides(s)
        assert [(r.app, r.template_set, r.name) for r in rows] == [
            ("addressbook", "default", "index"),
            ("addressbook", "mobile", "edit"),
            ("calendar", "default", "edit"),
        ]
        assert len(list_overrides(s, "calendar")) == 1

    with session_scope(app) as s:
        assert delete_override(s, "calendar", "default", "edit") is True
        assert delete_override(s, "calendar", "default", "edit") is False


def test_override_shadows_shipped_template(app):
    client = app.test_client()

    r = client.get(URL)
    assert r.status_code == 200
    assert b'value="shipped"' in r.data

    with session_scope(app) as s:
        save_override(
            s, app="addressbook", template_set="default", name="edit", content='<overlay><label value="custom"/></overlay>'
        )

    # the override is newer than the cache entry
    r = client.get(URL)
    assert r.status_code == 200
    assert r.data == b'<overlay><et2-label value="custom"></et2-label></overlay>'
    assert r.headers["X-Timing"].startswith("processing=")


def test_deleted_override_falls_back_after_purge(app):
    client = app.test_client()
    with session_scope(app) as s:
        save_override(
            s, app="addressbook", template_set="default", name="edit", content='<overlay><label value="custom"/></overlay>'
        )
    assert b"custom" in client.get(URL).data

    with session_scope(app) as s:
        delete_override(s, "addressbook", "default", "edit")
    purge_cached(storage_from_config(app.config), "test", "addressbook", "default", "edit")

    r = client.get(URL)
    assert r.status_code == 200
    assert b'value="shipped"' in r.data


def test_override_applies_to_its_template_set_only(app):
    client = app.test_client()
    with session_scope(app) as s:
        save_override(
            s, app="addressbook", template_set="mobile", name="edit", content='<overlay><label value="mobile"/></overlay>'
        )

    assert b"mobile" in client.get("/api/etemplate.php/addressbook/templates/mobile/edit.xet").data
    assert b"shipped" in client.get(URL).data
