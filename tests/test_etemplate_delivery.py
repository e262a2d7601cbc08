import gzip
import hashlib
import os
import time

import pytest

from app.egw import create_app
from app.egw.db import create_schema
from app.egw.modules.etemplate import transforms
from app.egw.modules.etemplate.delivery import accepts_gzip, compute_etag
from app.egw.modules.etemplate.loader import (
    TemplateNotFound,
    cache_key,
    iter_template_paths,
    rel_path,
    split_path_info,
)

EDIT_XET = """<?xml version="1.0" encoding="UTF-8"?>
<overlay>
  <template id="addressbook.edit">
    <vbox>
      <textbox id="n_fn" needed="1"/>
      <button id="save" label="Save"/>
    </vbox>
  </template>
</overlay>
"""

URL = "/api/etemplate.php/addressbook/templates/default/edit.xet"


def _write_template(root, rel, content, age=3600):
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    past = time.time() - age
    os.utime(p, (past, past))
    return p


@pytest.fixture()
def server_root(tmp_path):
    root = tmp_path / "egroupware"
    _write_template(root, "addressbook/templates/default/edit.xet", EDIT_XET)
    _write_template(root, "addressbook/templates/default/index.xet", '<overlay><button id="add" image="new"/></overlay>')
    _write_template(root, "addressbook/templates/default/broken.xet", "<overlay><button disabled/></overlay>")
    return root


@pytest.fixture()
def client(tmp_path, monkeypatch, server_root):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("SERVER_ROOT", str(server_root))
    monkeypatch.setenv("TEMP_DIR", str(tmp_path / "tmp"))
    monkeypatch.setenv("INSTALL_ID", "test")
    monkeypatch.setenv("CACHE_BACKEND", "local")
    monkeypatch.delenv("ETEMPLATE_MAX_AGE", raising=False)

    app = create_app()
    create_schema(app)
    return app.test_client()


def test_template_is_transformed_and_cached(client, tmp_path):
    r = client.get(URL)
    assert r.status_code == 200
    assert r.headers["Content-Type"] == "application/xml; charset=UTF-8"
    body = r.get_data(as_text=True)
    assert "<et2-vbox>" in body
    assert '<et2-textbox id="n_fn" required="1"></et2-textbox>' in body
    assert r.headers["ETag"] == '"' + hashlib.md5(r.data).hexdigest() + '"'
    assert r.headers["Content-Length"] == str(len(r.data))
    assert r.headers["Cache-Control"] == "private, max-age=86400"
    assert "Expires" in r.headers
    assert r.headers["X-Timing"].startswith("processing=")
    assert "total=" in r.headers["X-Timing"]

    cached = tmp_path / "tmp" / "egw_cache" / "eT2-Cache-test--addressbook-templates-default-edit.xet"
    assert cached.read_text(encoding="utf-8") == body

    r2 = client.get(URL)
    assert r2.status_code == 200
    assert r2.headers["X-Timing"].startswith("cache-read=")
    assert r2.data == r.data


def test_fresh_cache_entry_is_served_as_is(client, tmp_path):
    cached = tmp_path / "tmp" / "egw_cache" / "eT2-Cache-test--addressbook-templates-default-edit.xet"
    cached.parent.mkdir(parents=True)
    cached.write_text("<overlay>cached</overlay>", encoding="utf-8")
    future = time.time() + 60
    os.utime(cached, (future, future))

    r = client.get(URL)
    assert r.status_code == 200
    assert r.data == b"<overlay>cached</overlay>"


def test_stale_cache_entry_is_rewritten(client, tmp_path, server_root):
    cached = tmp_path / "tmp" / "egw_cache" / "eT2-Cache-test--addressbook-templates-default-edit.xet"
    cached.parent.mkdir(parents=True)
    cached.write_text("<overlay>stale</overlay>", encoding="utf-8")
    old = time.time() - 7200
    os.utime(cached, (old, old))

    r = client.get(URL)
    assert r.status_code == 200
    assert b"stale" not in r.data
    assert r.headers["X-Timing"].startswith("processing=")
    assert "stale" not in cached.read_text(encoding="utf-8")


def test_rewrite_code_change_invalidates_cache(client):
    assert client.get(URL).headers["X-Timing"].startswith("processing=")
    assert client.get(URL).headers["X-Timing"].startswith("cache-read=")

    st = os.stat(transforms.__file__)
    future = time.time() + 3600
    os.utime(transforms.__file__, (future, future))
    try:
        r = client.get(URL)
    finally:
        os.utime(transforms.__file__, ns=(st.st_atime_ns, st.st_mtime_ns))
    assert r.status_code == 200
    assert r.headers["X-Timing"].startswith("processing=")


def test_unusable_cache_dir_still_serves(client, tmp_path):
    # TEMP_DIR is a plain file, so the cache can be neither read nor written
    (tmp_path / "tmp").write_text("not a directory", encoding="utf-8")

    r = client.get(URL)
    assert r.status_code == 200
    assert b"<et2-vbox>" in r.data
    assert r.headers["X-Timing"].startswith("processing=")


def test_non_utf8_template_is_served(client, server_root):
    p = server_root / "addressbook" / "templates" / "default" / "latin1.xet"
    p.write_bytes('<overlay><label value="Gr\xf6\xdfe"/></overlay>'.encode("latin-1"))

    r = client.get("/api/etemplate.php/addressbook/templates/default/latin1.xet")
    assert r.status_code == 200
    assert "Gr\ufffd\ufffde" in r.get_data(as_text=True)


def test_if_none_match_returns_304(client):
    etag = client.get(URL).headers["ETag"]

    r = client.get(URL, headers={"If-None-Match": etag})
    assert r.status_code == 304
    assert r.data == b""
    assert r.headers["ETag"] == etag
    assert r.headers["Vary"] == "Accept-Encoding"

    r = client.get(URL, headers={"If-None-Match": '"something-else"'})
    assert r.status_code == 200


def test_gzip_encoding(client):
    plain = client.get(URL).data

    r = client.get(URL, headers={"Accept-Encoding": "gzip, deflate, br"})
    assert r.status_code == 200
    assert r.headers["Content-Encoding"] == "gzip"
    assert r.headers["Content-Length"] == str(len(r.data))
    assert gzip.decompress(r.data) == plain
    # etag is of the uncompressed content
    assert r.headers["ETag"] == compute_etag(plain.decode("utf-8"))
    assert "gziping=" in r.headers["X-Timing"]
    assert r.headers["Vary"] == "Accept-Encoding"

    r = client.get(URL, headers={"Accept-Encoding": "deflate"})
    assert "Content-Encoding" not in r.headers


def test_template_set_falls_back_to_default(client):
    r = client.get("/api/etemplate.php/addressbook/templates/pixelegg/edit.xet")
    assert r.status_code == 200
    assert b"<et2-vbox>" in r.data


def test_list_templates_keep_image_buttons(client):
    r = client.get("/api/etemplate.php/addressbook/templates/default/index.xet")
    assert r.status_code == 200
    assert b'<et2-button id="add" image="new"></et2-button>' in r.data


def test_unknown_templates_are_404(client):
    assert client.get("/api/etemplate.php/addressbook/templates/default/missing.xet").status_code == 404
    assert client.get("/api/etemplate.php/nope/templates/default/edit.xet").status_code == 404
    assert client.get("/api/etemplate.php/addressbook/edit.xet").status_code == 404
    assert client.get("/api/etemplate.php/addressbook/templates/default/edit.xml").status_code == 404


def test_untransformable_template_is_500(client):
    r = client.get("/api/etemplate.php/addressbook/templates/default/broken.xet")
    assert r.status_code == 500


class TestPaths:
    def test_split_path_info(self):
        tpl = split_path_info("/addressbook/templates/default/index.rows.xet")
        assert tpl.app == "addressbook"
        assert tpl.template_set == "default"
        assert tpl.filename == "index.rows.xet"
        assert tpl.name == "index.rows"

    def test_leading_slash_is_optional(self):
        assert split_path_info("api/templates/default/a.xet").path_info == "/api/templates/default/a.xet"

    @pytest.mark.parametrize(
        "path_info",
        [
            "/addressbook/templates/../edit.xet",
            "/../templates/default/edit.xet",
            "/addressbook/templates/default/..xet",
            "/addressbook/templates/default",
            "/addressbook/templates/default/sub/edit.xet",
            "/addressbook/other/default/edit.xet",
        ],
    )
    def test_rejected_paths(self, path_info):
        with pytest.raises(TemplateNotFound):
            split_path_info(path_info)

    def test_rel_path_falls_back(self, server_root):
        assert rel_path(server_root, "addressbook", "edit", "default") == "/addressbook/templates/default/edit.xet"
        assert rel_path(server_root, "addressbook", "edit", "mobile") == "/addressbook/templates/default/edit.xet"
        assert rel_path(server_root, "addressbook", "index.rows", "default") == "/addressbook/templates/default/index.xet"
        assert rel_path(server_root, "addressbook", "nope", "default") is None

    def test_rel_path_prefers_template_set(self, server_root):
        _write_template(server_root, "addressbook/templates/mobile/edit.xet", "<overlay/>")
        assert rel_path(server_root, "addressbook", "edit", "mobile") == "/addressbook/templates/mobile/edit.xet"

    def test_cache_key(self):
        assert cache_key("abc", "/api/templates/default/a.xet") == "egw_cache/eT2-Cache-abc--api-templates-default-a.xet"

    def test_iter_template_paths(self, server_root):
        assert iter_template_paths(server_root) == [
            "/addressbook/templates/default/broken.xet",
            "/addressbook/templates/default/edit.xet",
            "/addressbook/templates/default/index.xet",
        ]
        assert iter_template_paths(server_root, "calendar") == []


class TestAcceptsGzip:
    def test_tokens(self):
        assert accepts_gzip("gzip")
        assert accepts_gzip("deflate, gzip")
        assert accepts_gzip("gzip;q=0.5")
        assert not accepts_gzip("gzip;q=0")
        assert not accepts_gzip("deflate, br")
        assert not accepts_gzip("")
        assert not accepts_gzip(None)
