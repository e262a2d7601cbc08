"""
Delivery of web-component eTemplates.

Usage: /api/etemplate.php/<app>/templates/<template set>/<name>.xet

The client puts the etag into the url to force a reload, so the response can
be cached for a day. Compression is done here rather than by the server, as
the Content-Length of the encoded body is needed for browsers to cache.
"""
from __future__ import annotations

import gzip
import hashlib
import time
from datetime import datetime, timedelta, timezone

from flask import Blueprint, Response, abort, current_app, g, request

from app.egw.db import db_session
from app.egw.modules.etemplate.loader import TemplateNotFound, cache_key, resolve_template, split_path_info
from app.egw.modules.etemplate.service import load_template
from app.egw.storage import storage_from_config

bp = Blueprint("etemplate", __name__)

CONTENT_TYPE = "application/xml; charset=UTF-8"


def accepts_gzip(accept_encoding: str | None) -> bool:
    for token in (accept_encoding or "").split(","):
        coding, _, params = token.strip().partition(";")
        if coding.strip().lower() != "gzip":
            continue
        # gzip;q=0 explicitly refuses it
        name, _, value = params.replace(" ", "").partition("=")
        if name == "q":
            try:
                return float(value) > 0
            except ValueError:
                return False
        return True
    return False


def compute_etag(content: str) -> str:
    return '"' + hashlib.md5(content.encode("utf-8")).hexdigest() + '"'


def _cache_headers(resp: Response, max_age: int) -> None:
    resp.headers["Cache-Control"] = f"private, max-age={max_age}"
    expires = datetime.now(timezone.utc) + timedelta(seconds=max_age)
    resp.headers["Expires"] = expires.strftime("%a, %d %b %Y %H:%M:%S GMT")


@bp.get("/api/etemplate.php/<path:path_info>")
def send_template(path_info: str):
    started = getattr(g, "request_started", None) or time.perf_counter()
    try:
        tpl = split_path_info(path_info)
        source = resolve_template(current_app.config["SERVER_ROOT"], tpl, db_session())
    except TemplateNotFound as e:
        current_app.logger.info("eTemplate not found: %s", e)
        abort(404)

    key = cache_key(current_app.config["INSTALL_ID"], tpl.path_info)
    loaded = load_template(source, storage_from_config(current_app.config), key, tpl.filename)
    if not loaded.content:
        abort(404)

    etag = compute_etag(loaded.content)
    if request.headers.get("If-None-Match") == etag:
        resp = Response(status=304)
        resp.headers["ETag"] = etag
        resp.headers["Vary"] = "Accept-Encoding"
        _cache_headers(resp, current_app.config["ETEMPLATE_MAX_AGE"])
        return resp

    body = loaded.content.encode("utf-8")
    timing = [("cache-read" if loaded.from_cache else "processing", loaded.elapsed)]
    encoding = None
    if accepts_gzip(request.headers.get("Accept-Encoding")):
        gzip_start = time.perf_counter()
        body = gzip.compress(body)
        encoding = "gzip"
        timing.append(("gziping", time.perf_counter() - gzip_start))
    timing.append(("total", time.perf_counter() - started))

    resp = Response(body, status=200)
    resp.headers["Content-Type"] = CONTENT_TYPE
    resp.headers["ETag"] = etag
    resp.headers["Vary"] = "Accept-Encoding"
    _cache_headers(resp, current_app.config["ETEMPLATE_MAX_AGE"])
    if encoding:
        resp.headers["Content-Encoding"] = encoding
    resp.headers["X-Timing"] = ", ".join(f"{label}={seconds:.3f}" for label, seconds in timing)
    # browsers do not cache without a Content-Length
    resp.headers["Content-Length"] = str(len(body))
    return resp
