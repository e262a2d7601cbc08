#!/usr/bin/env python
"""
Pre-transform eTemplates into the cache.

Runs every shipped template below SERVER_ROOT through the web-component
transforms, so the first request after a deploy is served from the cache.

Usage:
    # Warm all templates (only stale entries are rewritten)
    python scripts/warm_cache.py

    # One app, rewrite even fresh entries
    python scripts/warm_cache.py --app addressbook --force

    # Print one transformed template instead of caching it
    python scripts/warm_cache.py --print /addressbook/templates/default/edit.xet

Environment:
    SERVER_ROOT, TEMP_DIR, INSTALL_ID, CACHE_BACKEND, DATABASE_URL
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.egw import create_app
from app.egw.db import session_scope
from app.egw.modules.etemplate.attrs import TemplateParseError
from app.egw.modules.etemplate.loader import (
    TemplateNotFound,
    cache_key,
    iter_template_paths,
    resolve_template,
    split_path_info,
)
from app.egw.modules.etemplate.service import load_template, purge_cached
from app.egw.storage import StorageError, storage_from_config


def print_template(path_info: str) -> int:
    app = create_app()
    with app.app_context(), session_scope(app) as s:
        try:
            tpl = split_path_info(path_info)
            source = resolve_template(app.config["SERVER_ROOT"], tpl, s)
        except TemplateNotFound as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        try:
            loaded = load_template(source, None, "", tpl.filename)
        except TemplateParseError as e:
            print(f"ERROR: {tpl.path_info} can not be transformed: {e}", file=sys.stderr)
            return 1
    sys.stdout.write(loaded.content)
    return 0


def warm(app_name: str | None = None, force: bool = False) -> int:
    app = create_app()
    cache = storage_from_config(app.config)
    paths = iter_template_paths(app.config["SERVER_ROOT"], app_name)
    if not paths:
        print(f"No templates found below {app.config['SERVER_ROOT']}.")
        return 0

    transformed = cached = failed = 0
    with app.app_context(), session_scope(app) as s:
        for path_info in paths:
            tpl = split_path_info(path_info)
            try:
                source = resolve_template(app.config["SERVER_ROOT"], tpl, s)
                if force:
                    purge_cached(cache, app.config["INSTALL_ID"], tpl.app, tpl.template_set, tpl.name)
                loaded = load_template(source, cache, cache_key(app.config["INSTALL_ID"], path_info), tpl.filename)
            except (TemplateNotFound, TemplateParseError, StorageError) as e:
                failed += 1
                print(f"FAILED {path_info}: {e}")
                continue
            if loaded.from_cache:
                cached += 1
            else:
                transformed += 1
                print(f"transformed {path_info} ({loaded.elapsed:.3f}s)")

    print(f"\n{len(paths)} templates: {transformed} transformed, {cached} already cached, {failed} failed")
    return 1 if failed else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Pre-transform eTemplates into the cache")
    parser.add_argument("--app", help="only templates of this app")
    parser.add_argument("--force", action="store_true", help="rewrite fresh cache entries too")
    parser.add_argument("--print", dest="print_path", metavar="PATH_INFO", help="print one transformed template")
    args = parser.parse_args()

    if args.print_path:
        sys.exit(print_template(args.print_path))
    sys.exit(warm(args.app, args.force))


if __name__ == "__main__":
    main()
