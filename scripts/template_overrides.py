#!/usr/bin/env python
"""
Manage customised eTemplates.

Usage:
    python scripts/template_overrides.py list [--app addressbook]
    python scripts/template_overrides.py import /addressbook/templates/default/edit.xet my-edit.xet --comment "no photo"
    python scripts/template_overrides.py delete /addressbook/templates/default/edit.xet

Importing or deleting also drops the cached transformation of that template.

Environment:
    DATABASE_URL, TEMP_DIR, INSTALL_ID, CACHE_BACKEND
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
from app.egw.modules.etemplate.loader import TemplateNotFound, split_path_info
from app.egw.modules.etemplate.service import purge_cached
from app.egw.modules.overrides.service import delete_override, list_overrides, save_override
from app.egw.storage import storage_from_config


def cmd_list(args: argparse.Namespace) -> int:
    app = create_app()
    with session_scope(app) as s:
        rows = list_overrides(s, args.app)
        if not rows:
            print("No template overrides.")
            return 0
        for row in rows:
            print(f"/{row.app}/templates/{row.template_set}/{row.name}.xet  updated {row.updated_at:%Y-%m-%d %H:%M}  {row.comment or ''}")
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    tpl = split_path_info(args.path_info)
    content = Path(args.file).read_text(encoding="utf-8")
    app = create_app()
    with session_scope(app) as s:
        try:
            row = save_override(
                s,
                app=tpl.app,
                template_set=tpl.template_set,
                name=tpl.name,
                content=content,
                comment=args.comment,
            )
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print(f"Saved override id={row.id} for {tpl.path_info}")
    purge_cached(storage_from_config(app.config), app.config["INSTALL_ID"], tpl.app, tpl.template_set, tpl.name)
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    tpl = split_path_info(args.path_info)
    app = create_app()
    with session_scope(app) as s:
        if not delete_override(s, tpl.app, tpl.template_set, tpl.name):
            print(f"No override for {tpl.path_info}")
            return 1
    purge_cached(storage_from_config(app.config), app.config["INSTALL_ID"], tpl.app, tpl.template_set, tpl.name)
    print(f"Deleted override for {tpl.path_info}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Manage customised eTemplates")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="list overrides")
    p_list.add_argument("--app")
    p_list.set_defaults(func=cmd_list)

    p_import = sub.add_parser("import", help="create or replace an override from a file")
    p_import.add_argument("path_info", help="/<app>/templates/<set>/<name>.xet")
    p_import.add_argument("file")
    p_import.add_argument("--comment")
    p_import.set_defaults(func=cmd_import)

    p_delete = sub.add_parser("delete", help="remove an override")
    p_delete.add_argument("path_info")
    p_delete.set_defaults(func=cmd_delete)

    args = parser.parse_args()
    try:
        sys.exit(args.func(args))
    except TemplateNotFound as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
