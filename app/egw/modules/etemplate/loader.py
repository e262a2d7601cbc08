from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timezone
from pathlib import Path
from typing import Callable

from sqlalchemy.orm import Session

from app.egw.models import TemplateOverride

DEFAULT_TEMPLATE_SET = "default"


class TemplateNotFound(LookupError):
    pass


@dataclass(frozen=True)
class TemplatePath:
    """Parsed `/<app>/templates/<template set>/<file>.xet` request path."""

    path_info: str
    app: str
    template_set: str
    filename: str

    @property
    def name(self) -> str:
        """File name without the .xet extension, e.g. "index.rows"."""
        return self.filename[: -len(".xet")] if self.filename.endswith(".xet") else self.filename


@dataclass(frozen=True)
class TemplateSource:
    app: str
    template_set: str
    name: str
    origin: str  # "filesystem" or "override"
    location: str
    mtime: float
    _reader: Callable[[], str] = field(repr=False, compare=False)

    def read(self) -> str:
        return self._reader()


def split_path_info(path_info: str) -> TemplatePath:
    path_info = "/" + (path_info or "").lstrip("/")
    parts = path_info.split("/")
    # "", app, "templates", template set, file
    if len(parts) != 5 or parts[2] != "templates" or not all(parts[1:]):
        raise TemplateNotFound(f"Not an eTemplate path: {path_info!r}")
    if ".." in path_info:
        raise TemplateNotFound(f"Path traversal rejected: {path_info!r}")
    _, app, _, template_set, filename = parts
    if not filename.endswith(".xet"):
        raise TemplateNotFound(f"Not an eTemplate file: {path_info!r}")
    return TemplatePath(path_info=path_info, app=app, template_set=template_set, filename=filename)


def _candidate_names(name: str) -> list[str]:
    """Dotted sub-template names fall back to their parent: index.rows.header, index.rows, index."""
    names = [name]
    while "." in name:
        name = name.rsplit(".", 1)[0]
        names.append(name)
    return names


def _candidate_sets(template_set: str) -> list[str]:
    if template_set == DEFAULT_TEMPLATE_SET:
        return [template_set]
    return [template_set, DEFAULT_TEMPLATE_SET]


def rel_path(server_root: str | os.PathLike, app: str, name: str, template_set: str) -> str | None:
    """
    Relative path of the shipped template file, e.g. "/addressbook/templates/default/index.xet".

    The requested template set wins over "default"; for each set a dotted
    sub-template name falls back to the file containing it.
    """
    root = Path(server_root)
    for candidate in _candidate_names(name):
        for tpl_set in _candidate_sets(template_set):
            rel = f"/{app}/templates/{tpl_set}/{candidate}.xet"
            if (root / rel.lstrip("/")).is_file():
                return rel
    return None


def _read_file(path: Path) -> Callable[[], str]:
    def _read() -> str:
        # invalid bytes become U+FFFD
        return path.read_text(encoding="utf-8", errors="replace")

    return _read


def find_override(s: Session, app: str, template_set: str, name: str) -> TemplateOverride | None:
    # overrides apply to their own template set only
    return (
        s.query(TemplateOverride)
        .filter(
            TemplateOverride.app == app,
            TemplateOverride.template_set == template_set,
            TemplateOverride.name == name,
        )
        .one_or_none()
    )


def resolve_template(
    server_root: str | os.PathLike,
    tpl: TemplatePath,
    s: Session | None = None,
) -> TemplateSource:
    """Customised template from the database, else the shipped file."""
    if s is not None:
        row = find_override(s, tpl.app, tpl.template_set, tpl.name)
        if row is not None:
            content = row.content
            return TemplateSource(
                app=row.app,
                template_set=row.template_set,
                name=row.name,
                origin="override",
                location=f"override:{row.id}",
                mtime=row.updated_at.replace(tzinfo=timezone.utc).timestamp(),
                _reader=lambda: content,
            )

    rel = rel_path(server_root, tpl.app, tpl.name, tpl.template_set)
    if rel is None:
        raise TemplateNotFound(f"No template for {tpl.path_info!r}")
    path = Path(server_root) / rel.lstrip("/")
    if not os.access(path, os.R_OK):
        raise TemplateNotFound(f"Template not readable: {path}")
    tpl_set = rel.split("/")[3]
    return TemplateSource(
        app=tpl.app,
        template_set=tpl_set,
        name=tpl.name,
        origin="filesystem",
        location=str(path),
        mtime=path.stat().st_mtime,
        _reader=_read_file(path),
    )


def cache_key(install_id: str, path_info: str) -> str:
    return "egw_cache/eT2-Cache-" + install_id + "-" + path_info.replace("/", "-")


def iter_template_paths(server_root: str | os.PathLike, app: str | None = None) -> list[str]:
    """Request paths of all shipped templates, e.g. "/addressbook/templates/default/index.xet"."""
    root = Path(server_root)
    pattern = f"{app or '*'}/templates/*/*.xet"
    return sorted("/" + p.relative_to(root).as_posix() for p in root.glob(pattern) if p.is_file())
