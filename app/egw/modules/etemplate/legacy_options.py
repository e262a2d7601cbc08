"""
Legacy `options="a,b,c"` attribute expansion.

Old eTemplates packed widget settings into one positional, comma-separated
`options` attribute. The client-side web components only understand named
attributes, so each position is mapped to its attribute name here.
"""
from __future__ import annotations

import re

from app.egw.modules.etemplate.attrs import csv_split, php_int

# "ignore" swallows further comma-separated values, otherwise they all end up in the last attribute
LEGACY_OPTIONS: dict[str, str] = {
    "select": "empty_label,ignore",
    "select-account": "empty_label,account_type,ignore",
    "select-number": "empty_label,min,max,interval,suffix",
    "box": ",cellpadding,cellspacing,keep",
    "hbox": "cellpadding,cellspacing,keep",
    "vbox": "cellpadding,cellspacing,keep",
    "groupbox": "cellpadding,cellspacing,keep",
    "checkbox": "selected_value,unselected_value,ro_true,ro_false",
    "radio": "set_value,ro_true,ro_false",
    "customfields": "sub-type,use-private,field-names",
    "date": "data_format,ignore",
    # legacy option "mode" was never implemented client-side
    "description": "bold-italic,link,activate_links,label_for,link_target,link_popup_size,link_title",
    "button": "image,ro_image",
    "buttononly": "image,ro_image",
    "link-entry": "only_app,application_list",
    "nextmatch-filterheader": "empty_label",
    "nextmatch-customfilter": "widget_type,widget_options",
    "nextmatch-accountfilter": "empty_label,account_type,ignore",
}

LEGACY_OPTIONS_RE = re.compile(r'<([^- />]+)(-[^ ]+)?[^>]* (options="([^"]+)")[ />]')
_STATIC_TYPE_RE = re.compile(r' type="([a-z-]+)"')


def option_names(widget: str, subtype: str = "") -> list[str] | None:
    """Attribute names for a widget, the specific `type-subtype` entry wins over `type`."""
    names = LEGACY_OPTIONS.get(widget + subtype) or LEGACY_OPTIONS.get(widget)
    return names.split(",") if names is not None else None


def options_to_attrs(widget: str, subtype: str, options: str) -> dict[str, str] | None:
    names = option_names(widget, subtype)
    if names is None:
        return None
    values = csv_split(options, len(names))
    values += [""] * (len(names) - len(values))

    attrs: dict[str, str] = {}
    for name, value in zip(names, values):
        if name and value != "":
            attrs[name] = value
    attrs.pop("ignore", None)

    # select is either multiple (numeric first option) or has an empty label
    if widget == "select" and attrs.get("empty_label") and php_int(attrs["empty_label"]) > 0:
        attrs["multiple"] = str(php_int(attrs.pop("empty_label")))
    return attrs


def _expand(m: re.Match) -> str:
    tag = m.group(0)
    widget, subtype = m.group(1), m.group(2) or ""

    # a static type attribute names the real widget
    static_type = _STATIC_TYPE_RE.search(tag)
    if static_type:
        widget, _, rest = static_type.group(1).partition("-")
        subtype = "-" + rest if rest else ""

    attrs = options_to_attrs(widget, subtype, m.group(4))
    if attrs is None:
        return tag
    expanded = "".join(f'{name}="{value}" ' for name, value in attrs.items())
    return tag.replace(m.group(3), expanded)


def expand_legacy_options(text: str) -> str:
    return LEGACY_OPTIONS_RE.sub(_expand, text)
