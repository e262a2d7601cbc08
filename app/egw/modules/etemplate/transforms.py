"""
Legacy eTemplate -> web-component rewrite passes.

Each pass is a plain `str -> str` function over the whole template; the order
in TRANSFORMS matters, later passes rely on tags already renamed by earlier
ones. Passes up to `date_widgets` run for every template, `prefix_boxes` is
skipped for overlays marked `legacy="true"`.
"""
from __future__ import annotations

import re
from collections.abc import Callable

from app.egw.modules.etemplate.attrs import is_empty, parse_attrs, php_int, string_attrs
from app.egw.modules.etemplate.legacy_options import expand_legacy_options

Transform = Callable[[str, str], str]

# et2- prefix for these tags only, if NO <overlay legacy="true">
ADD_ET2_PREFIX_RE = re.compile(r"<((/?)([vh]?box))(/?|\s[^>]*)>")
ADD_ET2_PREFIX_LAST_GROUP = 4

# et2- prefix for these tags regardless of legacy="true"
ADD_ET2_PREFIX_LEGACY_RE = re.compile(
    r"<((/?)(tabbox|description|details|searchbox|textbox|label|avatar|lavatar|image|appicon|colorpicker|checkbox"
    r"|url(-email|-phone|-fax)?|vfs-mime|vfs-uid|vfs-gid|link|link-[a-z]+|favorites))(/?|\s[^>]*)>"
)
ADD_ET2_PREFIX_LEGACY_LAST_GROUP = 5

LEGACY_OVERLAY_RE = re.compile(r'<overlay[^>]* legacy="true"')

DEPRECATED_ATTRS = {
    "needed": "required",
    "blur": "placeholder",
}


def _prefixer(last_group: int) -> Callable[[re.Match], str]:
    def _prefix(m: re.Match) -> str:
        closing, tag, rest = m.group(2), m.group(3), m.group(last_group)
        # web components must not self-close: <et2-x ...></et2-x>, not <et2-x .../>
        if rest.endswith("/"):
            rest = rest[:-1] + "></et2-" + tag
        return "<" + closing + "et2-" + tag + rest + ">"

    return _prefix


def _quote(m: re.Match) -> str:
    return m.group(1) + '="' + m.group(2).replace('"', "&quot;") + '"' + m.group(3)


def quote_attributes(text: str, name: str = "") -> str:
    """attr='value' -> attr="value"."""
    return re.sub(r"([a-z_-]+)='([^']*)'([ />])", _quote, text, flags=re.IGNORECASE)


def menulist_to_select(text: str, name: str = "") -> str:
    """<menulist ...><menupopup type="select-*" .../></menulist> -> <select type="select-*" .../>."""
    return re.sub(
        r"<menulist([^>]*)>[\r\n\s]*(<!--[^>]+-->[\r\n\s]*)?<menupopup([^>]+>)[\r\n\s]*</menulist>",
        lambda m: (m.group(2) or "") + "<select" + m.group(1) + m.group(3),
        text,
    )


def legacy_options(text: str, name: str = "") -> str:
    return expand_legacy_options(text)


def _split(m: re.Match) -> str:
    attrs = parse_attrs(m.group(1))
    attrs["vertical"] = "true" if attrs.get("orientation") == "h" else "false"
    dock_side = attrs.pop("dock_side", "")
    if "top" in dock_side or "left" in dock_side:
        attrs["primary"] = "end"
    elif "bottom" in dock_side or "right" in dock_side:
        attrs["primary"] = "start"
    return "<et2-split " + string_attrs(attrs) + ">" + m.group(2) + "</et2-split>"


def split_to_et2_split(text: str, name: str = "") -> str:
    """Splitter dock_side -> primary + vertical."""
    return re.sub(r"<split([^>]*?)>(.*)</split>", _split, text, flags=re.DOTALL)


def expose_views(text: str, name: str = "") -> str:
    return re.sub(
        r'<(image|description)\s([^><]*)expose_view="true"\s([^><]*)/>',
        r"<et2-\1-expose \2 \3></et2-\1-expose>",
        text,
    )


def multiline_textboxes(text: str, name: str = "") -> str:
    return re.sub(r'<textbox(.*?)\smultiline="true"(.*?)/>', r"<et2-textarea\1\2></et2-textarea>", text)


def _number(m: re.Match) -> str:
    tag, widget, type_attr, type_value, close = m.group(0), m.group(1), m.group(3), m.group(4), m.group(6)
    body = tag[: -(len(close) + 1)]
    if widget == "textbox" and type_value not in ("float", "int", "integer"):
        return "<et2-" + body[1:] + "></et2-textbox>"
    is_float = widget == "float" or type_value == "float"
    body = body.replace("<" + widget, "<et2-number", 1)
    if type_attr:
        body = body.replace(type_attr, "")
    if not is_float:
        body += ' precision="0"'
    return body + "></et2-number>"


def number_textboxes(text: str, name: str = "") -> str:
    """<textbox|int|float ... type="int|float"/> -> <et2-number .../>, other textboxes -> <et2-textbox>."""
    return re.sub(
        r'<(textbox|int(eger)?|float|number).*?\s(type="(int(eger)?|float)")?.*?(/|></textbox)>',
        _number,
        text,
    )


def prefix_legacy_widgets(text: str, name: str = "") -> str:
    return ADD_ET2_PREFIX_LEGACY_RE.sub(_prefixer(ADD_ET2_PREFIX_LEGACY_LAST_GROUP), text)


def _link(m: re.Match) -> str:
    tag = "et2-link" + (m.group(1) or "")
    attrs = parse_attrs(m.group(2))
    if tag == "et2-link" or (tag == "et2-link-entry" and not is_empty(attrs.get("readonly"))):
        tag = "et2-link"
        attrs.pop("readonly", None)
        if "only_app" in attrs:
            attrs["app"] = attrs.pop("only_app")
    return f"<{tag} {string_attrs(attrs)}></{tag}>"


def link_attributes(text: str, name: str = "") -> str:
    """only_app -> app, and a readonly link-entry is just a link."""
    return re.sub(r"<et2-link(-[a-z]+)?([^>]*?)></et2-link(-[a-z]+)?>", _link, text, flags=re.DOTALL)


def _select(m: re.Match) -> str:
    widget, subtype = m.group(1), m.group(2) or ""
    attrs = parse_attrs(m.group(3))

    # old tags attribute or taglist without maxSelection="1" is multiple
    if "tags" in attrs or (
        widget == "taglist" and (is_empty(attrs.get("maxSelection")) or php_int(attrs["maxSelection"]) > 1)
    ):
        attrs["multiple"] = "true"
        attrs.pop("tags", None)
    # taglist defaulted allowFreeEntries and editModeEnabled to true, et2-select defaults them to false
    if widget == "taglist" and not subtype:
        attrs.setdefault("allowFreeEntries", "true")
        attrs.setdefault("editModeEnabled", "true")
    # no multiple="toggle" or expand_multiple_rows="N" anymore
    if attrs.get("multiple") == "toggle" or not is_empty(attrs.get("expand_multiple_rows")):
        attrs["multiple"] = "true"
        attrs.pop("expand_multiple_rows", None)
    if not is_empty(attrs.get("empty_label")) and not is_empty(attrs.get("multiple")):
        attrs["placeholder"] = attrs.pop("empty_label")
    # <select type="select-account" --> <et2-select-account
    if not subtype and "type" in attrs:
        subtype = re.sub(r"^(select|taglist)", "", attrs.pop("type"))
    return f"<et2-select{subtype} {string_attrs(attrs)}>{m.group(5) or ''}</et2-select{subtype}>"


def select_widgets(text: str, name: str = "") -> str:
    return re.sub(
        r"<(select|taglist|listbox)(-[^ ]+)? ([^>]+?)(/|>(.*?)</select)>",
        _select,
        text,
        flags=re.DOTALL,
    )


def _nextmatch_header(m: re.Match) -> str:
    kind = m.group(2)
    attrs = parse_attrs(m.group(4))
    if kind == "custom":
        attrs["widget_type"] = attrs.get("type", "")
    if not kind or kind == "sort" or (kind == "custom" and not attrs["widget_type"]):
        return m.group(0)
    # type causes problems client-side
    attrs.pop("type", None)
    attrs.pop("tags", None)
    if kind == "taglist":
        kind = "filter"
    return f"<et2-nextmatch-header-{kind} {string_attrs(attrs)}/>"


def nextmatch_headers(text: str, name: str = "") -> str:
    return re.sub(r"<(nextmatch-)([^ ]+)(header|filter) ([^>]+?)/>", _nextmatch_header, text, flags=re.DOTALL)


def password_widgets(text: str, name: str = "") -> str:
    return re.sub(r"<passwd ([^>]+)(/|></passwd)>", r"<et2-password \1></et2-password>", text)


def button_widgets(text: str, name: str = "") -> str:
    """
    button|buttononly|timestamper -> et2-button[-timestamp], image buttons -> et2-image.

    Lists (templates named index* or list*) keep image buttons as buttons.
    """

    def _button(m: re.Match) -> str:
        tag = "et2-button"
        attrs = parse_attrs(m.group(2))
        widget = m.group(1)
        if widget == "buttononly":
            attrs["noSubmit"] = "true"
        elif widget in ("timestamper", "button-timestamp"):
            tag += "-timestamp"
            attrs["background_image"] = "true"

        if attrs.get("novalidation") in ("true", "1"):
            del attrs["novalidation"]
            attrs["noValidation"] = "true"

        if (
            not is_empty(attrs.get("image"))
            and (is_empty(attrs.get("background_image")) or attrs["background_image"] == "false")
            and not re.match(r"^(index|list)", name)
        ):
            tag = "et2-image"
            attrs["src"] = attrs.pop("image")
            # images have no noValidation, so it goes into the submit call
            if "onclick" not in attrs and is_empty(attrs.get("noSubmit")):
                no_validation = attrs.get("noValidation") or "false"
                attrs["onclick"] = f"this.getInstanceManager().submit(this, undefined, {no_validation})"
        attrs.pop("background_image", None)
        return f"<{tag} {string_attrs(attrs)}></{tag}>"

    return re.sub(
        r"<(button|buttononly|timestamper|button-timestamp)\s(.*?)(/|></(button|buttononly|timestamper|button-timestamp))>",
        _button,
        text,
        flags=re.DOTALL,
    )


def _date(m: re.Match) -> str:
    variant = m.group(1) or ""
    if variant == "-time_today":
        variant = "-time-today"
    return f"<et2-date{variant} {m.group(2)}></et2-date{variant}>"


def date_widgets(text: str, name: str = "") -> str:
    return re.sub(r"<date(-time[^\s]*|-duration|-since)?\s([^>]+)/>", _date, text)


def prefix_boxes(text: str, name: str = "") -> str:
    """box, hbox and vbox become web components, unless the overlay is marked legacy."""
    if LEGACY_OVERLAY_RE.search(text):
        return text
    return ADD_ET2_PREFIX_RE.sub(_prefixer(ADD_ET2_PREFIX_LAST_GROUP), text)


def _camel_case(attr: str) -> str:
    parts = re.split(r"[_-]", attr)
    if len(parts) == 1:
        return attr
    # parentNode is a DOM property
    if attr == "parent_node":
        parts[1] = "Id"
    return parts[0] + "".join(p[:1].upper() + p[1:] for p in parts[1:])


def _normalize(m: re.Match) -> str:
    raw = m.group(3)
    attrs = parse_attrs(raw)

    for attr, value in list(attrs.items()):
        if attr in DEPRECATED_ATTRS:
            del attrs[attr]
            attr = DEPRECATED_ATTRS[attr]
            attrs[attr] = value
        camel = _camel_case(attr)
        if camel != attr:
            del attrs[attr]
            attrs[camel] = value

    # et2_fullWidth is the default for web components
    if "class" in attrs:
        cls = re.sub(r"(^| )et2_fullWidth( |$)", " ", attrs["class"]).strip()
        if cls:
            attrs["class"] = cls
        else:
            del attrs["class"]

    # size is small|medium|large for web components
    if "size" in attrs:
        attrs["width"] = f"{php_int(attrs.pop('size'))}em"

    start = m.start(3) - m.start(0)
    return m.group(0)[:start] + string_attrs(attrs) + ("/" if raw.endswith("/") else "") + ">"


def normalize_et2_attributes(text: str, name: str = "") -> str:
    """camelCase attribute names of all et2-* tags and drop deprecated attributes."""
    return re.sub(r"<(et2|records)-([a-z-]+)\s([^>]+)>", _normalize, text)


TRANSFORMS: tuple[Transform, ...] = (
    quote_attributes,
    menulist_to_select,
    legacy_options,
    split_to_et2_split,
    expose_views,
    multiline_textboxes,
    number_textboxes,
    prefix_legacy_widgets,
    link_attributes,
    select_widgets,
    nextmatch_headers,
    password_widgets,
    button_widgets,
    date_widgets,
    prefix_boxes,
    normalize_et2_attributes,
)


def transform_template(text: str, name: str = "") -> str:
    """
    Rewrite a legacy eTemplate into web-component markup.

    `name` is the requested file name (e.g. "index.xet"), some passes behave
    differently for list templates.
    """
    for transform in TRANSFORMS:
        text = transform(text, name)
    return text
