from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag
from bs4.element import PreformattedString

NON_TEXT_TAGS: frozenset[str] = frozenset({"script", "style", "textarea", "option", "noscript"})
_URL_ATTRIBUTES: frozenset[str] = frozenset({"href", "src"})
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class HtmlPolicy:
    allowed_tags: frozenset[str]
    allowed_attributes: dict[str, frozenset[str]] = field(default_factory=dict)
    allowed_schemes: frozenset[str] = frozenset({"http", "https", "ftp", "mailto", "tel"})
    forced_attributes: dict[str, dict[str, str]] = field(default_factory=dict)

    def attributes_for(self, tag_name: str) -> frozenset[str]:
        return self.allowed_attributes.get(tag_name, frozenset()) | self.allowed_attributes.get(
            "*", frozenset()
        )


TEXT_ONLY_POLICY = HtmlPolicy(allowed_tags=frozenset())

ISSUE_HTML_POLICY = HtmlPolicy(
    allowed_tags=frozenset(
        {
            "p",
            "br",
            "hr",
            "h1",
            "h2",
            "h3",
            "h4",
            "h5",
            "h6",
            "ul",
            "ol",
            "li",
            "blockquote",
            "strong",
            "em",
            "b",
            "i",
            "a",
            "pre",
            "code",
            "span",
            "div",
            "img",
            "table",
            "thead",
            "tbody",
            "tr",
            "th",
            "td",
        }
    ),
    allowed_attributes={
        "a": frozenset({"href", "title", "target", "rel"}),
        "img": frozenset({"src", "alt", "title", "width", "height", "loading"}),
        "*": frozenset({"class"}),
    },
    forced_attributes={
        "a": {"rel": "noopener noreferrer"},
        "img": {"loading": "lazy"},
    },
)


def strip_html(value: str | None) -> str:
    """Drop every tag and return the trimmed text content."""
    if not value:
        return ""
    soup = _sanitize(value, TEXT_ONLY_POLICY)
    return soup.get_text().strip()


def html_to_text(value: str | None) -> str:
    return _WHITESPACE_RE.sub(" ", strip_html(value)).strip()


def sanitize_issue_html(value: str | None, policy: HtmlPolicy = ISSUE_HTML_POLICY) -> str:
    if not value:
        return ""
    return str(_sanitize(value, policy))


def _sanitize(value: str, policy: HtmlPolicy) -> BeautifulSoup:
    soup = BeautifulSoup(value, "html.parser")

    # Comments, CDATA, doctypes and processing instructions are written back out raw.
    for node in soup.find_all(string=lambda node: isinstance(node, PreformattedString)):
        node.extract()

    # Materialize first: unwrap/decompose mutate the tree while iterating.
    for element in list(soup.find_all(True)):
        if not isinstance(element, Tag) or element.decomposed:
            continue
        name = (element.name or "").lower()
        if name in NON_TEXT_TAGS:
            element.decompose()
            continue
        if name not in policy.allowed_tags:
            element.unwrap()
            continue
        _filter_attributes(element, name, policy)

    return soup


def _filter_attributes(element: Tag, name: str, policy: HtmlPolicy) -> None:
    allowed = policy.attributes_for(name)
    for attribute in list(element.attrs):
        key = attribute.lower()
        if key not in allowed:
            del element.attrs[attribute]
            continue
        if key in _URL_ATTRIBUTES and not _is_allowed_url(element.attrs[attribute], policy):
            del element.attrs[attribute]
    for attribute, forced_value in policy.forced_attributes.get(name, {}).items():
        element.attrs[attribute] = forced_value


def _is_allowed_url(raw_value: object, policy: HtmlPolicy) -> bool:
    if not isinstance(raw_value, str):
        return False
    # Browsers ignore control characters and whitespace inside schemes ("java\tscript:").
    compact = "".join(char for char in raw_value if char > " ").strip()
    if not compact:
        return True
    if compact.startswith("//"):
        return True
    scheme = urlparse(compact).scheme.lower()
    if not scheme:
        return ":" not in compact.split("/", 1)[0]
    return scheme in policy.allowed_schemes


def external_link(value: str | None) -> str | None:
    """Return `value` when it is an absolute http(s) URL, else None."""
    if not value:
        return None
    candidate = value.strip()
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        return None
    return candidate
