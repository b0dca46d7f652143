"""URL construction for the dashboard API."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote

from citypulse.types import ComponentId

KNOWN_CITIES = ("taipei", "metrotaipei")
KNOWN_INDEXES = (
    "traffic",
    "metro",
    "youbike",
    "planning",
    "services",
    "disaster-prevention",
    "climate-change",
)

_TRAILING_SLASHES = re.compile(r"/+$")
_LEADING_SLASHES = re.compile(r"^/+")
_LEADING_QUESTION_MARKS = re.compile(r"^\?+")
# Same unreserved set as encodeURIComponent, so city names encode the way browsers send them.
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class Preset:
    """Ready-made service path and query string for a known endpoint."""

    name: str
    description: str
    service: str
    query: str


PRESETS: dict[str, Preset] = {
    preset.name: preset
    for preset in (
        Preset("v1-dashboards-city", "Dashboards list", "api/v1/dashboard", "city=taipei"),
        Preset("v1-component-57", "Traffic component 57", "api/v1/component/57/chart", "city=taipei"),
        Preset("v1-component-114", "Traffic component 114", "api/v1/component/114/chart", "city=taipei"),
        Preset("v1-component-20", "Traffic component 20", "api/v1/component/20/chart", "city=taipei"),
    )
}


def strip_base_url(base_url: str) -> str:
    return _TRAILING_SLASHES.sub("", base_url.strip())


def encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def compose_url(base_url: str, service: str = "", query: str = "") -> str:
    """Join base url, service path and query string into one request url.

    Surrounding slashes on the service path and a leading ``?`` on the query
    are dropped, so ``compose_url("http://h/", "/api/v1/dashboard/", "?city=taipei")``
    yields ``http://h/api/v1/dashboard?city=taipei``.
    """
    path = _TRAILING_SLASHES.sub("", _LEADING_SLASHES.sub("", service.strip()))
    params = _LEADING_QUESTION_MARKS.sub("", query.strip())
    url = strip_base_url(base_url)
    if path:
        url += f"/{path}"
    if params:
        url += f"?{params}"
    return url


def dashboard_index_url(base_url: str, city: str) -> str:
    return f"{strip_base_url(base_url)}/api/v1/dashboard?city={encode_component(city)}"


def component_chart_url(base_url: str, component_id: ComponentId, city: str) -> str:
    component = encode_component(str(component_id))
    return f"{strip_base_url(base_url)}/api/v1/component/{component}/chart?city={encode_component(city)}"
