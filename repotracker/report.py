"""Changelog reports rendered with Jinja2."""

import json
import logging
from pathlib import Path
from typing import Protocol

from jinja2 import DictLoader, Environment

from .mirror import PATH_UNSAFE_RE
from .models import Changelog

logger = logging.getLogger(__name__)

TEMPLATES = {
    "md": """\
# {{ cl.record }} ({{ cl.web_url }})
{% if cl.coordinate.revision %}
Pinned at `{{ cl.coordinate.revision }}`{% if cl.latest_tag %}, latest tag `{{ cl.latest_tag }}`{% endif %}{% if cl.semver_delta != "unknown" %} ({{ cl.semver_delta }} update){% endif %}.
{% endif %}

<details><summary>There are {{ cl.commits | length }} new commits.</summary><p>

{% for c in cl.commits %}
- [`{{ c.hash | shorthash }}`]({{ cl.commit_url(c.hash) }}) {{ c.title }}
{%- if c.tags %} (🏷{% for t in c.tags %} [{{ t }}]({{ cl.tag_url(t) }}){% endfor %}){% endif %}

{% endfor %}
</p></details>
""",
    "gfmd": """\
## {{ cl.record }}

- Repository: {{ cl.web_url }}
- Pinned: `{{ cl.coordinate.revision or "(none)" }}`
- New commits: {{ cl.commits | length }}
{% if cl.latest_tag %}
- Latest tag: [{{ cl.latest_tag }}]({{ cl.tag_url(cl.latest_tag) }})
{% endif %}
{% if cl.semver_delta != "unknown" %}
- Update: {{ cl.semver_delta }}
{% endif %}

| Commit | Date | Title | Tags |
| --- | --- | --- | --- |
{% for c in cl.commits %}
| [{{ c.hash | shorthash }}]({{ cl.commit_url(c.hash) }}) | {{ c.timestamp.strftime("%Y-%m-%d") }} | {{ c.title | replace("|", "\\\\|") }} | {{ c.tags | join(", ") }} |
{% endfor %}
""",
}

EXTENSIONS = {"md": "md", "gfmd": "md", "json": "json"}


def _shorthash(hash: str) -> str:
    return hash[:7]


_env = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)
_env.filters["shorthash"] = _shorthash


def changelog_to_dict(cl: Changelog) -> dict:
    return {
        "name": str(cl.record),
        "url": cl.coordinate.url,
        "revision": cl.coordinate.revision,
        "mirror": str(cl.mirror.path),
        "semver_delta": cl.semver_delta,
        "latest_tag": cl.latest_tag,
        "commits": [
            {
                "hash": c.hash,
                "tags": list(c.tags),
                "timestamp": c.timestamp.isoformat(),
                "title": c.title,
            }
            for c in cl.commits
        ],
    }


def render(cl: Changelog, fmt: str = "md") -> str:
    """Render a changelog in one of the supported formats.

    Args:
        cl: Populated changelog
        fmt: "md", "gfmd", or "json"

    Returns:
        Report text
    """
    if fmt == "json":
        return json.dumps(changelog_to_dict(cl), indent=2) + "\n"
    if fmt not in TEMPLATES:
        raise ValueError(f"unknown report format {fmt!r}")
    return _env.get_template(fmt).render(cl=cl)


class ReportSink(Protocol):
    """Consumer of finished changelogs."""

    def report(self, changelog: Changelog) -> None: ...


class FileReportSink:
    """Writes one report file per updated dependency."""

    def __init__(self, output_dir: Path, fmt: str = "md"):
        self.output_dir = Path(output_dir)
        self.fmt = fmt

    def path_for(self, cl: Changelog) -> Path:
        name = PATH_UNSAFE_RE.sub("_", str(cl.record)).strip("_") or "report"
        return self.output_dir / f"{name}.{EXTENSIONS[self.fmt]}"

    def report(self, changelog: Changelog) -> None:
        path = self.path_for(changelog)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render(changelog, self.fmt), encoding="utf-8")
        logger.info("%s: Report written to %s", changelog.record, path)
