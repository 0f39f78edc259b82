"""Bazel query output parsing.

Reads the JSON rendering of `bazel query --output=jsonproto //external:all`
(or the newline-delimited `streamed_jsonproto` variant) and turns every
repository rule into a DependencyRecord.
"""

import json
import logging
from collections.abc import Iterator

from .errors import QueryInputError, UnsupportedRuleClass
from .models import ArchiveForm, DependencyRecord, DirectForm, PackageForm

logger = logging.getLogger(__name__)

PACKAGE_RULES = ("go_repository",)
DIRECT_RULES = ("git_repository", "new_git_repository")
ARCHIVE_RULES = ("http_archive", "new_http_archive")


def _attributes(rule: dict) -> dict[str, dict]:
    return {attr.get("name", ""): attr for attr in rule.get("attribute", [])}


def _string(attrs: dict[str, dict], name: str) -> str:
    return attrs.get(name, {}).get("stringValue", "") or ""


def _revision(attrs: dict[str, dict]) -> str:
    # tag wins over commit
    for name in ("tag", "commit"):
        if value := _string(attrs, name):
            return value
    return ""


def rule_name(rule: dict) -> str:
    name = rule.get("name", "")
    return name.rsplit(":", 1)[-1] if name.startswith("//") else name


def record_from_rule(rule: dict) -> DependencyRecord:
    """Convert one query rule into a dependency record.

    Args:
        rule: The "rule" object of a RULE target

    Returns:
        The matching dependency record form

    Raises:
        UnsupportedRuleClass: If the rule class is not a known repository rule
    """
    rule_class = rule.get("ruleClass", "")
    name = rule_name(rule)
    attrs = _attributes(rule)

    if rule_class in PACKAGE_RULES:
        return PackageForm(
            name=name,
            import_path=_string(attrs, "importpath"),
            pinned_revision=_revision(attrs),
            remote=_string(attrs, "remote") or None,
            vcs=_string(attrs, "vcs") or None,
        )
    if rule_class in DIRECT_RULES:
        return DirectForm(
            name=name,
            remote_url=_string(attrs, "remote"),
            pinned_revision=_revision(attrs),
        )
    if rule_class in ARCHIVE_RULES:
        if url := _string(attrs, "url"):
            urls = [url]
        else:
            urls = attrs.get("urls", {}).get("stringListValue", []) or []
        return ArchiveForm(name=name, candidate_urls=tuple(urls))

    raise UnsupportedRuleClass(rule_class, name)


class QueryParser:
    """Parser for bazel jsonproto query results."""

    def _targets(self, content: str) -> list[dict]:
        stripped = content.strip()
        if not stripped:
            return []

        try:
            document = json.loads(stripped)
        except json.JSONDecodeError:
            # streamed_jsonproto: one target per line
            try:
                targets = [json.loads(line) for line in stripped.splitlines() if line.strip()]
            except json.JSONDecodeError as e:
                raise QueryInputError(f"query output is not valid JSON: {e}") from e
        else:
            if isinstance(document, dict) and "target" in document:
                targets = document["target"]
            elif isinstance(document, dict) and "type" in document:
                targets = [document]
            else:
                raise QueryInputError("query output has no 'target' list")

        if not isinstance(targets, list) or not all(isinstance(t, dict) for t in targets):
            raise QueryInputError("query targets must be JSON objects")
        return targets

    def parse(self, content: str) -> Iterator[DependencyRecord]:
        """Yield a record for every supported repository rule in content."""
        for target in self._targets(content):
            if target.get("type") != "RULE":
                continue
            rule = target.get("rule", {})
            if not isinstance(rule, dict):
                raise QueryInputError(f"rule of target is not a JSON object: {rule!r}")
            try:
                yield record_from_rule(rule)
            except UnsupportedRuleClass as e:
                logger.warning("%s: Skipping rule: %s", e.name or "<unnamed>", e)


def parse_query(content: str) -> list[DependencyRecord]:
    """Parse bazel query output into dependency records.

    Args:
        content: jsonproto or streamed_jsonproto output

    Returns:
        Records in declaration order

    Raises:
        QueryInputError: If the content cannot be decoded
    """
    parser = QueryParser()
    return list(parser.parse(content))
