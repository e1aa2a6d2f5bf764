import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from notifier.schemas.envelope import EventType

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


@dataclass(frozen=True)
class MessageTemplate:
    id: str
    name: str
    template: str
    description: str
    event: EventType


DEFAULT_TEMPLATES: tuple[MessageTemplate, ...] = (
    MessageTemplate(
        id="repo-added",
        name="Repository Added",
        template=(
            "{{user.username}} added a new repository: {{repository.name}}. "
            "Access it at {{repository.url}}"
        ),
        description="Sent when a new repository is added to tracking",
        event=EventType.REPOSITORY_ADDED,
    ),
    MessageTemplate(
        id="repo-push",
        name="Repository Push",
        template="New push to {{repository.full_name}} by {{sender}}",
        description="Sent when code is pushed to the repository",
        event=EventType.PUSH,
    ),
    MessageTemplate(
        id="pull-request",
        name="Pull Request",
        template=(
            "New pull request in {{repository.full_name}}: {{action}} by {{sender}}"
        ),
        description="Sent when a pull request is created or updated",
        event=EventType.PULL_REQUEST,
    ),
)


def resolve_path(variables: Mapping[str, Any], path: str) -> Any:
    value: Any = variables
    for key in path.strip().split("."):
        if not isinstance(value, Mapping):
            return _MISSING
        value = value.get(key, _MISSING)
        if value is _MISSING or value is None:
            return _MISSING
    return value


def format_template(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{{dot.path}}`` placeholders; unresolved ones are kept verbatim."""

    def substitute(match: re.Match[str]) -> str:
        value = resolve_path(variables, match.group(1))
        if value is _MISSING:
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def get_template_for_event(event: EventType | str) -> MessageTemplate:
    for template in DEFAULT_TEMPLATES:
        if template.event == event or template.event.value == event:
            return template
    return DEFAULT_TEMPLATES[0]


def format_message(event: EventType | str, variables: Mapping[str, Any]) -> str:
    template = get_template_for_event(event)
    return format_template(template.template, variables)
