# events.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


class MalformedEventError(ValueError):
    """The event payload could not be parsed or lacks a field routing needs."""


class EventType(str, Enum):
    PUSH = "push"
    CHECK_SUITE_REQUESTED = "check_suite_requested"
    CHECK_SUITE_REREQUESTED = "check_suite_rerequested"
    CHECK_RUN_REREQUESTED = "check_run_rerequested"
    MANUAL = "manual"

    @classmethod
    def parse(cls, name: str) -> Optional[EventType]:
        """Map a runtime event name to an EventType. Unknown names give None."""
        name = (name or "").strip()
        if name in _ALIASES:
            return _ALIASES[name]
        try:
            return cls(name)
        except ValueError:
            return None

    @property
    def is_check_request(self) -> bool:
        return self in CHECK_EVENTS


# Names the Brigade runtime emits.
_ALIASES: Dict[str, EventType] = {
    "check_suite:requested": EventType.CHECK_SUITE_REQUESTED,
    "check_suite:rerequested": EventType.CHECK_SUITE_REREQUESTED,
    "check_run:rerequested": EventType.CHECK_RUN_REREQUESTED,
    "exec": EventType.MANUAL,
}

CHECK_EVENTS = frozenset({
    EventType.CHECK_SUITE_REQUESTED,
    EventType.CHECK_SUITE_REREQUESTED,
    EventType.CHECK_RUN_REREQUESTED,
})

# Where GitHub puts the head commit, relative to the webhook body.
_HEAD_SHA_PATHS = (
    ("check_suite", "head_sha"),
    ("check_run", "head_sha"),
    ("check_run", "check_suite", "head_sha"),
    ("head_sha",),
)


@dataclass(frozen=True)
class Revision:
    commit: str = ""
    ref: str = ""


@dataclass(frozen=True)
class Event:
    """
    An inbound CI event.

    `type` keeps the raw name so unknown events can still be logged.
    `payload` is either already decoded or the raw JSON text the runtime hands over.
    """
    type: str
    payload: Union[Mapping[str, Any], str, bytes, None] = None
    build_id: str = ""
    revision: Revision = field(default_factory=Revision)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        if not isinstance(data, Mapping):
            raise MalformedEventError(f"Event must be an object, got {type(data).__name__}")
        if "type" not in data:
            raise MalformedEventError("Event has no 'type'")
        rev = data.get("revision") or {}
        if not isinstance(rev, Mapping):
            raise MalformedEventError("Event 'revision' must be an object")
        return cls(
            type=str(data["type"]),
            payload=data.get("payload"),
            build_id=str(data.get("buildID", data.get("build_id", "")) or ""),
            revision=Revision(
                commit=str(rev.get("commit") or ""),
                ref=str(rev.get("ref") or ""),
            ),
        )

    @property
    def event_type(self) -> Optional[EventType]:
        return EventType.parse(self.type)

    @property
    def payload_text(self) -> str:
        """Payload as JSON text, the form check-run jobs expect."""
        if self.payload is None:
            return ""
        if isinstance(self.payload, bytes):
            return self.payload.decode("utf-8", errors="replace")
        if isinstance(self.payload, str):
            return self.payload
        return json.dumps(self.payload, sort_keys=True)

    def parsed_payload(self) -> Dict[str, Any]:
        payload = self.payload
        if payload is None:
            return {}
        if isinstance(payload, (str, bytes)):
            if not payload.strip():
                return {}
            try:
                payload = json.loads(payload)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise MalformedEventError(f"Event payload is not valid JSON: {e}") from e
        if not isinstance(payload, Mapping):
            raise MalformedEventError(
                f"Event payload must be a JSON object, got {type(payload).__name__}"
            )
        return dict(payload)


def _dig(data: Any, path: tuple) -> Any:
    for key in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def head_sha(payload: Mapping[str, Any]) -> str:
    """Head commit of a check_suite / check_run webhook, with or without the app's `body` wrapper."""
    roots = [payload]
    if isinstance(payload.get("body"), Mapping):
        roots.insert(0, payload["body"])

    for root in roots:
        for path in _HEAD_SHA_PATHS:
            sha = _dig(root, path)
            if isinstance(sha, str) and sha:
                return sha
    raise MalformedEventError("Check event payload has no head_sha")


def short_sha(sha: str, length: int = 7) -> str:
    return sha[:length]
