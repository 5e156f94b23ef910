"""Registry of named browser sessions and how to tell they are logged in."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from agent_relay.config import ConfigTree, MissingConfigKeyError


class UnknownSessionError(KeyError):
    """Lookup of a session name that is not registered."""

    def __init__(self, name: str, known: Iterable[str] = ()) -> None:
        super().__init__(name)
        self.name = name
        self.known = tuple(known)

    def __str__(self) -> str:
        return f"Unknown session {self.name!r}. Known sessions: {', '.join(self.known) or '-'}"


@dataclass(slots=True, frozen=True)
class SessionSpec:
    """Static description of a session: a fixed URL or a config key for one."""

    name: str
    pattern: str
    url_key: str | None = None
    static_url: str | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Session name must be a non-empty string.")
        if self.url_key is None and self.static_url is None:
            raise ValueError(f"Session {self.name!r} needs url_key or static_url.")


@dataclass(slots=True, frozen=True)
class SessionTarget:
    """Registered session: where to probe and what a healthy page looks like.

    A ``url_key`` is looked up in config only when the URL is first needed.
    """

    name: str
    pattern: re.Pattern[str]
    url_key: str | None = None
    static_url: str | None = None

    def matches(self, page_text: str) -> bool:
        return self.pattern.search(page_text) is not None


DEFAULT_SESSION_SPECS: tuple[SessionSpec, ...] = (
    SessionSpec(name="outlook", url_key="outlook.inbox_url", pattern="inbox|focused|other"),
    SessionSpec(
        name="outlook-calendar",
        url_key="outlook.calendar_url",
        pattern="calendar|today|week",
    ),
    SessionSpec(
        name="slack-greatminds",
        url_key="slack.workspaces.greatminds.url",
        pattern="unreads|threads|channel",
    ),
    SessionSpec(
        name="slack-turing",
        url_key="slack.workspaces.turing.url",
        pattern="unreads|threads|channel",
    ),
    SessionSpec(
        name="jira",
        static_url="https://digital-greatminds.atlassian.net/jira/core/projects/JC/board",
        pattern="board|backlog|sprint",
    ),
    SessionSpec(name="linkedin", url_key="linkedin.feed_url", pattern="feed|home|network"),
)


class SessionRegistry(Mapping[str, SessionTarget]):
    """Immutable name -> :class:`SessionTarget` map, in registration order.

    ``lookup`` resolves a target's ``url_key``; a missing key raises from
    :meth:`url_for` for that name only.
    """

    def __init__(
        self,
        targets: Iterable[SessionTarget],
        lookup: Callable[[str], Any] | None = None,
    ) -> None:
        entries: dict[str, SessionTarget] = {}
        for target in targets:
            if target.name in entries:
                raise ValueError(f"Duplicate session name: {target.name!r}")
            entries[target.name] = target
        self._targets = MappingProxyType(entries)
        self._lookup = lookup or _no_config

    def __getitem__(self, name: str) -> SessionTarget:
        return self.get_target(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def get_target(self, name: str) -> SessionTarget:
        try:
            return self._targets[name]
        except KeyError:
            raise UnknownSessionError(name, self._targets) from None

    def url_for(self, name: str) -> str:
        target = self.get_target(name)
        if target.static_url is not None:
            return target.static_url
        if target.url_key is None:
            raise ValueError(f"Session {name!r} has neither url_key nor static_url.")
        return str(self._lookup(target.url_key))

    def select(self, name: str | None = None) -> list[SessionTarget]:
        """All targets, or just ``name`` (unknown names raise)."""

        if name is None:
            return list(self._targets.values())
        return [self.get_target(name)]


def build_registry(
    specs: Iterable[SessionSpec],
    lookup: Callable[[str], Any],
) -> SessionRegistry:
    """Compile each spec's pattern; URLs stay unresolved until asked for."""

    return SessionRegistry(
        (
            SessionTarget(
                name=spec.name,
                pattern=re.compile(spec.pattern, re.IGNORECASE),
                url_key=spec.url_key,
                static_url=spec.static_url,
            )
            for spec in specs
        ),
        lookup,
    )


def _no_config(dot_path: str) -> Any:
    raise MissingConfigKeyError(dot_path)


def specs_from_config(tree: ConfigTree) -> tuple[SessionSpec, ...]:
    """Session specs from ``sessions.services`` or the built-in defaults.

    Each entry maps a name to ``{pattern, url_key}`` or ``{pattern, url}``.
    """

    raw = tree.get_optional("sessions.services", None)
    if raw is None:
        return DEFAULT_SESSION_SPECS
    if not isinstance(raw, Mapping):
        raise TypeError("sessions.services must be a mapping of name -> service")

    specs: list[SessionSpec] = []
    for name, entry in raw.items():
        if not isinstance(entry, Mapping):
            raise TypeError(f"sessions.services.{name} must be a mapping")
        pattern = entry.get("pattern")
        if not isinstance(pattern, str) or not pattern.strip():
            raise ValueError(f"sessions.services.{name}.pattern must be a non-empty string")
        try:
            re.compile(pattern)
        except re.error as error:
            raise ValueError(f"sessions.services.{name}.pattern is invalid: {error}") from error
        url_key = entry.get("url_key")
        static_url = entry.get("url")
        specs.append(
            SessionSpec(
                name=str(name),
                pattern=pattern,
                url_key=str(url_key) if url_key is not None else None,
                static_url=str(static_url) if static_url is not None else None,
            ),
        )
    return tuple(specs)
