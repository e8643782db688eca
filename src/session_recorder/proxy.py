"""Support for commands that reach the driver through the intercepting proxy."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple

LOGGER = logging.getLogger("session_recorder.proxy")

PROXY_COMMAND = "proxyReqRes"

Continuation = Callable[[], Awaitable[Any]]
ArgsBuilder = Callable[["re.Match[str]", Mapping[str, Any]], List[Any]]


def synchronize(original_next: Continuation, side: Awaitable[Any], logger: Optional[logging.Logger] = None) -> Continuation:
    """
    Pair a command continuation with a concurrently running side computation.

    The returned continuation waits for both to settle and resolves with the
    primary result. A primary failure is re-raised; a side failure is only
    logged.
    """

    log = logger or LOGGER

    async def synchronized() -> Any:
        primary, annotation = await asyncio.gather(original_next(), side, return_exceptions=True)
        if isinstance(annotation, BaseException):
            log.warning("Proxy response capture failed: %s", annotation)
        if isinstance(primary, BaseException):
            raise primary
        return primary

    return synchronized


@dataclass(frozen=True)
class RoutedCommand:
    name: str
    args: List[Any] = field(default_factory=list)


def _element_id(match: "re.Match[str]", _body: Mapping[str, Any]) -> List[Any]:
    return [match.group("element")]


def _locator(_match: "re.Match[str]", body: Mapping[str, Any]) -> List[Any]:
    return [body.get("using"), body.get("value")]


_SESSION = r"^/(?:wd/hub/)?session/[^/]+"
_ELEMENT = _SESSION + r"/element/(?P<element>[^/]+)"

ROUTES: Sequence[Tuple[str, "re.Pattern[str]", str, ArgsBuilder]] = (
    ("POST", re.compile(_SESSION + r"/element$"), "findElement", _locator),
    ("POST", re.compile(_SESSION + r"/elements$"), "findElements", _locator),
    ("POST", re.compile(_ELEMENT + r"/click$"), "click", _element_id),
    ("POST", re.compile(_ELEMENT + r"/value$"), "setValue", lambda m, b: [b.get("text", b.get("value")), m.group("element")]),
    ("GET", re.compile(_ELEMENT + r"/text$"), "getText", _element_id),
    ("GET", re.compile(_ELEMENT + r"/displayed$"), "elementDisplayed", _element_id),
    ("POST", re.compile(_SESSION + r"/url$"), "setUrl", lambda m, b: [b.get("url")]),
    ("GET", re.compile(_SESSION + r"/url$"), "getUrl", lambda m, b: []),
    ("POST", re.compile(_SESSION + r"/execute/sync$"), "execute", lambda m, b: [b.get("script"), b.get("args", [])]),
    ("GET", re.compile(_SESSION + r"/screenshot$"), "getScreenshot", lambda m, b: []),
)


def route_to_command(args: Sequence[Any]) -> RoutedCommand:
    """
    Resolve the driver command behind a proxied request.

    ``args[0]`` is the request descriptor (``method``, ``url``, ``body``).
    Unknown routes keep the generic proxy command name.
    """
    request = args[0] if args else None
    if isinstance(request, Mapping):
        method = str(request.get("method", "GET")).upper()
        path = str(request.get("url", "")).split("?", 1)[0].rstrip("/")
        body = request.get("body")
        if not isinstance(body, Mapping):
            body = {}
        for route_method, pattern, name, build_args in ROUTES:
            if route_method != method:
                continue
            match = pattern.match(path)
            if match:
                return RoutedCommand(name=name, args=build_args(match, body))
    return RoutedCommand(name=PROXY_COMMAND, args=list(args))


__all__ = ["PROXY_COMMAND", "RoutedCommand", "route_to_command", "synchronize"]
