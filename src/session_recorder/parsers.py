"""Command parsers turning a driver command and its response into a log payload."""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Dict, Iterator, Mapping, Optional, Sequence, Union

from .errors import RegistrationError
from .models import ParsedLog

ParserResult = Union[ParsedLog, Mapping[str, Any]]
CommandParser = Callable[[Any, Sequence[Any], Any], Union[ParserResult, Awaitable[ParserResult]]]


class ParserTable:
    """
    Explicit mapping from command name to parser.

    A command without a registered parser is not logged at all.
    """

    def __init__(self, parsers: Optional[Mapping[str, CommandParser]] = None) -> None:
        self._parsers: Dict[str, CommandParser] = {}
        for name, parser in (parsers or {}).items():
            self.register(name, parser)

    def register(self, command_name: str, parser: CommandParser) -> None:
        if not command_name:
            raise RegistrationError("Parser must be registered under a non-empty command name")
        if not callable(parser):
            raise RegistrationError(f"Parser for {command_name!r} is not callable")
        if command_name in self._parsers:
            raise RegistrationError(f"A parser for {command_name!r} is already registered")
        self._parsers[command_name] = parser

    def get(self, command_name: str) -> Optional[CommandParser]:
        return self._parsers.get(command_name)

    def __contains__(self, command_name: object) -> bool:
        return command_name in self._parsers

    def __iter__(self) -> Iterator[str]:
        return iter(self._parsers)

    def __len__(self) -> int:
        return len(self._parsers)

    async def parse(self, command_name: str, driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
        parser = self._parsers[command_name]
        result = parser(driver, args, response)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, ParsedLog):
            return result
        return ParsedLog.model_validate(dict(result))


def _arg(args: Sequence[Any], index: int) -> Any:
    return args[index] if len(args) > index else None


def _value(response: Any) -> Any:
    if isinstance(response, Mapping) and "value" in response:
        return response["value"]
    return response


def parse_create_session(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    return ParsedLog(title="Start session", title_info=None, params=None, response=response)


def parse_delete_session(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    return ParsedLog(title="End session", response=response)


def parse_find_element(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    strategy, selector = _arg(args, 0), _arg(args, 1)
    return ParsedLog(
        title="Find element",
        title_info=f"{strategy}: {selector}",
        params={"using": strategy, "value": selector},
        response=response,
    )


def parse_find_elements(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    parsed = parse_find_element(driver, args, response)
    parsed.title = "Find elements"
    return parsed


def parse_element_displayed(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    return ParsedLog(
        title="Is element displayed",
        title_info=f"element: {_arg(args, 0)}",
        params={"elementId": _arg(args, 0)},
        response=response,
    )


def parse_click(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    return ParsedLog(
        title="Click element",
        title_info=f"element: {_arg(args, 0)}",
        params={"elementId": _arg(args, 0)},
        response=response,
    )


def parse_set_value(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    value = _arg(args, 0)
    if isinstance(value, (list, tuple)):
        value = "".join(str(part) for part in value)
    return ParsedLog(
        title="Enter value",
        title_info=f"{value!s} into element: {_arg(args, 1)}",
        params={"value": value, "elementId": _arg(args, 1)},
        response=response,
    )


def parse_get_text(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    return ParsedLog(
        title="Get element text",
        title_info=f"element: {_arg(args, 0)}",
        params={"elementId": _arg(args, 0)},
        response=response,
    )


def parse_set_url(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    return ParsedLog(title="Navigate to url", title_info=_arg(args, 0), params={"url": _arg(args, 0)}, response=response)


def parse_get_url(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    url = _value(response)
    return ParsedLog(title="Get current url", title_info=str(url) if url is not None else None, response=response)


def parse_execute(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    return ParsedLog(
        title="Execute script",
        title_info=_arg(args, 0),
        params={"script": _arg(args, 0), "args": _arg(args, 1)},
        response=response,
    )


def parse_get_screenshot(driver: Any, args: Sequence[Any], response: Any) -> ParsedLog:
    # The image itself is stored as an artifact, not inside the record.
    return ParsedLog(title="Take screenshot", response=None)


DEFAULT_PARSERS: Mapping[str, CommandParser] = {
    "createSession": parse_create_session,
    "deleteSession": parse_delete_session,
    "findElement": parse_find_element,
    "findElements": parse_find_elements,
    "elementDisplayed": parse_element_displayed,
    "click": parse_click,
    "setValue": parse_set_value,
    "getText": parse_get_text,
    "setUrl": parse_set_url,
    "getUrl": parse_get_url,
    "execute": parse_execute,
    "getScreenshot": parse_get_screenshot,
}


def default_parser_table() -> ParserTable:
    return ParserTable(DEFAULT_PARSERS)


__all__ = ["CommandParser", "DEFAULT_PARSERS", "ParserTable", "default_parser_table"]
