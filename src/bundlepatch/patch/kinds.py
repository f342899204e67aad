from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Optional, Tuple

from bundlepatch.logger import logger

from .anchors import extract_window, find_anchor_offsets, locate_anchor, select_offset
from .matcher import (
    contains_between,
    match_all,
    match_structure,
    resolve_location,
    validate_candidates,
)
from .models import (
    Anchor,
    AnchorNotFound,
    Location,
    PatchError,
    PatternNotFound,
    Resolution,
    SearchDirection,
    SecondaryAnchorMissing,
    Window,
)


class BasePatchKind(ABC):
    """
    A named patch: a pure locate step over the buffer plus the text that
    replaces the located span.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""

    def is_applied(self, buffer: str) -> bool:
        """Idempotency marker check. Kinds without a marker return False."""
        return False

    @abstractmethod
    def locate(self, buffer: str) -> Resolution:
        raise NotImplementedError

    @abstractmethod
    def replacement(self, resolution: Resolution) -> str:
        raise NotImplementedError


class PatchKindRegistry:
    _registry: ClassVar[dict[str, type[BasePatchKind]]] = {}

    @classmethod
    def register(cls, name: str, kind_cls: type[BasePatchKind] | None = None):
        def _do_register(inner: type[BasePatchKind]) -> type[BasePatchKind]:
            if name in cls._registry:
                raise ValueError(f"Patch kind '{name}' already registered.")
            inner.name = name
            cls._registry[name] = inner
            return inner

        if kind_cls is None:
            return _do_register
        return _do_register(kind_cls)

    @classmethod
    def names(cls) -> Tuple[str, ...]:
        return tuple(cls._registry.keys())

    @classmethod
    def get(cls, name: str) -> type[BasePatchKind]:
        kind_cls = cls._registry.get(name)
        if kind_cls is None:
            raise ValueError(f"Unknown patch kind: {name}")
        return kind_cls

    @classmethod
    def create(cls, name: str, **options: Any) -> BasePatchKind:
        return cls.get(name)(**options)


# verbose

CREATE_ELEMENT_RE = re.compile(
    r"createElement\([$\w]+,\{[^}]*spinnerTip[^}]*overrideMessage[^}]*\}"
)
VERBOSE_RE = re.compile(r"verbose:[^,}]+")


@PatchKindRegistry.register("verbose")
class VerbosePatch(BasePatchKind):
    description = "Set the verbose flag of the spinner element"

    def __init__(self, value: bool = True) -> None:
        self.value = value

    def locate(self, buffer: str) -> Resolution:
        anchor = Anchor(pattern=CREATE_ELEMENT_RE.pattern, regex=True)
        offsets = find_anchor_offsets(buffer, anchor)
        call_start = select_offset(offsets, anchor.direction)
        call = CREATE_ELEMENT_RE.match(buffer, call_start)
        assert call is not None

        window = extract_window(buffer, call_start, 0, call.end() - call_start)
        m = match_structure(window, VERBOSE_RE, what="verbose property")
        value = m.text.split(":", 1)[1]
        return Resolution(
            location=resolve_location(window, m, captured=value),
            candidates=offsets,
        )

    def replacement(self, resolution: Resolution) -> str:
        return f"verbose:{'true' if self.value else 'false'}"


# context low warning

CONTEXT_LOW_ANCHOR = Anchor(pattern="Context low (")
CONTEXT_LOW_LOOKBACK = 800
CONTEXT_LOW_LOOKAHEAD = 100
FUNCTION_DECL = "function "
TOKEN_USAGE = "tokenUsage:"
NULL_GUARD_RE = re.compile(r"if\([^)]+\)return null")
DISABLED_GUARD = "if(true)return null"


@PatchKindRegistry.register("context_low")
class ContextLowPatch(BasePatchKind):
    description = "Disable the 'Context low' warning"

    def is_applied(self, buffer: str) -> bool:
        """
        Only consulted once the 'Context low (' text is gone, e.g. after the
        message rewrite. The warning counts as disabled when some function
        mentioning 'tokenUsage:' already carries the forced guard.
        """
        if CONTEXT_LOW_ANCHOR.pattern in buffer:
            return False
        for guard in re.finditer(re.escape(DISABLED_GUARD), buffer):
            window = extract_window(
                buffer, guard.start(), CONTEXT_LOW_LOOKBACK, CONTEXT_LOW_LOOKBACK
            )
            head = buffer[window.start : guard.start()]
            func = head.rfind(FUNCTION_DECL)
            if func == -1:
                continue
            if TOKEN_USAGE in buffer[window.start + func : window.end]:
                return True
        return False

    def locate(self, buffer: str) -> Resolution:
        anchor_pos, _ = locate_anchor(buffer, CONTEXT_LOW_ANCHOR)
        window = extract_window(
            buffer, anchor_pos, CONTEXT_LOW_LOOKBACK, CONTEXT_LOW_LOOKAHEAD
        )

        # Only declarations that start before the anchor are candidates
        backward = Window(
            start=window.start,
            end=anchor_pos,
            text=buffer[window.start : anchor_pos],
        )
        decls = match_all(backward, re.escape(FUNCTION_DECL))
        if not decls:
            raise PatternNotFound(
                "No function declaration before 'Context low ('",
                hint=f"Searched {CONTEXT_LOW_LOOKBACK} characters back",
            )
        offsets = [resolve_location(backward, d).start for d in decls]
        survivors = validate_candidates(
            buffer,
            offsets,
            contains_between(TOKEN_USAGE, window.end),
            what="function declaration containing 'tokenUsage:'",
        )

        # Closest to the anchor wins
        func_start = survivors[-1]
        body = Window(start=func_start, end=window.end, text=buffer[func_start : window.end])
        m = match_structure(body, NULL_GUARD_RE, what="'return null' guard")
        return Resolution(
            location=resolve_location(body, m, captured=m.text),
            candidates=survivors,
        )

    def replacement(self, resolution: Resolution) -> str:
        return DISABLED_GUARD


# esc to interrupt hint

ESC_ANCHOR = Anchor(
    pattern='{key:"esc"}',
    secondary='"to interrupt"',
    secondary_distance=200,
)
ESC_LOOKBACK = 500
SPREAD = "..."


@PatchKindRegistry.register("esc_interrupt")
class EscInterruptPatch(BasePatchKind):
    description = "Hide the 'esc to interrupt' hint"

    def _condition_span(self, buffer: str, anchor_pos: int) -> Optional[Location]:
        window = extract_window(buffer, anchor_pos, ESC_LOOKBACK, 0)
        spread = window.text.rfind(SPREAD)
        if spread == -1:
            return None
        question = window.text.find("?", spread + len(SPREAD))
        if question == -1:
            return None
        start = window.start + spread + len(SPREAD)
        end = window.start + question
        return Location(start=start, end=end, captured=buffer[start:end].strip())

    def locate(self, buffer: str) -> Resolution:
        offsets = find_anchor_offsets(buffer, ESC_ANCHOR)
        spans = [
            span
            for span in (self._condition_span(buffer, o) for o in offsets)
            if span is not None
        ]
        if not spans:
            raise PatternNotFound(
                "Could not find ternary condition before the esc hint",
                hint=f"Expected '...<cond>?' within {ESC_LOOKBACK} characters",
            )
        return Resolution(location=spans[0], candidates=[s.start for s in spans])

    def replacement(self, resolution: Resolution) -> str:
        return "(false)"


# statusline auto refresh

REFRESH_MARKER = "setInterval(function(){try{"
GENERIC_REFRESH_NAME = "refreshStatusLine"
INJECTED_CALL_RE = re.compile(
    r"setInterval\(function\(\)\{try\{[$\w]+\(\{\}\)\}catch\(e\)\{\}\}"
)

SIGNAL_ANCHOR = Anchor(
    pattern='process.on("SIGINT"',
    secondary='process.on("SIGTERM"',
    secondary_distance=200,
)
SIGNAL_INIT_LOOKBACK = 500
TRY_LOOKBACK = 500
VAR_DECL_RE = re.compile(r"var\s+([$\w]+)\s*=")
TRY_CATCH_END_RE = re.compile(r"\}\}\);")

STATUSLINE = "statusLine"
ASYNC_FUNCTION = "async function "
STATUSLINE_FUNC_LOOKBACK = 300
STATUSLINE_FUNC_LOOKAHEAD = 3000
FUNCTION_END_RE = re.compile(r"\}\s*(async|function|[A-Z])")
INIT_PATTERNS = ('process.on("SIGINT"', 'process.on("exit"', ".render();")

# Callback name strategies, most specific first
CALLBACK_STRATEGIES: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    (
        "call_site",
        re.compile(r"async function ([$\w]+)\([^)]*\)\{[^}]*nA\(\)\?\.statusLine"),
    ),
    (
        "hook_executor",
        re.compile(
            r"async function ([$\w]+)\([^)]*\)\{[^}]{0,500}statusLine[^}]{0,500}Ye1"
        ),
    ),
    (
        "proximity",
        re.compile(r"async function ([$\w]+)\([^)]*\)\{[^}]{0,200}statusLine"),
    ),
)
CALLBACK_FALLBACK_LOOKBACK = 500
ASYNC_FUNCTION_NAME_RE = re.compile(r"async function ([$\w]+)\(")

InjectionStrategy = Callable[[str], Optional[int]]


def _signal_handler_injection(buffer: str) -> Optional[int]:
    try:
        sigint_pos, _ = locate_anchor(buffer, SIGNAL_ANCHOR)
    except (AnchorNotFound, SecondaryAnchorMissing):
        return None

    window = extract_window(buffer, sigint_pos, SIGNAL_INIT_LOOKBACK, 0)
    decls = match_all(window, VAR_DECL_RE)
    if not decls:
        return None
    init_name = decls[-1].groups[0]
    assert init_name is not None
    logger.debug("signal handler init function", name=init_name)

    # Past this point the init function is known; failures are reported.
    call_re = re.compile(r"(?<![$\w.])" + re.escape(init_name) + r"\(\)")
    call = call_re.search(buffer)
    if call is None:
        raise PatternNotFound(f"Could not find call site {init_name}()")

    before = extract_window(buffer, call.start(), TRY_LOOKBACK, 0)
    if "try{" not in before.text:
        raise PatternNotFound(f"Could not find try block around {init_name}()")

    end = TRY_CATCH_END_RE.search(buffer, call.start())
    if end is None:
        raise PatternNotFound(f"Could not find try/catch end after {init_name}()")
    return end.end()


def _statusline_function_end(buffer: str) -> Optional[int]:
    pos = buffer.find(STATUSLINE)
    if pos == -1:
        return None
    back = extract_window(buffer, pos, STATUSLINE_FUNC_LOOKBACK, 0)
    if back.text.rfind(ASYNC_FUNCTION) == -1:
        return None
    fwd = extract_window(buffer, pos, 0, STATUSLINE_FUNC_LOOKAHEAD)
    m = FUNCTION_END_RE.search(fwd.text)
    if m is None:
        return None
    return fwd.start + m.start() + 1


def _init_pattern(buffer: str) -> Optional[int]:
    for pattern in INIT_PATTERNS:
        pos = buffer.rfind(pattern)
        if pos == -1:
            continue
        semi = buffer.find(";", pos + len(pattern))
        if semi != -1:
            return semi + 1
    return None


INJECTION_STRATEGIES: Tuple[Tuple[str, InjectionStrategy], ...] = (
    ("signal_handler", _signal_handler_injection),
    ("statusline_function_end", _statusline_function_end),
    ("init_pattern", _init_pattern),
)


def find_statusline_callback(buffer: str) -> Tuple[Optional[str], Optional[str]]:
    """Return (function name, strategy name) or (None, None)."""
    for strategy, pattern in CALLBACK_STRATEGIES:
        m = pattern.search(buffer)
        if m is not None:
            return m.group(1), strategy

    pos = buffer.find(STATUSLINE)
    if pos != -1:
        window = extract_window(buffer, pos, CALLBACK_FALLBACK_LOOKBACK, 0)
        found = match_all(window, ASYNC_FUNCTION_NAME_RE)
        if found:
            return found[-1].groups[0], "last_async_function"
    return None, None


@PatchKindRegistry.register("statusline_refresh")
class StatuslineRefreshPatch(BasePatchKind):
    description = "Inject a periodic statusline refresh"

    def __init__(self, interval_ms: int = 30000) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.interval_ms = interval_ms

    def is_applied(self, buffer: str) -> bool:
        if REFRESH_MARKER not in buffer:
            return False
        return (
            GENERIC_REFRESH_NAME in buffer
            or INJECTED_CALL_RE.search(buffer) is not None
        )

    def locate(self, buffer: str) -> Resolution:
        position: Optional[int] = None
        injection = None
        for injection, strategy_fn in INJECTION_STRATEGIES:
            position = strategy_fn(buffer)
            if position is not None:
                break
        if position is None:
            raise AnchorNotFound(
                "Could not find an injection point for the statusline refresh",
                hint="Tried: " + ", ".join(n for n, _ in INJECTION_STRATEGIES),
            )
        if injection != INJECTION_STRATEGIES[0][0]:
            logger.warning("using fallback injection point", strategy=injection)

        callback, callback_strategy = find_statusline_callback(buffer)
        if callback is None:
            logger.warning("statusline function not found, using generic refresh")
        return Resolution(
            location=Location(start=position, end=position, captured=callback),
            candidates=[position],
            strategy=f"{injection}/{callback_strategy or 'generic'}",
        )

    def replacement(self, resolution: Resolution) -> str:
        callback = resolution.location.captured
        if callback:
            body = f"{callback}({{}})"
        else:
            body = (
                "if(typeof refreshStatusLine==='function')refreshStatusLine();"
                "else if(typeof updateStatusLine==='function')updateStatusLine();"
            )
        return f"setInterval(function(){{try{{{body}}}catch(e){{}}}},{self.interval_ms});"


# context low message text

CONTEXT_LOW_MESSAGE_RE = re.compile(r'"Context low \(",([^,]+),"% remaining\)[^"]*"')
PERCENT_PLACEHOLDER = "{percent}"


@PatchKindRegistry.register("context_low_message")
class ContextLowMessagePatch(BasePatchKind):
    description = "Rewrite the 'Context low' message text"

    def __init__(self, template: str = "Context left: {percent}%") -> None:
        self.template = template

    def _render(self, ident: Optional[str]) -> str:
        if PERCENT_PLACEHOLDER not in self.template or not ident:
            return json.dumps(self.template)
        prefix, suffix = self.template.split(PERCENT_PLACEHOLDER, 1)
        return f"{json.dumps(prefix)},{ident},{json.dumps(suffix)}"

    def is_applied(self, buffer: str) -> bool:
        if PERCENT_PLACEHOLDER not in self.template:
            return json.dumps(self.template) in buffer
        prefix, suffix = self.template.split(PERCENT_PLACEHOLDER, 1)
        # Same identifier class as the locate pattern
        rendered = re.escape(json.dumps(prefix)) + r",[^,]+," + re.escape(
            json.dumps(suffix)
        )
        return re.search(rendered, buffer) is not None

    def locate(self, buffer: str) -> Resolution:
        anchor = Anchor(pattern=CONTEXT_LOW_MESSAGE_RE.pattern, regex=True)
        offsets = find_anchor_offsets(buffer, anchor)
        start = select_offset(offsets, SearchDirection.FORWARD)
        m = CONTEXT_LOW_MESSAGE_RE.match(buffer, start)
        if m is None:
            raise PatchError(f"Anchor match vanished at {start}")
        return Resolution(
            location=Location(start=m.start(), end=m.end(), captured=m.group(1).strip()),
            candidates=offsets,
        )

    def replacement(self, resolution: Resolution) -> str:
        return self._render(resolution.location.captured)


DEFAULT_KINDS: Tuple[str, ...] = (
    "verbose",
    "context_low",
    "esc_interrupt",
    "statusline_refresh",
)

