import re
from inspect import isawaitable
from typing import Any, Callable, ClassVar, NamedTuple, Optional, Pattern

from .decorators import Annotations, Transform
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import debug


async def awaited(value: Any) -> Any:
    return (await value) if isawaitable(value) else value


# -----------------------------------------------------------------------------
#
# ROUTE
#
# -----------------------------------------------------------------------------


class Converter(NamedTuple):
    """How a `{name:type}` placeholder matches and converts its text."""

    expr: str
    convert: Callable[[str], Any] = str


class Route:
    """A path template like `/post/{id:digits}/{slug}`, compiled to a
    regular expression that must match the whole path. Placeholders
    default to the `segment` type."""

    RE_PLACEHOLDER: ClassVar[Pattern[str]] = re.compile(r"\{(?P<name>[A-Za-z_]\w*)(?::(?P<type>[^}]+))?\}")

    CONVERTERS: ClassVar[dict[str, Converter]] = {
        "id": Converter(r"[a-zA-Z0-9\-_]+"),
        "name": Converter(r"\w[\-\w]*"),
        "segment": Converter(r"[^/]+"),
        "digits": Converter(r"\d+", int),
        "any": Converter(r".*"),
        "rest": Converter(r".+"),
    }

    def __init__(self, text: str, handler: Optional["Handler"] = None):
        self.text: str = text
        self.handler: Handler | None = handler
        self.converters: dict[str, Callable[[str], Any]] = {}
        expr: list[str] = []
        offset: int = 0
        for m in self.RE_PLACEHOLDER.finditer(text):
            kind: str = (m.group("type") or "segment").lower()
            converter = self.CONVERTERS.get(kind)
            if converter is None:
                raise ValueError(f"Unknown route type '{kind}' in '{text}', expected one of: {', '.join(sorted(self.CONVERTERS))}")
            expr += [re.escape(text[offset : m.start()]), f"(?P<{m.group('name')}>{converter.expr})"]
            self.converters[m.group("name")] = converter.convert
            offset = m.end()
        expr.append(re.escape(text[offset:]))
        self.regexp: Pattern[str] = re.compile("".join(expr))

    @property
    def priority(self) -> int:
        return self.handler.priority if self.handler else 0

    def match(self, path: str) -> dict[str, Any] | None:
        """Returns the converted parameters when the path matches."""
        m = self.regexp.fullmatch(path)
        return None if m is None else {k: f(m.group(k)) for k, f in self.converters.items()}

    def __repr__(self) -> str:
        return f"Route({self.text!r})"


# -----------------------------------------------------------------------------
#
# HANDLER
#
# -----------------------------------------------------------------------------


class Handler:
    """A bound handler function along with its annotations."""

    @staticmethod
    def Get(value: Any) -> Optional["Handler"]:
        annotations = Annotations.Get(value)
        return Handler(value, annotations) if annotations and annotations.routes else None

    def __init__(self, functor: Callable[..., Any], annotations: Annotations):
        self.functor: Callable[..., Any] = functor
        self.priority: int = annotations.priority
        self.routes: list[tuple[str, str]] = list(annotations.routes)
        # The outermost `@pre` runs first
        self.pre: list[Transform] = list(reversed(annotations.pre))

    async def __call__(self, request: HTTPRequest, params: dict[str, Any]) -> HTTPResponse:
        try:
            for step in self.pre:
                res = await awaited(step.transform(request, params, *step.args, **step.kwargs))
                if isinstance(res, HTTPResponse):
                    return res
                if res is False:
                    return request.fail(f"Precondition failed: {step.name}")
            return await awaited(self.functor(request, **params))
        except HTTPRequestError as e:
            return request.error(e.status or 500, e.message)

    def __repr__(self) -> str:
        return f"Handler({getattr(self.functor, '__qualname__', self.functor)}, {self.routes})"


# -----------------------------------------------------------------------------
#
# DISPATCHER
#
# -----------------------------------------------------------------------------


class Dispatcher:
    """Holds the routes for each HTTP method, the first matching route
    of the highest priority winning."""

    def __init__(self) -> None:
        self.routes: dict[str, list[Route]] = {}

    def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
        base: str = prefix.rstrip("/") if prefix else ""
        for method, path in handler.routes:
            path = f"{base}{path if path.startswith('/') else '/' + path}"
            self.routes.setdefault(method, []).append(Route(path, handler))
            debug("Registered route", Method=method, Path=path)
        return self

    def prepare(self) -> "Dispatcher":
        for routes in self.routes.values():
            # Stable, so registration order breaks ties
            routes.sort(key=lambda _: -_.priority)
        return self

    @property
    def methods(self) -> list[str]:
        return sorted(self.routes)

    def match(self, method: str, path: str) -> tuple[Route | None, dict[str, Any] | None]:
        for route in self.routes.get(method, ()):
            if (params := route.match(path)) is not None:
                return route, params
        return None, None

    def allowed(self, path: str) -> list[str]:
        """The methods for which the path has a route."""
        return [_ for _ in self.methods if self.match(_, path)[0]]


# EOF
