from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, NamedTuple, Optional, TypeVar

T = TypeVar("T")


class Transform(NamedTuple):
    """A pre-processing step, called with the request, the route parameters
    and the extra arguments given to `@pre`."""

    transform: Callable[..., Any]
    args: tuple[Any, ...]
    kwargs: dict[str, Any]

    @property
    def name(self) -> str:
        return getattr(self.transform, "__name__", type(self.transform).__name__)


@dataclass
class Annotations:
    """What the decorators record on a handler function."""

    ATTRIBUTE: ClassVar[str] = "__veil__"

    # (HTTP method, route) pairs
    routes: list[tuple[str, str]] = field(default_factory=list)
    priority: int = 0
    # In decorator application order, that is innermost first
    pre: list[Transform] = field(default_factory=list)

    @classmethod
    def Get(cls, value: Any) -> Optional["Annotations"]:
        res = getattr(value, cls.ATTRIBUTE, None)
        return res if isinstance(res, Annotations) else None

    @classmethod
    def Ensure(cls, value: Any) -> "Annotations":
        res = cls.Get(value)
        if res is None:
            # Fails for builtins and slotted callables, which can't be handlers
            res = Annotations()
            setattr(value, cls.ATTRIBUTE, res)
        return res


def on(priority: int = 0, **methods: str | list[str] | tuple[str, ...]) -> Callable[[T], T]:
    """Marks a method as handling HTTP requests. HTTP methods are given as
    keyword arguments, joined with `_` for more than one, each mapped to a
    route or a list of routes.

    >    @on(GET_HEAD=("/", "/{path:any}"))
    >    def read(self, request, path=""):
    >        return request.respondText(path)

    The method gets called with the request and the route parameters, and
    returns a response (or an awaitable of a response)."""

    def decorator(function: T) -> T:
        annotations = Annotations.Ensure(function)
        annotations.priority = priority
        for names, value in methods.items():
            paths: tuple[str, ...] = (value,) if isinstance(value, str) else tuple(value)
            annotations.routes += [(m, p) for m in names.upper().split("_") for p in paths]
        return function

    return decorator


def pre(transform: Callable[..., Any], *args: Any, **kwargs: Any) -> Callable[[T], T]:
    """Runs `transform(request, params, *args, **kwargs)` before the
    decorated handler. A transform returning a response short-circuits the
    handler, `False` fails the request, anything else lets it through."""

    def decorator(function: T) -> T:
        Annotations.Ensure(function).pre.append(Transform(transform, args, kwargs))
        return function

    return decorator


# EOF
