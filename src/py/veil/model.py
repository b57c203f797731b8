from typing import Iterator, Optional

from .http.model import HTTPRequest, HTTPResponse
from .routing import Dispatcher, Handler, awaited
from .utils.logging import exception

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
    """A set of handlers, the methods decorated with `@on`, mounted
    together under an optional prefix."""

    PREFIX: str = ""

    def __init__(self, name: Optional[str] = None, *, prefix: str | None = None) -> None:
        self.name: str = name or type(self).__name__
        self.prefix: str = self.PREFIX if prefix is None else prefix
        self.app: Optional[Application] = None

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    @property
    def isMounted(self) -> bool:
        return self.app is not None

    def iterHandlers(self) -> Iterator[Handler]:
        """Yields the handlers bound to this service, a method overridden
        in a subclass shadowing the inherited one."""
        seen: set[str] = set()
        for cls in type(self).__mro__:
            for name in vars(cls):
                if name in seen:
                    continue
                seen.add(name)
                handler = Handler.Get(getattr(self, name, None))
                if handler:
                    yield handler

    def __repr__(self) -> str:
        return f"Service({self.name}{', mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
    """Dispatches requests to the handlers of its services."""

    def __init__(self, *services: Service) -> None:
        self.dispatcher: Dispatcher = Dispatcher()
        self.services: list[Service] = []
        for service in services:
            self.mount(service)

    def mount(self, service: Service, prefix: Optional[str] = None) -> Service:
        if service.isMounted:
            raise RuntimeError(f"Service already mounted: {service}")
        for handler in service.iterHandlers():
            self.dispatcher.register(handler, service.prefix if prefix is None else prefix)
        service.app = self
        self.services.append(service)
        return service

    async def start(self) -> "Application":
        self.dispatcher.prepare()
        for service in self.services:
            await service.start()
        return self

    async def stop(self) -> "Application":
        for service in reversed(self.services):
            await service.stop()
        return self

    async def process(self, request: HTTPRequest) -> HTTPResponse:
        """Always produces a response: a 404 when nothing matches, a 405
        when the path only has routes for other methods, and a 500 when the
        handler fails."""
        route, params = self.dispatcher.match(request.method, request.path)
        if route is None or route.handler is None:
            allowed = self.dispatcher.allowed(request.path)
            return request.notAllowed(", ".join(allowed)) if allowed else request.notFound()
        try:
            return await awaited(route.handler(request, params or {}))
        except Exception as e:
            exception(e, f"Handler failed for {request.method} {request.path}")
            return request.fail()


def mount(*components: Application | Service) -> Application:
    """Mounts the services in the first given application, or in a new
    one."""
    app: Application | None = None
    services: list[Service] = []
    for item in components:
        if isinstance(item, Application) and app is None:
            app = item
        elif isinstance(item, Service):
            services.append(item)
        else:
            raise TypeError(f"Expected an application or a service, got: {item!r}")
    app = app or Application()
    for service in services:
        app.mount(service)
    return app


# EOF
