import asyncio
from typing import Literal, NamedTuple

from .http.model import HTTPBodyWriter, HTTPProcessingStatus, HTTPRequest
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .server import SERVER_BAD_REQUEST, sendResponse

__doc__ = """
An in-process bridge to the application, which processes raw HTTP request
bytes and returns the raw response bytes, going through the same parsing
and response writing as the socket server. This is what the tests and
offline tools use.
"""


class BytesWriter(HTTPBodyWriter):
    """Accumulates whatever is written in memory."""

    __slots__ = ["data"]

    def __init__(self) -> None:
        super().__init__()
        self.data: list[bytes] = []

    async def _writeBytes(self, chunk: bytes | None | Literal[False], more: bool = False) -> bool:
        if chunk:
            self.data.append(chunk)
        return True

    def getvalue(self) -> bytes:
        return b"".join(self.data)


class BridgeResponse(NamedTuple):
    """A response as read back from its raw bytes."""

    protocol: str
    status: int
    headers: dict[str, str]
    body: bytes

    @staticmethod
    def Parse(data: bytes) -> "BridgeResponse":
        head, _, body = data.partition(b"\r\n\r\n")
        lines = head.decode("latin-1").split("\r\n")
        protocol, status, *_ = lines[0].split(" ", 2)
        headers: dict[str, str] = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            headers[name.strip()] = value.strip()
        return BridgeResponse(protocol, int(status), headers, body)

    def header(self, name: str) -> str | None:
        key = name.lower()
        for k, v in self.headers.items():
            if k.lower() == key:
                return v
        return None


class Bridge:
    def __init__(self, application: Application):
        self.application: Application = application
        if not self.application:
            raise ValueError("Bridge has not been given an application")
        self.isStarted: bool = False

    async def process(self, data: bytes) -> bytes:
        if not self.isStarted:
            await self.application.start()
            self.isStarted = True
        parser = HTTPParser()
        writer = BytesWriter()
        for atom in parser.feed(data):
            if atom is HTTPProcessingStatus.BadFormat:
                await writer.write(SERVER_BAD_REQUEST)
                break
            elif isinstance(atom, HTTPRequest):
                res = await sendResponse(atom, self.application, writer, keepAlive=atom.keepAlive)
                if res is None or not atom.keepAlive:
                    break
        return writer.getvalue()

    def request(self, data: bytes) -> bytes:
        """Processes the given request bytes (which may hold pipelined
        requests), returning the response bytes."""
        return asyncio.run(self.process(data))

    def get(self, path: str, method: str = "GET", headers: dict[str, str] | None = None) -> BridgeResponse:
        lines: list[str] = [f"{method} {path} HTTP/1.1", "Host: localhost"]
        lines += [f"{k}: {v}" for k, v in (headers or {}).items()]
        lines += ["", ""]
        return BridgeResponse.Parse(self.request("\r\n".join(lines).encode("latin-1")))


def run(*components: Application | Service) -> Bridge:
    """Mounts the given components on a bridge instead of a server."""
    return Bridge(mount(*components))


# EOF
