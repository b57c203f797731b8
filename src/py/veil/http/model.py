from abc import ABC, abstractmethod
from enum import Enum
from functools import lru_cache
from typing import Any, Literal, NamedTuple, TypeAlias, Union
from urllib.parse import parse_qsl

from ..store import FileHandle
from .api import ResponseFactory
from .status import HTTP_STATUS

DEFAULT_ENCODING: str = "utf8"


@lru_cache(maxsize=1_024)
def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	return "-".join(_.capitalize() for _ in name.strip().split("-"))


def statusmessage(status: int) -> str:
	return HTTP_STATUS.get(status, "Unknown status")


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""The first line of a request, the query being kept raw."""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Headers by normalized name, along with the ones that drive body
	processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""What the parser and the connection handler report besides requests"""

	Processing = 0
	Body = 1
	Timeout = 10
	NoData = 11
	BadFormat = 12


class HTTPRequestError(Exception):
	"""Raised by handlers to respond with an error, 500 unless a status is
	given."""

	def __init__(self, message: str, status: int | None = None):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""A body held in memory."""

	payload: bytes = b""

	@property
	def length(self) -> int:
		return len(self.payload)


class HTTPBodyHandle(NamedTuple):
	"""A body streamed from a file store handle, which the body owns."""

	handle: FileHandle
	length: int

	def close(self) -> None:
		self.handle.close()


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyHandle

# What the parser produces
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]


class HTTPBodyWriter(ABC):
	"""Writes response heads and bodies to an underlying transport."""

	__slots__ = ["chunkSize"]

	def __init__(self, chunkSize: int = 64_000) -> None:
		self.chunkSize: int = chunkSize

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body. Handle bodies are closed once
		written, even when writing fails."""
		match body:
			case None:
				return True
			case bytes():
				return await self._writeBytes(body)
			case HTTPBodyBlob():
				return await self._writeBytes(body.payload)
			case HTTPBodyHandle():
				try:
					while chunk := body.handle.read(self.chunkSize):
						await self._writeBytes(chunk, True)
				finally:
					body.close()
				return True
			case _:
				raise ValueError(f"Unsupported body format: {body}")

	@abstractmethod
	async def _writeBytes(self, chunk: bytes | None | Literal[False], more: bool = False) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUEST
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""A parsed request, which is also the factory for its responses (that
	use the same protocol version)."""

	__slots__ = ["line", "head", "_body", "_query"]

	@staticmethod
	def Create(
		method: str,
		path: str,
		headers: dict[str, str] | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPRequest":
		path, _, query = path.partition("?")
		return HTTPRequest(
			HTTPRequestLine(method, path, query, protocol),
			HTTPHeaders({headername(k): v for k, v in (headers or {}).items()}),
		)

	def __init__(
		self,
		line: HTTPRequestLine,
		head: HTTPHeaders | None = None,
		body: HTTPBodyBlob | None = None,
	):
		super().__init__()
		self.line: HTTPRequestLine = line
		self.head: HTTPHeaders = head or HTTPHeaders({})
		self._body: HTTPBodyBlob | None = body
		self._query: dict[str, str] | None = None

	@property
	def method(self) -> str:
		return self.line.method

	@property
	def path(self) -> str:
		return self.line.path

	@property
	def protocol(self) -> str:
		return self.line.protocol

	@property
	def query(self) -> dict[str, str]:
		if self._query is None:
			self._query = dict(parse_qsl(self.line.query, keep_blank_values=True))
		return self._query

	@property
	def headers(self) -> dict[str, str]:
		return self.head.headers

	def header(self, name: str) -> str | None:
		return self.head.headers.get(headername(name))

	@property
	def contentType(self) -> str | None:
		return self.head.contentType

	@property
	def contentLength(self) -> int | None:
		return self.head.contentLength

	@property
	def body(self) -> HTTPBodyBlob:
		return self._body or HTTPBodyBlob()

	@property
	def keepAlive(self) -> bool:
		# HTTP/1.0 connections are only kept alive on demand
		connection: str = (self.header("Connection") or "").lower()
		return connection == "keep-alive" if self.protocol == "HTTP/1.0" else connection != "close"

	def respond(
		self,
		status: int = 200,
		content: Any = None,
		*,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			content,
			contentType=contentType,
			contentLength=contentLength,
			headers=headers,
			status=status,
			protocol=self.protocol,
		)

	def __str__(self) -> str:
		query: str = f"?{self.line.query}" if self.line.query else ""
		return f"Request({self.method} {self.path}{query} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""A response, whose body is either in memory or streamed from a store
	handle. Responses always announce their length."""

	__slots__ = ["protocol", "status", "message", "headers", "body"]

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		body: THTTPBody | None
		if content is None:
			body, length = None, 0
		elif isinstance(content, (str, bytes)):
			body = HTTPBodyBlob(content.encode(DEFAULT_ENCODING) if isinstance(content, str) else content)
			length = body.length
		elif isinstance(content, FileHandle):
			length = content.stat().size if contentLength is None else contentLength
			body = HTTPBodyHandle(content, length)
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		fields: dict[str, str] = {headername(k): v for k, v in (headers or {}).items()}
		if contentType is not None:
			fields["Content-Type"] = contentType
		fields["Content-Length"] = str(length)
		return HTTPResponse(
			protocol=protocol,
			status=status,
			message=message,
			headers=HTTPHeaders(fields, contentType=fields.get("Content-Type"), contentLength=length),
			body=body,
		)

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str = message or statusmessage(status)
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def head(self) -> bytes:
		"""The status line and headers, as sent on the wire."""
		lines: list[str] = [f"{self.protocol} {self.status} {self.message}"]
		lines += [f"{k}: {v}" for k, v in self.headers.headers.items()]
		return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

	def close(self) -> None:
		"""Releases the body when it holds a store handle."""
		if isinstance(self.body, HTTPBodyHandle):
			self.body.close()

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
