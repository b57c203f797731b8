from typing import ClassVar, Iterator

from .model import (
	HTTPAtom,
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)

EOL: bytes = b"\r\n"


def parseRequestLine(data: bytes) -> HTTPRequestLine | None:
	"""Parses a `METHOD target HTTP/x.y` line, returning `None` when it
	is malformed."""
	parts: list[str] = data.decode("latin-1").split(" ")
	if len(parts) != 3 or not parts[0] or not parts[2].startswith("HTTP/"):
		return None
	path, _, query = parts[1].partition("?")
	return HTTPRequestLine(parts[0], path, query, parts[2])


def parseLength(value: str | None) -> int | None:
	try:
		return None if value is None else int(value)
	except ValueError:
		return None


class HTTPParser:
	"""A stateful HTTP request parser, fed with chunks of bytes and
	producing requests as they complete. Several requests may be produced
	from a single chunk when they are pipelined, and a request may span
	any number of chunks."""

	METHOD_HAS_BODY: ClassVar[frozenset[str]] = frozenset(("POST", "PUT", "PATCH"))

	def __init__(self) -> None:
		self.buffer: bytearray = bytearray()
		self.line: HTTPRequestLine | None = None
		self.headers: dict[str, str] = {}
		self.head: HTTPHeaders | None = None
		self.expected: int = 0

	def reset(self) -> "HTTPParser":
		self.buffer.clear()
		self.line = None
		self.headers = {}
		self.head = None
		self.expected = 0
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		buffer: bytearray = self.buffer
		buffer.extend(chunk)
		while buffer:
			if self.head is not None:
				# The body is only produced once it has been fully received
				if len(buffer) < self.expected:
					break
				body = bytes(buffer[: self.expected])
				del buffer[: self.expected]
				yield self.complete(HTTPBodyBlob(body))
				continue
			end: int = buffer.find(EOL)
			if end == -1:
				break
			data: bytes = bytes(buffer[:end])
			del buffer[: end + len(EOL)]
			if self.line is None:
				if not data:
					# Empty lines between pipelined requests are ignored (RFC 9112 §2.2)
					continue
				line = parseRequestLine(data)
				if line is None:
					# There's no way to resynchronize on a malformed stream
					self.reset()
					yield HTTPProcessingStatus.BadFormat
					return
				self.line = line
				yield line
			elif data:
				name, sep, value = data.decode("latin-1").partition(":")
				# Lines that are not headers are skipped
				if sep:
					self.headers[headername(name)] = value.strip()
			else:
				self.head = HTTPHeaders(
					self.headers,
					contentType=self.headers.get("Content-Type"),
					contentLength=parseLength(self.headers.get("Content-Length")),
				)
				yield self.head
				self.expected = self.head.contentLength or 0
				if self.expected > 0 and self.line.method in self.METHOD_HAS_BODY:
					yield HTTPProcessingStatus.Body
				else:
					yield self.complete(HTTPBodyBlob())

	def complete(self, body: HTTPBodyBlob) -> HTTPRequest:
		"""Creates the request from the parsed line, headers and body, and
		gets ready for the next one."""
		line, head = self.line, self.head
		if line is None:
			raise RuntimeError("Request completed without a request line")
		self.line = None
		self.headers = {}
		self.head = None
		self.expected = 0
		return HTTPRequest(line, head, body)


# EOF
