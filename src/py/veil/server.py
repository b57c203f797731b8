import asyncio
import errno
import socket
import threading
import time
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Literal, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
	statusmessage,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.logging import LogLevel, access, debug, error, exception, info, logged, warning


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 5000
	backlog: int = 1_024
	# Timeout when waiting for connections, which is how often the server
	# checks if it should stop.
	polling: float = 1.0
	readsize: int = 4_096
	# Idle connections are closed after that many seconds
	keepalive: float = 30.0
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()


def closing(status: int) -> bytes:
	"""A complete plain text response for `status` that closes the
	connection, for when there is no application response to send."""
	content: bytes = statusmessage(status).encode("latin-1")
	res = HTTPResponse.Create(content, contentType="text/plain", status=status)
	res.setHeader("Connection", "close")
	return res.head() + content


SERVER_ERROR: bytes = closing(500)
SERVER_BAD_REQUEST: bytes = closing(400)


class SocketWriter(HTTPBodyWriter):
	"""Writes to a non-blocking socket through the event loop."""

	__slots__ = ["client", "loop"]

	def __init__(self, client: socket.socket, loop: asyncio.AbstractEventLoop) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(self, chunk: bytes | None | Literal[False], more: bool = False) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True


async def sendResponse(
	request: HTTPRequest,
	app: Application,
	writer: HTTPBodyWriter,
	*,
	keepAlive: bool = True,
) -> HTTPResponse | None:
	"""Processes the request within the application and sends the response
	using the given writer. Any store handle held by the response is
	released, whatever happens while sending. Returns `None` when no
	response could be sent, in which case the connection should be closed."""
	res: HTTPResponse | None = None
	# Once given to the writer, the body is released by it
	released: bool = False
	try:
		res = await app.process(request)
		if not keepAlive:
			res.setHeader("Connection", "close")
		await writer.write(res.head())
		# HEAD responses have the headers of the GET response, but no body
		if request.method != "HEAD":
			released = True
			await writer.write(res.body)
		return res
	except (BrokenPipeError, ConnectionResetError):
		# Client did an early close
		return None
	except Exception as e:
		exception(e, f"Could not respond to {request.method} {request.path}")
		if res is None:
			try:
				await writer.write(SERVER_ERROR)
			except Exception as f:
				exception(f)
		return None
	finally:
		if res is not None and not released:
			try:
				res.close()
			except Exception as e:
				exception(e, "Could not release response body")


# -----------------------------------------------------------------------------
#
# CONNECTION
#
# -----------------------------------------------------------------------------


class Connection:
	"""A client connection, on which requests are processed in order until
	the client closes it, asks to close it, or stays idle too long."""

	def __init__(
		self,
		client: socket.socket,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions = OPTIONS,
	):
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop
		self.options: ServerOptions = options
		self.parser: HTTPParser = HTTPParser()
		self.writer: SocketWriter = SocketWriter(client, loop)
		self.status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		self.requests: int = 0
		self.responses: int = 0

	async def receive(self, buffer: bytearray) -> bytes | None:
		try:
			n: int = await asyncio.wait_for(
				self.loop.sock_recv_into(self.client, buffer),
				timeout=self.options.keepalive,
			)
		except asyncio.TimeoutError:
			self.status = HTTPProcessingStatus.Timeout
			return None
		if not n:
			self.status = HTTPProcessingStatus.NoData
			return None
		return bytes(buffer[:n])

	async def respond(self, app: Application, request: HTTPRequest) -> bool:
		"""Sends the response to the request, telling if the connection
		is to be kept open."""
		self.requests += 1
		keep_alive: bool = request.keepAlive
		started: float = time.monotonic()
		res = await sendResponse(request, app, self.writer, keepAlive=keep_alive)
		if res is None:
			return False
		self.responses += 1
		if self.options.logRequests:
			access(request.method, request.path, res.status, time.monotonic() - started)
		return keep_alive

	async def process(self, app: Application) -> None:
		buffer = bytearray(self.options.readsize)
		try:
			keep_alive: bool = True
			while keep_alive and (data := await self.receive(buffer)) is not None:
				# With HTTP pipelining, a single read may hold more than
				# one request.
				for atom in self.parser.feed(data):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request, closing connection", Requests=self.requests)
						await self.writer.write(SERVER_BAD_REQUEST)
						keep_alive = False
					elif isinstance(atom, HTTPRequest):
						keep_alive = await self.respond(app, atom)
					if not keep_alive:
						break
			if self.status is HTTPProcessingStatus.Timeout and self.requests != self.responses:
				warning("Client timed out", Requests=self.requests, Responses=self.responses)
			elif logged(LogLevel.Debug):
				debug("Connection closed", Status=self.status.name, Requests=self.requests)
		except (BrokenPipeError, ConnectionResetError):
			pass
		except Exception as e:
			exception(e)
		finally:
			self.client.close()


# -----------------------------------------------------------------------------
#
# SERVER
#
# -----------------------------------------------------------------------------


class Server:
	"""Accepts connections on a listening socket and processes each of them
	in its own task, using the event loop's socket operations directly."""

	def __init__(self, app: Application, options: ServerOptions = OPTIONS):
		self.app: Application = app
		self.options: ServerOptions = options
		self.isRunning: bool = False
		self.tasks: set[asyncio.Task[None]] = set()

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
		e = context.get("exception")
		if e:
			exception(e)

	def bind(self) -> socket.socket:
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((self.options.host, self.options.port))
		except OSError:
			server.close()
			error(f"Unable to bind to {self.options.host}:{self.options.port}, aborting.", "HOSTPORTERR")
			raise
		server.listen(self.options.backlog)
		server.setblocking(False)
		return server

	async def accept(self, server: socket.socket, loop: asyncio.AbstractEventLoop) -> socket.socket | None:
		try:
			client, _ = await asyncio.wait_for(loop.sock_accept(server), timeout=self.options.polling)
		except asyncio.TimeoutError:
			return None
		except OSError as e:
			if e.errno == errno.EMFILE:
				# Too many open files, we give connections time to close
				await asyncio.sleep(0.1)
			else:
				exception(e)
			return None
		return client

	async def serve(self) -> None:
		"""Main server coroutine."""
		server = self.bind()
		loop = asyncio.get_running_loop()
		# Signal handlers can only be set from the main thread
		if self.options.stopSignals and threading.current_thread() is threading.main_thread():
			loop.add_signal_handler(SIGINT, self.stop)
			loop.add_signal_handler(SIGTERM, self.stop)
		loop.set_exception_handler(self.onException)
		self.isRunning = True
		try:
			await self.app.start()
			info("Veil server listening", icon="🚀", Host=self.options.host, Port=self.options.port)
			while self.isRunning:
				if self.options.condition and not self.options.condition():
					break
				client = await self.accept(server, loop)
				if client is None:
					continue
				task = loop.create_task(Connection(client, loop, self.options).process(self.app))
				self.tasks.add(task)
				task.add_done_callback(self.tasks.discard)
		finally:
			server.close()
			for task in self.tasks:
				task.cancel()
			await asyncio.gather(*self.tasks, return_exceptions=True)
			await self.app.stop()


def run(
	*components: Application | Service,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""High level function to run the server."""
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	try:
		asyncio.run(Server(mount(*components), options).serve())
	except KeyboardInterrupt:
		info("Server interrupted")
	info("Server stopped")


# EOF
