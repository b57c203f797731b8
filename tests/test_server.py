import asyncio
import socket

from veil.bridge import BridgeResponse
from veil.http.model import HTTPResponse
from veil.model import mount
from veil.server import Connection, ServerOptions
from veil.services.files import FileService

OPTIONS = ServerOptions(keepalive=2.0, logRequests=False)


async def exchange(app, data: bytes) -> bytes:
	"""Sends the data over a socket pair to a server connection, returning
	everything it answers until it closes."""
	loop = asyncio.get_running_loop()
	await app.start()
	ours, theirs = socket.socketpair()
	ours.setblocking(False)
	theirs.setblocking(False)
	task = loop.create_task(Connection(theirs, loop, OPTIONS).process(app))
	await loop.sock_sendall(ours, data)
	chunks: list[bytes] = []
	try:
		while chunk := await asyncio.wait_for(loop.sock_recv(ours, 65_536), timeout=5.0):
			chunks.append(chunk)
	finally:
		ours.close()
	await task
	return b"".join(chunks)


def test_response_head():
	res = HTTPResponse.Create("Hi", contentType="text/plain", headers={"x-served-by": "veil"})
	assert res.head() == (
		b"HTTP/1.1 200 OK\r\n"
		b"X-Served-By: veil\r\n"
		b"Content-Type: text/plain\r\n"
		b"Content-Length: 2\r\n"
		b"\r\n"
	)


def test_connection(site):
	app = mount(FileService(site))
	data = asyncio.run(
		exchange(
			app,
			b"GET /subdir/page.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"
			b"HEAD / HTTP/1.1\r\nHost: localhost\r\n\r\n"
			b"GET /.env HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n",
		)
	)
	responses = [BridgeResponse.Parse(b"HTTP/1.1 " + _) for _ in data.split(b"HTTP/1.1 ")[1:]]
	assert [_.status for _ in responses] == [200, 200, 404]
	assert responses[0].body == b"A page"
	assert responses[1].header("Content-Length") == "13"
	assert responses[1].body == b""
	assert responses[2].header("Connection") == "close"


def test_connection_bad_request(site):
	app = mount(FileService(site))
	data = asyncio.run(exchange(app, b"BROKEN\r\n\r\nGET / HTTP/1.1\r\n\r\n"))
	assert data.startswith(b"HTTP/1.1 400 Bad Request")
	assert b"200 OK" not in data


def test_http10_closes(site):
	app = mount(FileService(site))
	data = asyncio.run(exchange(app, b"GET /index.html HTTP/1.0\r\n\r\n"))
	res = BridgeResponse.Parse(data)
	assert res.protocol == "HTTP/1.0"
	assert res.status == 200
	assert res.body == b"<h1>Home</h1>"


# EOF
