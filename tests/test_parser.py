from veil.http.model import HTTPHeaders, HTTPProcessingStatus, HTTPRequest, HTTPRequestLine
from veil.http.parser import HTTPParser, parseRequestLine

REQUEST = b"GET /time/5?tz=UTC&fmt=iso+8601 HTTP/1.1\r\nHost: 127.0.0.1\r\nConnection: close\r\n\r\n"


def requests(parser: HTTPParser, *chunks: bytes) -> list[HTTPRequest]:
	return [_ for chunk in chunks for _ in parser.feed(chunk) if isinstance(_, HTTPRequest)]


def test_request():
	atoms = list(HTTPParser().feed(REQUEST))
	assert atoms[0] == HTTPRequestLine("GET", "/time/5", "tz=UTC&fmt=iso+8601", "HTTP/1.1")
	assert isinstance(atoms[1], HTTPHeaders)
	req = atoms[-1]
	assert isinstance(req, HTTPRequest)
	assert req.method == "GET"
	assert req.path == "/time/5"
	assert req.query == {"tz": "UTC", "fmt": "iso 8601"}
	assert req.header("host") == "127.0.0.1"
	assert not req.keepAlive


def test_request_in_chunks():
	chunks = [
		b"GET /time/5 ",
		b"HTTP/1.1\r\nHost: ",
		b"127.0.0.1\r",
		b"\nConn",
		b"ection: close\r\n",
		b"\r",
		b"\n",
	]
	(req,) = requests(HTTPParser(), *chunks)
	assert req.path == "/time/5"
	assert req.headers == {"Host": "127.0.0.1", "Connection": "close"}


def test_pipelining():
	parser = HTTPParser()
	data = REQUEST.replace(b"Connection: close", b"Connection: keep-alive")
	reqs = requests(parser, data + b"\r\n" + data[:20], data[20:] + b"HEAD / HTTP/1.0\r\n\r\n")
	assert [_.method for _ in reqs] == ["GET", "GET", "HEAD"]
	assert reqs[0].keepAlive
	# HTTP/1.0 closes unless asked otherwise
	assert reqs[2].protocol == "HTTP/1.0"
	assert not reqs[2].keepAlive


def test_body():
	parser = HTTPParser()
	reqs = requests(
		parser,
		b"POST /upload HTTP/1.1\r\nContent-Type: text/plain\r\nContent-Length: 12\r\n\r\nHello",
		b", World",
	)
	assert len(reqs) == 1
	assert reqs[0].contentType == "text/plain"
	assert reqs[0].contentLength == 12
	assert reqs[0].body.payload == b"Hello, World"


def test_bad_format():
	for line in (b"NONSENSE\r\n\r\n", b"GET /\r\n\r\n", b"GET / FTP/1.0\r\n\r\n"):
		atoms = list(HTTPParser().feed(line))
		assert atoms == [HTTPProcessingStatus.BadFormat], line


def test_request_line():
	assert parseRequestLine(b"GET /a?b=1 HTTP/1.1") == HTTPRequestLine("GET", "/a", "b=1", "HTTP/1.1")
	assert parseRequestLine(b"GET /a b HTTP/1.1") is None
	assert parseRequestLine(b" / HTTP/1.1") is None


def test_query():
	assert HTTPRequest.Create("GET", "/").query == {}
	assert HTTPRequest.Create("GET", "/?a=1&b&c=%2Fx").query == {"a": "1", "b": "", "c": "/x"}


# EOF
