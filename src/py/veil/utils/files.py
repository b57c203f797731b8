import mimetypes

mimetypes.init()

# Types that are missing or inconsistent across platform mime databases
MIME_TYPES: dict[str, str] = dict(
	css="text/css",
	js="text/javascript",
	mjs="text/javascript",
	json="application/json",
	svg="image/svg+xml",
	wasm="application/wasm",
	webp="image/webp",
	woff2="font/woff2",
)


def contentType(name: str, default: str = "application/octet-stream") -> str:
	"""Guesses the content type from the given file name."""
	ext: str = name.rsplit(".", 1)[-1].lower() if "." in name else ""
	res = MIME_TYPES.get(ext) or mimetypes.guess_type(name)[0] or default
	# Text types get an explicit charset so browsers don't sniff it
	if res.startswith("text/") and "charset" not in res:
		res = f"{res}; charset=utf-8"
	return res


# EOF
