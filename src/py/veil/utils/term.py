import os

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or not NO_COLOR


def sgr(code: str) -> str:
	"""Returns the ANSI "select graphic rendition" sequence for `code`, or
	an empty string when colors are disabled."""
	return f"\033[{code}m" if COLOR else ""


def color(index: int) -> str:
	"""Foreground color from the 256-colors palette."""
	return sgr(f"0;38;5;{index}")


BOLD: str = sgr("1")
RESET: str = sgr("0")

# EOF
