import os
import sys
import time
import traceback
from contextvars import ContextVar
from enum import Enum
from typing import Any, NamedTuple, TextIO, TypeAlias

from . import term

__doc__ = """
Structured logging: each logging function takes a message and ad-hoc
keyword context, which is rendered as `Key=value` pairs after the message.
Entries are written to `ERR` (stderr by default), served requests get
their own access log entries through `access`.
"""

ERR: TextIO = sys.stderr

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="veil")

TContext: TypeAlias = dict[str, Any]


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error

	@staticmethod
	def Parse(name: str | None, default: "LogLevel") -> "LogLevel":
		key: str = (name or "").strip().lower()
		for level in LogLevel:
			if level.name.lower() == key:
				return level
		return default


LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

LOG_LEVEL: LogLevel = LogLevel.Parse(os.getenv("VEIL_LOG_LEVEL"), LogLevel.Info)


# -----------------------------------------------------------------------------
#
# FORMATTING
#
# -----------------------------------------------------------------------------


def formatValue(value: Any) -> str:
	if value is None:
		return "◌"
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	elif isinstance(value, (list, tuple)):
		return ",".join(formatValue(_) for _ in value)
	elif isinstance(value, str):
		return repr(value) if not value or " " in value else value
	else:
		return str(value)


def formatContext(context: TContext) -> str:
	return " ".join(f"{term.BOLD}{k}{term.RESET}={formatValue(v)}" for k, v in context.items())


class LogEntry(NamedTuple):
	origin: str
	time: float
	level: LogLevel
	message: str
	code: int | str | None = None
	context: TContext | None = None
	icon: str | None = None

	def format(self) -> str:
		clr: str = term.color(LEVEL_COLOR[self.level])
		head: str = f"{clr}{term.BOLD}[{self.origin}]{term.RESET}"
		icon: str = f" {self.icon}" if self.icon else ""
		code: str = f" {term.BOLD}{self.code}{term.RESET}" if self.code is not None else ""
		context: str = f" {formatContext(self.context)}" if self.context else ""
		return f"{head}{icon} {clr}{self.message}{term.RESET}{code}{context}\n"


# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------


def setErrorStream(stream: TextIO) -> TextIO:
	"""Redirects the log output, returning the previous stream."""
	global ERR
	previous, ERR = ERR, stream
	return previous


def setLevel(level: LogLevel) -> LogLevel:
	global LOG_LEVEL
	previous, LOG_LEVEL = LOG_LEVEL, level
	return previous


def logged(level: LogLevel) -> bool:
	"""Tells if entries of the given level are output, so that costly
	entries can be skipped altogether."""
	return level.value >= LOG_LEVEL.value


def log(
	level: LogLevel,
	message: str,
	*,
	code: int | str | None = None,
	icon: str | None = None,
	context: TContext | None = None,
) -> LogEntry:
	entry = LogEntry(LogOrigin.get(), time.time(), level, message, code, context, icon)
	if logged(level):
		ERR.write(entry.format())
		ERR.flush()
	return entry


def debug(message: str, *, icon: str | None = None, **context: Any) -> LogEntry:
	return log(LogLevel.Debug, message, icon=icon, context=context)


def info(message: str, *, icon: str | None = None, **context: Any) -> LogEntry:
	return log(LogLevel.Info, message, icon=icon, context=context)


def warning(message: str, *, icon: str | None = None, **context: Any) -> LogEntry:
	return log(LogLevel.Warning, message, icon=icon, context=context)


def error(message: str, code: int | str | None = None, *, icon: str | None = None, **context: Any) -> LogEntry:
	"""Logs a managed error, `code` being a short identifier for it."""
	return log(LogLevel.Error, message, code=code, icon=icon, context=context)


def access(method: str, path: str, status: int, elapsed: float | None = None) -> LogEntry:
	"""Logs a served request. Client errors are logged as warnings and
	server errors as errors."""
	level: LogLevel = LogLevel.Info if status < 400 else LogLevel.Warning if status < 500 else LogLevel.Error
	return log(
		level,
		f"{method} {path}",
		code=status,
		context=None if elapsed is None else {"ms": elapsed * 1_000},
	)


def exception(e: BaseException, message: str | None = None) -> BaseException:
	"""Writes the exception and its traceback, returning the exception so
	that this can be used as `raise exception(e)`."""
	try:
		clr: str = term.color(LEVEL_COLOR[LogLevel.Exception])
		prefix: str = f"{message}: " if message else ""
		ERR.write(f"{clr}!!! EXCP {prefix}[{e.__class__.__name__}] {e}{term.RESET}\n")
		for frame in traceback.extract_tb(e.__traceback__):
			ERR.write(f"... in {frame.name:15s} at {frame.lineno or 0:4d} in {frame.filename}\n")
		ERR.flush()
	except Exception:  # nosec: B110
		# This is called from exception handlers, so it must never raise.
		pass
	return e


# EOF
