#!/usr/bin/env python3
"""Logging utilities for ghbackup."""

from __future__ import annotations

import os
import sys
import threading
import time
from typing import Optional, TextIO

import colorama

from config import OutputConfig
from security import SecurityValidator

# Initialize colorama for cross-platform colored output
colorama.init(autoreset=True)


class Logger:
    """Formatted, credential-safe console output shared by all workers.

    Progress lines go to ``out`` and errors to ``err``. Writes are serialized
    so lines from concurrent workers never interleave.
    """

    PROCESS_NAME = "ghbackup"

    def __init__(
        self,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        *,
        silent: bool = False,
        verbose: bool = False,
    ) -> None:
        self._out = out
        self._err = err
        self.silent = silent
        self.verbose = verbose
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, output: OutputConfig) -> "Logger":
        return cls(
            output.out, output.err, silent=output.silent, verbose=output.verbose
        )

    def debug(self, *messages: str) -> None:
        if self.verbose:
            self._write_out(colorama.Fore.LIGHTBLACK_EX, *messages)

    def info(self, *messages: str) -> None:
        self._write_out(colorama.Fore.CYAN, *messages)

    def warn(self, *messages: str) -> None:
        self._write_out(colorama.Fore.YELLOW, *messages)

    def error(self, *messages: str) -> None:
        self._write(self._err_stream(), colorama.Fore.RED, *messages)

    def security_event(self, event_type: str, details: str) -> None:
        """Log security events with appropriate sanitization."""
        if not self.verbose:
            return
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        self._write(
            self._err_stream(),
            colorama.Fore.MAGENTA,
            f"[SECURITY:{event_type}] {timestamp}: {details}",
        )

    def _write_out(self, color: str, *messages: str) -> None:
        if self.silent:
            return
        self._write(self._out_stream(), color, *messages)

    def _out_stream(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def _err_stream(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def _write(self, stream: TextIO, color: str, *messages: str) -> None:
        line = self._format_line(color, *messages) + "\n"
        with self._lock:
            stream.write(line)
            stream.flush()

    @classmethod
    def _get_header(cls) -> str:
        return f"[{cls.PROCESS_NAME}:{os.getpid()}]"

    @classmethod
    def _format_line(cls, color: str, *messages: str) -> str:
        header = cls._get_header()
        message = " ".join(
            SecurityValidator.sanitize_for_logging(str(m)) for m in messages
        )
        return f"{color}{header}{colorama.Style.RESET_ALL} {message}"
