#!/usr/bin/env python3
"""Fake version-control tool for integration testing.

Runs a small script of actions given on the command line, in order, so tests
can control exactly what appears on stdout/stderr, when, and how the
process ends.

Usage:
    python fake_vcs.py [ACTION ...]

Actions:
    out:TEXT        write TEXT and a newline to stdout
    colorout:TEXT   write TEXT wrapped in ANSI color codes to stdout
    err:TEXT        write TEXT and a newline to stderr
    rawout:HEX      write the bytes given as hex to stdout (no newline)
    env:NAME        write the value of NAME (or <unset>) to stdout
    pwd             write the working directory to stdout
    tty             write "tty" or "notty" depending on /dev/tty access
    append:PATH:TEXT
                    append TEXT and a newline to the file at PATH
    sleep:SECONDS   sleep
    spawn:SECONDS   start a background child that sleeps with stdout/stderr
                    inherited, and do not wait for it
    exit:CODE       exit immediately with CODE

Output is flushed after every action. The default exit code is 0.
"""

from __future__ import annotations

import os
import subprocess
import sys
import time
from typing import NoReturn

RED = "\x1b[31m"
RESET = "\x1b[0m"


def write_out(data: bytes) -> None:
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


def write_err(data: bytes) -> None:
    sys.stderr.buffer.write(data)
    sys.stderr.buffer.flush()


def has_tty() -> bool:
    try:
        fd = os.open("/dev/tty", os.O_RDWR)
    except OSError:
        return False
    os.close(fd)
    return True


def run_action(action: str) -> None:
    name, _, value = action.partition(":")
    if name == "out":
        write_out(value.encode("utf-8") + b"\n")
    elif name == "colorout":
        write_out(f"{RED}{value}{RESET}\n".encode("utf-8"))
    elif name == "err":
        write_err(value.encode("utf-8") + b"\n")
    elif name == "rawout":
        write_out(bytes.fromhex(value))
    elif name == "env":
        write_out(os.environ.get(value, "<unset>").encode("utf-8") + b"\n")
    elif name == "pwd":
        write_out(os.getcwd().encode("utf-8") + b"\n")
    elif name == "tty":
        write_out(b"tty\n" if has_tty() else b"notty\n")
    elif name == "append":
        path, _, text = value.partition(":")
        with open(path, "a", encoding="utf-8") as f:
            f.write(text + "\n")
    elif name == "sleep":
        time.sleep(float(value))
    elif name == "spawn":
        subprocess.Popen([sys.executable, "-c", f"import time; time.sleep({float(value)})"])
    elif name == "exit":
        sys.exit(int(value))
    else:
        write_err(f"fake_vcs: unknown action {action!r}\n".encode("utf-8"))
        sys.exit(2)


def main() -> NoReturn:
    """Main entry point."""
    for action in sys.argv[1:]:
        run_action(action)
    sys.exit(0)


if __name__ == "__main__":
    main()
