"""Line-oriented text encoding shared by trees and forests.

A node is stored as one line ``<flag>\\t<payload>`` where the flag is ``1`` for
a leaf and ``0`` for an internal node. Trees are written in pre-order with the
right subtree before the left one.
"""
from __future__ import annotations

from collections import deque
from typing import Iterable

LEAF_FLAG = "1"
INTERNAL_FLAG = "0"


class MalformedModelError(ValueError):
    """Persisted tree or forest data cannot be reconstructed."""


def encode_node(is_leaf: bool, payload: str) -> str:
    if "\t" in payload or "\n" in payload:
        raise ValueError(f"payload must not contain tabs or newlines: {payload!r}")
    flag = LEAF_FLAG if is_leaf else INTERNAL_FLAG
    return f"{flag}\t{payload}"


def decode_node(line: str) -> tuple[bool, str]:
    flag, sep, payload = line.rstrip("\r\n").partition("\t")
    if not sep or flag not in (LEAF_FLAG, INTERNAL_FLAG):
        raise MalformedModelError(f"Invalid node line: {line!r}")
    return flag == LEAF_FLAG, payload


def pop_line(lines: deque[str]) -> str:
    if not lines:
        raise MalformedModelError("Unexpected end of model data")
    return lines.popleft()


def read_lines(filename: str, skip_blank: bool = False) -> deque[str]:
    with open(filename, "r", encoding="utf-8") as f:
        lines = [line.rstrip("\r\n") for line in f]
    if skip_blank:
        lines = [line for line in lines if line != ""]
    return deque(lines)


def write_lines(filename: str, lines: Iterable[str]) -> None:
    with open(filename, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line)
            f.write("\n")
