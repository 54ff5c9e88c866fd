#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Key/Value Handler Module
Parses, edits and serializes the nested quoted key/value text format used by
store manifests (appmanifest_*.acf) and client configuration files (*.vdf).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# Initialize logger
logger = logging.getLogger(__name__)


class KeyValueSyntaxError(ValueError):
    """Base class for positional parse errors. No recovery is attempted."""

    kind = "syntax_error"
    description = "invalid syntax"

    def __init__(self, position: int):
        self.position = position
        super().__init__(f"Invalid key/value format: {self.description} at position {position}.")


class ExpectedQuotedStringError(KeyValueSyntaxError):
    kind = "expected_quoted_string"
    description = "expected a quoted string"


class ExpectedValueError(KeyValueSyntaxError):
    kind = "expected_value"
    description = "expected a value"


class ExpectedObjectStartError(KeyValueSyntaxError):
    kind = "expected_object_start"
    description = "expected '{'"


class UnterminatedStringError(KeyValueSyntaxError):
    kind = "unterminated_string"
    description = "unterminated string"


class UnexpectedTokenError(KeyValueSyntaxError):
    kind = "unexpected_token"
    description = "unexpected token"


Value = Union[str, List["Entry"]]


@dataclass
class Entry:
    """A key and either a string or a list of child entries."""
    key: str
    value: Value
    # (key_start, value_start, value_end) offsets in the parsed source
    span: Optional[Tuple[int, int, int]] = field(default=None, compare=False, repr=False)

    @property
    def is_object(self) -> bool:
        return isinstance(self.value, list)


@dataclass
class KeyValueDocument:
    """
    Ordered, path-addressed key/value document.

    Keys are not required to be unique; every accessor resolves a path
    segment to the first entry carrying that key.
    """
    entries: List[Entry] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "KeyValueDocument":
        """Parse text into a document, raising KeyValueSyntaxError on bad input."""
        return cls(entries=_Parser(text).parse_document())

    def serialize(self) -> str:
        output: List[str] = []
        for entry in self.entries:
            _serialize_entry(entry, 0, output)
        return "".join(output)

    def value(self, path: Sequence[str]) -> Optional[Value]:
        if not path:
            return None
        return _value_in(self.entries, list(path))

    def string(self, path: Sequence[str]) -> Optional[str]:
        value = self.value(path)
        return value if isinstance(value, str) else None

    def set_string(self, value: str, path: Sequence[str]) -> None:
        """
        Set a string at path, creating intermediate objects as needed.
        A string found on a prefix position is replaced by a new object.
        """
        if not path:
            return
        _set_string_in(self.entries, list(path), value)

    def remove_value(self, path: Sequence[str]) -> bool:
        """Remove the entry at path and prune every ancestor the removal leaves empty."""
        if not path:
            return False
        return _remove_in(self.entries, list(path))

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested dict view. Duplicate keys keep their first value."""
        return _entries_to_dict(self.entries)


def splice_string(text: str, path: Sequence[str], value: Optional[str]) -> str:
    """
    Set (or remove, when value is None) the string at path by editing the
    source text in place, leaving comments, spacing and unrelated entries
    untouched.

    Returns the updated text. Raises KeyValueSyntaxError if text is invalid.
    """
    path = list(path)
    if not path:
        return text
    document = KeyValueDocument.parse(text)
    if value is None:
        return _splice_remove(text, document, path)
    return _splice_set(text, document, path, value)


# --- Document helpers ---

def _find_index(entries: List[Entry], key: str) -> int:
    for index, entry in enumerate(entries):
        if entry.key == key:
            return index
    return -1


def _value_in(entries: List[Entry], path: List[str]) -> Optional[Value]:
    index = _find_index(entries, path[0])
    if index < 0:
        return None
    entry = entries[index]
    if len(path) == 1:
        return entry.value
    if not entry.is_object:
        return None
    return _value_in(entry.value, path[1:])


def _set_string_in(entries: List[Entry], path: List[str], value: str) -> None:
    head, tail = path[0], path[1:]
    index = _find_index(entries, head)
    if not tail:
        if index >= 0:
            entries[index] = Entry(head, value)
        else:
            entries.append(Entry(head, value))
        return

    if index >= 0:
        existing = entries[index]
        children = existing.value if existing.is_object else []
        _set_string_in(children, tail, value)
        entries[index] = Entry(head, children)
    else:
        children: List[Entry] = []
        _set_string_in(children, tail, value)
        entries.append(Entry(head, children))


def _remove_in(entries: List[Entry], path: List[str]) -> bool:
    index = _find_index(entries, path[0])
    if index < 0:
        return False

    if len(path) == 1:
        del entries[index]
        return True

    entry = entries[index]
    if not entry.is_object:
        return False

    removed = _remove_in(entry.value, path[1:])
    if removed and not entry.value:
        del entries[index]
    return removed


def _entries_to_dict(entries: List[Entry]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for entry in entries:
        if entry.key in result:
            continue
        result[entry.key] = _entries_to_dict(entry.value) if entry.is_object else entry.value
    return result


# --- Serializer ---

def _escape(value: str) -> str:
    return (value
            .replace("\\", "\\\\")
            .replace("\"", "\\\"")
            .replace("\n", "\\n")
            .replace("\t", "\\t"))


def _quote(value: str) -> str:
    return f"\"{_escape(value)}\""


def _serialize_entry(entry: Entry, indent: int, output: List[str]) -> None:
    indentation = "\t" * indent
    if entry.is_object:
        output.append(f"{indentation}{_quote(entry.key)}\n")
        output.append(f"{indentation}{{\n")
        for child in entry.value:
            _serialize_entry(child, indent + 1, output)
        output.append(f"{indentation}}}\n")
    else:
        output.append(f"{indentation}{_quote(entry.key)}\t\t{_quote(entry.value)}\n")


# --- Parser ---

class _Parser:
    """Recursive-descent parser over the characters of the source text."""

    def __init__(self, text: str):
        self.text = text
        self.index = 0

    @property
    def at_end(self) -> bool:
        return self.index >= len(self.text)

    @property
    def current(self) -> Optional[str]:
        if self.at_end:
            return None
        return self.text[self.index]

    @property
    def peek(self) -> Optional[str]:
        next_index = self.index + 1
        if next_index >= len(self.text):
            return None
        return self.text[next_index]

    def parse_document(self) -> List[Entry]:
        self.skip_whitespace()
        entries = []
        while not self.at_end:
            entries.append(self.parse_entry())
            self.skip_whitespace()
        return entries

    def parse_entry(self) -> Entry:
        self.skip_whitespace()
        key_start = self.index
        key = self.parse_quoted_string()
        self.skip_whitespace()
        value_start = self.index
        value = self.parse_value()
        return Entry(key, value, span=(key_start, value_start, self.index))

    def parse_value(self) -> Value:
        self.skip_whitespace()
        current = self.current
        if current == "\"":
            return self.parse_quoted_string()
        if current == "{":
            return self.parse_object()
        raise ExpectedValueError(self.index)

    def parse_object(self) -> List[Entry]:
        self.skip_whitespace()
        if self.current != "{":
            raise ExpectedObjectStartError(self.index)
        self.index += 1
        self.skip_whitespace()

        entries = []
        while not self.at_end:
            if self.current == "}":
                self.index += 1
                return entries
            entries.append(self.parse_entry())
            self.skip_whitespace()

        raise UnexpectedTokenError(self.index)

    def parse_quoted_string(self) -> str:
        self.skip_whitespace()
        if self.current != "\"":
            raise ExpectedQuotedStringError(self.index)
        self.index += 1

        output = []
        while not self.at_end:
            char = self.text[self.index]
            if char == "\"":
                self.index += 1
                return "".join(output)

            if char == "\\":
                self.index += 1
                escaped = self.current
                if escaped is None:
                    raise UnterminatedStringError(self.index)
                output.append(_UNESCAPES.get(escaped, escaped))
                self.index += 1
                continue

            output.append(char)
            self.index += 1

        raise UnterminatedStringError(self.index)

    def skip_whitespace(self) -> None:
        while not self.at_end:
            current = self.current
            if current.isspace():
                self.index += 1
                continue
            if current == "/" and self.peek == "/":
                while not self.at_end and self.current != "\n":
                    self.index += 1
                continue
            break


_UNESCAPES = {"\"": "\"", "\\": "\\", "n": "\n", "t": "\t"}


# --- Text surgery ---

def _splice_set(text: str, document: KeyValueDocument, path: List[str], value: str) -> str:
    entries = document.entries
    parent: Optional[Entry] = None
    for depth, key in enumerate(path):
        index = _find_index(entries, key)
        if index < 0:
            return _insert_entries(text, parent, depth, path[depth:], value)

        entry = entries[index]
        if depth == len(path) - 1:
            _, value_start, value_end = entry.span
            return text[:value_start] + _quote(value) + text[value_end:]

        if not entry.is_object:
            # A string sits where an object is needed; rebuild the whole document
            logger.debug(f"Replacing string at '{'/'.join(path[:depth + 1])}' with an object")
            document.set_string(value, path)
            return document.serialize()

        parent = entry
        entries = entry.value

    return text


def _insert_entries(text: str, parent: Optional[Entry], depth: int,
                    remaining: List[str], value: str) -> str:
    node = Entry(remaining[-1], value)
    for key in reversed(remaining[:-1]):
        node = Entry(key, [node])
    output: List[str] = []
    _serialize_entry(node, depth, output)
    newline = "\r\n" if "\r\n" in text else "\n"
    block = "".join(output).replace("\n", newline)

    if parent is None:
        if text and not text.endswith("\n"):
            text += newline
        return text + block

    close = parent.span[2] - 1
    line_start = text.rfind("\n", 0, close) + 1
    if text[line_start:close].strip() == "":
        return text[:line_start] + block + text[line_start:]
    return text[:close] + newline + block + text[close:]


def _splice_remove(text: str, document: KeyValueDocument, path: List[str]) -> str:
    chain: List[Tuple[List[Entry], int]] = []
    entries = document.entries
    for depth, key in enumerate(path):
        index = _find_index(entries, key)
        if index < 0:
            return text
        chain.append((entries, index))
        entry = entries[index]
        if depth < len(path) - 1:
            if not entry.is_object:
                return text
            entries = entry.value

    # Walk up while the removal would leave the containing object empty
    level = len(chain) - 1
    while level > 0 and len(chain[level][0]) == 1:
        level -= 1

    siblings, index = chain[level]
    start, _, end = siblings[index].span
    return _cut(text, start, end)


def _cut(text: str, start: int, end: int) -> str:
    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", end)
    if line_end < 0:
        line_end = len(text)

    if text[line_start:start].strip() == "" and text[end:line_end].strip() == "":
        return text[:line_start] + text[min(line_end + 1, len(text)):]
    return text[:start] + text[end:]
