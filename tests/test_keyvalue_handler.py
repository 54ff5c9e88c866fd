"""
Unit tests for the key/value document parser, editor and serializer.
"""

import pytest
import vdf

from steavium.backend.handlers.keyvalue_handler import (
    Entry,
    ExpectedQuotedStringError,
    ExpectedValueError,
    KeyValueDocument,
    KeyValueSyntaxError,
    UnexpectedTokenError,
    UnterminatedStringError,
    splice_string,
)

LAUNCH_OPTIONS = ["UserLocalConfigStore", "Software", "Valve", "Steam", "apps", "220", "LaunchOptions"]


def test_parse_reads_nested_value(localconfig_text: str) -> None:
    """Nested string values are addressable by path."""
    document = KeyValueDocument.parse(localconfig_text)
    assert document.string(LAUNCH_OPTIONS) == "-novid"
    assert document.string(LAUNCH_OPTIONS[:-1] + ["LastPlayed"]) == "1700000000"


def test_string_returns_none_for_objects_and_missing_paths(localconfig_text: str) -> None:
    document = KeyValueDocument.parse(localconfig_text)
    assert document.string(["UserLocalConfigStore", "Software"]) is None
    assert isinstance(document.value(["UserLocalConfigStore", "Software"]), list)
    assert document.string(["UserLocalConfigStore", "Nope"]) is None
    assert document.value([]) is None


def test_escapes_are_decoded() -> None:
    """Known escapes decode; any other escaped character is taken literally."""
    document = KeyValueDocument.parse(r'"k" "a\"b\\c\nd\te\x"')
    assert document.string(["k"]) == 'a"b\\c\nd\tex'


def test_line_comments_are_skipped() -> None:
    text = '// header\n"root"\n{\n\t// inner note\n\t"a"\t"1" // trailing\n}\n'
    document = KeyValueDocument.parse(text)
    assert document.string(["root", "a"]) == "1"


def test_first_duplicate_key_wins() -> None:
    document = KeyValueDocument.parse('"a" "1"\n"a" "2"\n')
    assert document.string(["a"]) == "1"
    assert document.to_dict() == {"a": "1"}
    assert len(document.entries) == 2


@pytest.mark.parametrize(
    "text, error_class, kind, position",
    [
        ('"key"', ExpectedValueError, "expected_value", 5),
        ('key "v"', ExpectedQuotedStringError, "expected_quoted_string", 0),
        ('"k" "abc', UnterminatedStringError, "unterminated_string", 8),
        ('"k" { "a" "b"', UnexpectedTokenError, "unexpected_token", 13),
        ('"k" }', ExpectedValueError, "expected_value", 4),
    ],
)
def test_syntax_errors_carry_kind_and_position(text, error_class, kind, position) -> None:
    with pytest.raises(error_class) as excinfo:
        KeyValueDocument.parse(text)
    assert isinstance(excinfo.value, KeyValueSyntaxError)
    assert excinfo.value.kind == kind
    assert excinfo.value.position == position


def test_serialize_round_trip(localconfig_text: str) -> None:
    """parse(serialize(parse(x))) == parse(x)."""
    document = KeyValueDocument.parse(localconfig_text)
    assert KeyValueDocument.parse(document.serialize()) == document


def test_serialize_format() -> None:
    document = KeyValueDocument(entries=[Entry("Root", [Entry("Key", "Value")])])
    assert document.serialize() == '"Root"\n{\n\t"Key"\t\t"Value"\n}\n'


def test_escaped_characters_round_trip() -> None:
    document = KeyValueDocument()
    value = 'line1\nline2 "quoted" tab\there back\\slash'
    document.set_string(value, ["Root", "Escaped"])
    reparsed = KeyValueDocument.parse(document.serialize())
    assert reparsed.string(["Root", "Escaped"]) == value


def test_set_string_creates_intermediate_objects() -> None:
    document = KeyValueDocument.parse('"Root"\n{\n\t"Node"\n\t{\n\t\t"Value"\t\t"A"\n\t}\n}\n')
    document.set_string("Test Value", ["Root", "Node", "Extra"])
    document.set_string("deep", ["Root", "New", "Branch", "Leaf"])
    assert document.string(["Root", "Node", "Extra"]) == "Test Value"
    assert document.string(["Root", "Node", "Value"]) == "A"
    assert document.string(["Root", "New", "Branch", "Leaf"]) == "deep"


def test_set_string_replaces_string_on_prefix_position() -> None:
    document = KeyValueDocument.parse('"a" "plain"')
    document.set_string("v", ["a", "b"])
    assert document.value(["a"]) == [Entry("b", "v")]


def test_remove_value_prunes_empty_ancestors() -> None:
    document = KeyValueDocument.parse('"a"\n{\n\t"b"\n\t{\n\t\t"c"\t\t"1"\n\t}\n\t"d"\t\t"2"\n}\n')
    assert document.remove_value(["a", "b", "c"]) is True
    assert document.value(["a", "b"]) is None
    assert document.string(["a", "d"]) == "2"

    assert document.remove_value(["a", "d"]) is True
    assert document.entries == []


def test_remove_value_missing_path_is_noop() -> None:
    document = KeyValueDocument.parse('"a" "1"')
    assert document.remove_value(["a", "b"]) is False
    assert document.remove_value(["z"]) is False
    assert document.string(["a"]) == "1"


def test_to_dict_matches_reference_parser(localconfig_text: str) -> None:
    """The vdf package reads the same structure."""
    document = KeyValueDocument.parse(localconfig_text)
    assert document.to_dict() == vdf.loads(localconfig_text)
    assert vdf.loads(document.serialize()) == document.to_dict()


def test_splice_replaces_value_and_keeps_everything_else(localconfig_text: str) -> None:
    updated = splice_string(localconfig_text, LAUNCH_OPTIONS, "-novid -windowed")
    assert updated == localconfig_text.replace('"-novid"', '"-novid -windowed"')
    assert "// managed by the client" in updated


def test_splice_inserts_missing_path(localconfig_text: str) -> None:
    path = LAUNCH_OPTIONS[:-2] + ["440", "LaunchOptions"]
    updated = splice_string(localconfig_text, path, "-dx11")

    reparsed = KeyValueDocument.parse(updated)
    assert reparsed.string(path) == "-dx11"
    assert reparsed.string(LAUNCH_OPTIONS) == "-novid"
    assert "// managed by the client" in updated

    expected = KeyValueDocument.parse(localconfig_text)
    expected.set_string("-dx11", path)
    assert reparsed == expected


def test_splice_insert_keeps_crlf_line_endings(localconfig_text: str) -> None:
    crlf_text = localconfig_text.replace("\n", "\r\n")
    path = LAUNCH_OPTIONS[:-2] + ["440", "LaunchOptions"]

    updated = splice_string(crlf_text, path, "-dx11")
    updated = splice_string(updated, ["Friends", "Muted"], "1")

    assert updated.count("\n") == updated.count("\r\n")
    assert "\t\t\t\t\t\"440\"\r\n\t\t\t\t\t{\r\n" in updated
    assert updated.endswith("\"Friends\"\r\n{\r\n\t\"Muted\"\t\t\"1\"\r\n}\r\n")
    reparsed = KeyValueDocument.parse(updated)
    assert reparsed.string(path) == "-dx11"
    assert reparsed.string(LAUNCH_OPTIONS) == "-novid"
    assert "\r" not in splice_string(localconfig_text, path, "-dx11")


def test_splice_remove_drops_only_that_line(localconfig_text: str) -> None:
    updated = splice_string(localconfig_text, LAUNCH_OPTIONS, None)
    assert updated == localconfig_text.replace('\t\t\t\t\t\t"LaunchOptions"\t\t"-novid"\n', "")


def test_splice_remove_prunes_objects_left_empty(localconfig_text: str) -> None:
    text = splice_string(localconfig_text, LAUNCH_OPTIONS[:-1] + ["LastPlayed"], None)
    text = splice_string(text, LAUNCH_OPTIONS[:-2] + ["440", "LaunchOptions"], "-dx11")

    updated = splice_string(text, LAUNCH_OPTIONS, None)

    expected = KeyValueDocument.parse(text)
    expected.remove_value(LAUNCH_OPTIONS)
    reparsed = KeyValueDocument.parse(updated)
    assert reparsed == expected
    assert reparsed.value(LAUNCH_OPTIONS[:-1]) is None
    assert reparsed.string(LAUNCH_OPTIONS[:-2] + ["440", "LaunchOptions"]) == "-dx11"
    assert "// managed by the client" in updated


def test_splice_remove_missing_path_returns_text_unchanged(localconfig_text: str) -> None:
    path = LAUNCH_OPTIONS[:-2] + ["999", "LaunchOptions"]
    assert splice_string(localconfig_text, path, None) == localconfig_text


def test_splice_string_on_prefix_rebuilds_document() -> None:
    updated = splice_string('"a" "plain"\n', ["a", "b"], "v")
    assert KeyValueDocument.parse(updated).string(["a", "b"]) == "v"


def test_splice_into_empty_text() -> None:
    updated = splice_string("", ["Root", "Key"], "v")
    assert KeyValueDocument.parse(updated).string(["Root", "Key"]) == "v"


def test_splice_rejects_invalid_text() -> None:
    with pytest.raises(KeyValueSyntaxError):
        splice_string('"a" {', ["a", "b"], "v")
