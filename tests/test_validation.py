import pytest

from corelink.protocol.validation import fuzz_resistant_json_loads, json_dumps_sorted


def test_loads_plain_object():
    assert fuzz_resistant_json_loads('{"b": 1, "a": [1, 2]}') == {"a": [1, 2], "b": 1}


@pytest.mark.parametrize("depth", [50, 30000])
def test_deep_nesting_rejected_as_value_error(depth):
    with pytest.raises(ValueError, match="nesting too deep"):
        fuzz_resistant_json_loads("[" * depth + "]" * depth)


def test_deeply_nested_objects_rejected():
    with pytest.raises(ValueError):
        fuzz_resistant_json_loads('{"a":' * 20000 + "1" + "}" * 20000)


def test_non_object_rejected():
    with pytest.raises(ValueError, match="JSON object"):
        fuzz_resistant_json_loads("[1, 2]")


def test_oversized_message_rejected():
    with pytest.raises(ValueError, match="too large"):
        fuzz_resistant_json_loads('{"a": "' + "x" * 70000 + '"}')


def test_dumps_sorted_and_compact():
    assert json_dumps_sorted({"b": 1, "a": "ü"}) == '{"a":"ü","b":1}'
