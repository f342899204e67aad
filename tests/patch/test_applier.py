import pytest

from bundlepatch.patch.applier import build_diff, replay_operations, splice
from bundlepatch.patch.models import Location, PatchOperation


def test_splice_replaces_span():
    assert splice("a=H1?b:c", Location(2, 4), "(false)") == "a=(false)?b:c"


def test_splice_insertion_at_empty_span():
    assert splice("ab", Location(1, 1), "X") == "aXb"


@pytest.mark.parametrize("start,end", [(-1, 2), (3, 2), (0, 99)])
def test_splice_rejects_spans_outside_buffer(start, end):
    with pytest.raises(ValueError):
        splice("abc", Location(start, end), "X")


def test_build_diff_carries_fifty_chars_of_context():
    buf = "x" * 80 + "verbose:false" + "y" * 80
    loc = Location(80, 93)
    diff = build_diff(buf, loc, "verbose:true")
    assert diff.before == "x" * 50
    assert diff.after == "y" * 50
    assert diff.old == "verbose:false"
    assert diff.new == "verbose:true"
    assert diff.old_text == "x" * 50 + "verbose:false" + "y" * 50
    assert diff.new_text == "x" * 50 + "verbose:true" + "y" * 50


def test_build_diff_near_buffer_edges():
    diff = build_diff("abc", Location(0, 1), "Z")
    assert diff.before == ""
    assert diff.after == "bc"


def test_replay_operations_applies_in_recorded_order():
    original = "a=1;b=2;"
    ops = [
        PatchOperation(name="one", location=Location(2, 3), replacement="100"),
        # Offsets refer to the buffer after the first splice
        PatchOperation(name="two", location=Location(8, 9), replacement="200"),
    ]
    assert replay_operations(original, ops) == "a=100;b=200;"
