import random

from segment_merger.engine.ordering import describe_ordering, flatten, order_segments
from segment_merger.schemas import Segment


def _segment(identifier: str, offset: float, group: str | None = None, resolved: bool = True) -> Segment:
    if group is None:
        return Segment.from_identifier(identifier).model_copy(
            update={"chronological_offset": offset, "resolved": resolved}
        )
    return Segment(identifier=identifier, group=group, chronological_offset=offset, resolved=resolved)


def _ids(segments):
    return [s.identifier for s in segments]


def test_ties_break_by_identifier():
    ordered = order_segments(
        [
            _segment("b.ts", 5.0, group="main"),
            _segment("a.ts", 5.0, group="main"),
        ]
    )

    assert _ids(ordered["main"]) == ["a.ts", "b.ts"]


def test_sorts_by_offset_within_group():
    ordered = order_segments(
        [
            _segment("c.ts", 3.0),
            _segment("a.ts", 10.0),
            _segment("b.ts", 0.5),
        ]
    )

    assert _ids(ordered["main"]) == ["b.ts", "c.ts", "a.ts"]


def test_groups_in_priority_order_and_only_non_empty():
    ordered = order_segments(
        [
            _segment("bak_x.ts", 1.0),
            _segment("bak1_x.ts", 1.0),
            _segment("main_x.ts", 1.0),
        ]
    )

    assert list(ordered) == ["main", "bak1", "bak"]
    assert "bak0" not in ordered


def test_unresolved_segments_sort_first():
    ordered = order_segments(
        [
            _segment("late.ts", 2.0),
            _segment("unknown.ts", 0.0, resolved=False),
        ]
    )

    assert _ids(ordered["main"]) == ["unknown.ts", "late.ts"]


def test_result_does_not_depend_on_input_order():
    segments = [_segment(f"seg{i:03d}.ts", float(i % 4)) for i in range(20)]
    segments += [_segment(f"bak0_seg{i:03d}.ts", float(i % 3)) for i in range(10)]
    expected = order_segments(segments)

    shuffled = list(segments)
    random.Random(7).shuffle(shuffled)

    assert order_segments(shuffled) == expected


def test_order_is_idempotent():
    segments = [
        _segment("bak_b.ts", 1.0),
        _segment("b.ts", 1.0),
        _segment("a.ts", 1.0),
        _segment("bak0_z.ts", 0.0),
    ]
    once = order_segments(segments)

    assert order_segments(once) == once
    assert order_segments(flatten(once)) == once


def test_empty_input():
    assert order_segments([]) == {}


def test_describe_ordering():
    ordered = order_segments(
        [
            _segment("b.ts", 2.0),
            _segment("a.ts", 1.0),
            _segment("bak0_a.ts", 0.0, resolved=False),
        ]
    )

    diagnostics = describe_ordering(ordered)

    assert [(d.group, d.position, d.identifier) for d in diagnostics] == [
        ("main", 1, "a.ts"),
        ("main", 2, "b.ts"),
        ("bak0", 1, "bak0_a.ts"),
    ]
    assert diagnostics[2].resolved is False
    assert diagnostics[1].offset == 2.0
