import pytest
from pydantic import ValidationError

from segment_merger.engine.grouping import basename, classify, group_priority, sort_group_tags
from segment_merger.schemas import Segment


@pytest.mark.parametrize(
    "identifier, expected",
    [
        ("bak2_clip.ts", "bak2"),
        ("bak0_abc_testpagerec1000_2000.ts", "bak0"),
        ("bak12_seg001.ts", "bak12"),
        ("BAKUP_clip.ts", "bak"),
        ("bak_clip.ts", "bak"),
        ("bakx1_clip.ts", "bak"),
        ("clip_bak.ts", "bak"),
        ("clip.ts", "main"),
        ("", "main"),
    ],
)
def test_classify(identifier, expected):
    assert classify(identifier) == expected


def test_classify_uses_basename_of_paths_and_urls():
    assert classify("temp/bak1_seg.ts") == "bak1"
    assert classify("https://cdn.example.com/live/bak3_seg.ts?token=abc") == "bak3"
    # A directory name is not part of the segment name
    assert classify("/data/bak/seg.ts") == "main"


def test_numbered_prefix_is_case_sensitive():
    assert classify("BAK2_clip.ts") == "bak"


def test_boolean_taxonomy_only_emits_main_and_bak():
    assert classify("bak2_clip.ts", numbered_backups=False) == "bak"
    assert classify("BAKUP_clip.ts", numbered_backups=False) == "bak"
    assert classify("clip.ts", numbered_backups=False) == "main"


def test_group_priority_order():
    tags = ["bak", "bak10", "bak1", "main", "bak0", "bak9"]
    assert sort_group_tags(tags) == ["main", "bak0", "bak1", "bak9", "bak10", "bak"]


def test_group_priority_is_total_for_unknown_tags():
    assert sort_group_tags(["zzz", "bak", "main", "aaa"]) == ["main", "bak", "aaa", "zzz"]
    assert group_priority("main") < group_priority("bak0") < group_priority("bak")


def test_sort_group_tags_drops_duplicates():
    assert sort_group_tags(["bak", "main", "bak", "main"]) == ["main", "bak"]


def test_basename():
    assert basename("a/b/c.ts") == "c.ts"
    assert basename("a\\b\\c.ts") == "c.ts"
    assert basename("http://host/x/y.ts?q=1") == "y.ts"


def test_segment_group_assigned_at_ingestion():
    segment = Segment.from_identifier("temp/bak0_seg.ts")
    assert segment.group == "bak0"
    assert segment.chronological_offset == 0.0
    assert segment.resolved is False
    with pytest.raises(ValidationError):
        segment.group = "main"
