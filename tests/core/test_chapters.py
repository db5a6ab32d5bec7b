from src.backroom.core.chapters import format_chapters, format_timestamp, parse_chapters
from src.backroom.core.cms_types import Chapter


def test_parse_chapters_basic_list():
    chapters = parse_chapters("00:00 Intro\n01:12 Verse\n02:05 Chorus")
    assert chapters == [Chapter(0, "Intro"), Chapter(72, "Verse"), Chapter(125, "Chorus")]


def test_parse_chapters_sorts_and_supports_hours():
    chapters = parse_chapters("1:02:03 Late part\n0:35 Early bit\n  10:00   Middle  ")
    assert [(c.offset_seconds, c.title) for c in chapters] == [
        (35, "Early bit"),
        (600, "Middle"),
        (3723, "Late part"),
    ]


def test_parse_chapters_drops_non_matching_lines():
    text = "Tracklist:\n00:10 Start\nnot a timestamp\n1:2 bad\n\n03:00\n04:00 End"
    assert parse_chapters(text) == [Chapter(10, "Start"), Chapter(240, "End")]


def test_parse_chapters_without_matches_is_empty_not_an_error():
    assert parse_chapters("hello there\nno stamps") == []
    assert parse_chapters("") == []


def test_formatted_chapters_parse_back_to_same_list():
    parsed = parse_chapters("00:00 Intro\n01:12 Verse\n02:05 Chorus\n1:05:09 Outro")
    assert parse_chapters(format_chapters(parsed)) == parsed


def test_format_timestamp_switches_to_hours():
    assert format_timestamp(72) == "01:12"
    assert format_timestamp(3723) == "1:02:03"
