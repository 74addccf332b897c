"""Fallback chains, structural search and comic page filtering."""

import pytest

from nobar.normalize import (
    LIST_CHAIN, OBJECT_CHAIN, Chain, extract_chapters, extract_images, find_array,
    first_of, is_credit_image, is_list, is_present, looks_like_chapter, looks_like_image_url,
    path, pick_detail_episode_video, pick_episode_video,
)

ITEMS = [{"bookId": "1", "bookName": "A"}, {"bookId": "2", "bookName": "B"}]


# ── Chain ────────────────────────────────────────────────────────

@pytest.mark.parametrize("payload", [ITEMS, {"data": ITEMS}, {"value": ITEMS}])
def test_list_chain_accepts_every_known_shape(payload):
    assert LIST_CHAIN(payload) == ITEMS


def test_list_chain_first_match_wins_without_merging():
    assert LIST_CHAIN({"data": [1], "value": [2]}) == [1]
    # An empty list is still a list: "data" wins over a populated "value"
    assert LIST_CHAIN({"data": [], "value": [2]}) == []


@pytest.mark.parametrize("payload", [None, {}, {"data": None}, {"data": {"x": 1}}, "oops", 42])
def test_list_chain_defaults_to_empty_list(payload):
    assert LIST_CHAIN(payload) == []


def test_chain_default_is_not_shared_between_calls():
    first = LIST_CHAIN(None)
    first.append("mutated")
    assert LIST_CHAIN(None) == []


def test_object_chain_prefers_data_then_raw():
    assert OBJECT_CHAIN({"data": {"bookId": "9"}}) == {"bookId": "9"}
    assert OBJECT_CHAIN({"bookId": "9"}) == {"bookId": "9"}
    assert OBJECT_CHAIN({}) is None


@pytest.mark.parametrize("payload", [{"data": None}, {"data": {}}, {"data": ""}, {"data": None, "message": "ok"}])
def test_object_chain_empty_envelope_is_none(payload):
    assert OBJECT_CHAIN(payload) is None


def test_truthy_chain_skips_falsy_values():
    item = {"tvInfo": {"sub": 0, "eps": 24}}
    assert first_of(item, path("tvInfo", "sub"), path("tvInfo", "eps"), default="?") == 24
    assert first_of({}, path("tvInfo", "sub"), default="?") == "?"


def test_presence_chain_keeps_falsy_values():
    chain = Chain(path("number"), path("title"), default=None, accept=is_present)
    assert chain({"number": 0, "title": "Prologue"}) == 0
    assert chain({"number": None, "title": ""}) == ""
    assert chain({}) is None


def test_path_handles_indexes_and_misses():
    doc = {"data": [{"panel": ["a"]}]}
    assert path("data", 0, "panel")(doc) == ["a"]
    assert path("data", 5, "panel")(doc) is None
    assert path("data", "panel")(doc) is None
    assert path("x", "y")("not a dict") is None


def test_chain_ignores_extractors_that_raise():
    def broken(doc):
        raise KeyError("nope")

    chain = Chain(broken, path("ok"), default=None, accept=is_list)
    assert chain({"ok": [1]}) == [1]


# ── find_array ───────────────────────────────────────────────────

def test_find_array_returns_first_match_in_document_order():
    doc = {"meta": {"tags": ["x"]}, "result": {"items": [{"chapter_id": "c1"}]}, "other": [{"id": "z"}]}
    assert find_array(doc, looks_like_chapter) == [{"chapter_id": "c1"}]


def test_find_array_respects_depth_limit():
    leaf = ["http://img/1.jpg"]
    # Root is depth 0; lists directly inside a depth-4 container are candidates
    reachable = {"a": {"b": {"c": {"d": {"e": leaf}}}}}
    too_deep = {"a": {"b": {"c": {"d": {"e": {"f": leaf}}}}}}
    assert find_array(reachable, looks_like_image_url) == leaf
    assert find_array(too_deep, looks_like_image_url) is None
    assert find_array(too_deep, looks_like_image_url, max_depth=5) == leaf


def test_find_array_ignores_scalars_and_empty_lists():
    assert find_array("http://x", looks_like_image_url) is None
    assert find_array({"a": [], "b": [None]}, looks_like_image_url) is None


# ── Credit images ────────────────────────────────────────────────

@pytest.mark.parametrize("url", [
    "https://cdn.example.com/ch1/00-cover.jpg",
    "https://cdn.example.com/ch1/9999-end.jpg",
    "https://cdn.example.com/ch1/zzz-last.png",
    "https://cdn.example.com/ch1/CREDIT.jpg",
    "https://cdn.example.com/ch1/join-discord.webp",
    "https://cdn.example.com/ch1/website-group.jpg",
    "https://cdn.shngm.id/ch1/shinigami-logo.jpg",
    "https://shinigami.example/ch1/05.jpg",
])
def test_credit_images_are_detected(url):
    assert is_credit_image(url)


@pytest.mark.parametrize("url", [
    "https://storage.shngm.id/chapter/abc/01.jpg",
    "https://cdn.example.com/ch1/001.jpg",
    "https://cdn.example.com/credits/12.jpg",  # keyword in a directory, not the filename
    "",
    None,
])
def test_regular_pages_are_kept(url):
    assert not is_credit_image(url)


# ── Images / chapters ────────────────────────────────────────────

def test_extract_images_from_panel_payload_filters_credits():
    doc = {"data": [{"panel": [
        "https://storage.shngm.id/c/01.jpg",
        "https://storage.shngm.id/c/02.jpg",
        "https://storage.shngm.id/c/zzz-credit.jpg",
    ]}]}
    assert extract_images(doc) == ["https://storage.shngm.id/c/01.jpg", "https://storage.shngm.id/c/02.jpg"]


def test_extract_images_splits_string_payloads():
    doc = {"data": {"images": "https://a/1.jpg, https://a/2.jpg https://a/3.jpg"}}
    assert extract_images(doc) == ["https://a/1.jpg", "https://a/2.jpg", "https://a/3.jpg"]


def test_extract_images_falls_back_to_structural_search():
    doc = {"result": {"reader": {"pages": ["https://a/1.jpg", "https://a/2.jpg"]}}}
    assert extract_images(doc) == ["https://a/1.jpg", "https://a/2.jpg"]


def test_extract_images_of_unrecognised_payload_is_empty():
    assert extract_images({"data": {"message": "not found"}}) == []


@pytest.mark.parametrize("payload", [
    {"chapters": [{"id": "c1"}]},
    {"data": {"chapter": [{"id": "c1"}]}},
    {"data": [{"id": "c1"}]},
    [{"id": "c1"}],
    {"result": {"deep": {"list": [{"id": "c1"}]}}},
])
def test_extract_chapters_shapes(payload):
    assert extract_chapters(payload) == [{"id": "c1"}]


# ── Drama episode video ──────────────────────────────────────────

def test_pick_episode_video_uses_first_cdn_path():
    episodes = [
        {"chapterIndex": 0, "cdnList": [{"videoPathList": [{"videoPath": "https://v/0.mp4", "quality": 720}]}]},
        {"chapterIndex": 1, "cdnList": [{"videoPathList": [
            {"videoPath": "https://v/1-1080.mp4", "quality": 1080},
            {"videoPath": "https://v/1-540.mp4", "quality": 540},
        ]}]},
    ]
    source = pick_episode_video(episodes, 1)
    assert source.url == "https://v/1-1080.mp4"
    assert source.quality == "1080"
    assert pick_episode_video(episodes, 7) is None


def test_pick_episode_video_without_cdn_paths_is_none():
    assert pick_episode_video([{"chapterIndex": 0, "cdnList": []}], 0) is None


def test_pick_detail_episode_video_prefers_index_then_position():
    chapters = [{"index": 1, "m3u8Url": "https://v/1.m3u8"}, {"index": 0, "mp4": "https://v/0.mp4"}]
    assert pick_detail_episode_video(chapters, 0).url == "https://v/0.mp4"
    assert pick_detail_episode_video(chapters, 1).url == "https://v/1.m3u8"
    assert pick_detail_episode_video([{"mp4": "https://v/x.mp4"}], 0).url == "https://v/x.mp4"
    assert pick_detail_episode_video([{"index": 0}], 0) is None
