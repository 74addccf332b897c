"""Komik endpoints against a faked provider."""

import httpx

HOST = "komik.test"


async def test_popular_sends_provider(client, upstream):
    upstream.add(f"{HOST}/popular", {"data": [{"title": "Solo Leveling"}]})
    resp = await client.get("/api/komik/popular")
    assert resp.json() == [{"title": "Solo Leveling"}]
    assert upstream.last().url.params["provider"] == "shinigami"


async def test_recommended_is_an_alias_of_popular(client, upstream):
    upstream.add(f"{HOST}/popular", [{"title": "A"}])
    resp = await client.get("/api/komik/recommended")
    assert resp.json() == [{"title": "A"}]


async def test_search_accepts_keyword_aliases(client, upstream):
    upstream.add(f"{HOST}/search", {"data": [{"title": "B"}]})
    for name in ("q", "query", "keyword"):
        resp = await client.get("/api/komik/search", params={name: "b"})
        assert resp.status_code == 200
        assert upstream.last().url.params["keyword"] == "b"


async def test_search_requires_query(client, upstream):
    resp = await client.get("/api/komik/search")
    assert resp.status_code == 400
    assert upstream.requests == []


async def test_detail_is_normalized(client, upstream):
    upstream.add(f"{HOST}/detail/solo", {"data": {
        "title": "Solo Leveling",
        "description": "Hunters.",
        "thumbnail": "https://cdn/solo.jpg",
        "genre": ["Action", {"title": "Fantasy"}],
    }})
    resp = await client.get("/api/komik/detail", params={"manga_id": "solo"})
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["judul"] == "Solo Leveling"
    assert body["data"]["synopsis"] == "Hunters."
    assert body["data"]["cover"] == "https://cdn/solo.jpg"
    assert body["data"]["genres"] == ["Action", "Fantasy"]


async def test_detail_missing_is_a_404(client, upstream):
    upstream.add(f"{HOST}/detail/none", {"data": None})
    resp = await client.get("/api/komik/detail", params={"id": "none"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Komik not found"}


async def test_chapterlist_extracts_ids(client, upstream):
    upstream.add(f"{HOST}/detail/solo", {"data": {"title": "Solo", "chapter": [
        {"title": "Chapter 2", "href": "/chapter/solo-ch-2/", "date": "today"},
        {"chapter_id": "solo-ch-1", "number": 1},
    ]}})
    resp = await client.get("/api/komik/chapterlist", params={"mangaId": "solo"})
    body = resp.json()
    assert body["success"] is True
    assert [c["chapter_id"] for c in body["chapters"]] == ["solo-ch-2", "solo-ch-1"]
    assert body["chapters"][1]["chapter_number"] == 1


async def test_chapterlist_failure_is_soft(client, upstream):
    upstream.fail(f"{HOST}/detail/solo", httpx.ConnectError("down"))
    resp = await client.get("/api/komik/chapterlist", params={"manga_id": "solo"})
    assert resp.status_code == 200
    assert resp.json() == {"success": False, "chapters": []}


async def test_getimage_filters_credit_pages(client, upstream):
    upstream.add(f"{HOST}/read/ch-1", {"data": [{"panel": [
        "https://storage.shngm.id/ch-1/001.jpg",
        "https://storage.shngm.id/ch-1/002.jpg",
        "https://storage.shngm.id/ch-1/999-credit.jpg",
    ]}]})
    resp = await client.get("/api/komik/getimage", params={"chapter_id": "ch-1"})
    assert resp.json() == {
        "success": True,
        "images": ["https://storage.shngm.id/ch-1/001.jpg", "https://storage.shngm.id/ch-1/002.jpg"],
    }


async def test_getimage_falls_back_to_chapter_endpoint(client, upstream):
    upstream.add(f"{HOST}/chapter/old-1", {"data": {"images": ["https://cdn/1.jpg"]}})
    resp = await client.get("/api/komik/getimage", params={"chapterId": "old-1"})
    assert resp.json()["images"] == ["https://cdn/1.jpg"]
    paths = [r.url.path for r in upstream.requests]
    assert paths == ["/read/old-1", "/chapter/old-1"]


async def test_getimage_failure_is_a_500(client, upstream):
    resp = await client.get("/api/komik/getimage", params={"chapter_id": "missing"})
    assert resp.status_code == 500


async def test_chapterlist_keeps_chapter_zero(client, upstream):
    upstream.add(f"{HOST}/detail/solo", {"data": {"chapter": [
        {"chapter_id": "solo-ch-0", "number": 0, "title": "Prologue"},
        {"chapter_id": "solo-ch-x", "title": "Extra"},
    ]}})
    resp = await client.get("/api/komik/chapterlist", params={"mangaId": "solo"})
    chapters = resp.json()["chapters"]
    assert chapters[0]["chapter_number"] == 0
    assert chapters[1]["chapter_number"] == "Extra"
