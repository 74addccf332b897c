"""Response-shape normalization.

The three upstream providers are undocumented and inconsistent: the same
logical list may arrive as a bare array, as ``{"data": [...]}``, as
``{"value": [...]}`` or buried a few levels deep. Every mapping in this
package goes through the helpers below:

- ``Chain``: an ordered list of extractors over an untyped document. The
  first extractor whose result passes ``accept`` wins; results are never
  merged; when nothing passes, a copy of ``default`` is returned.
- ``find_array``: a bounded-depth tree walk used as the last resort when
  none of the known shapes matched.
- ``is_credit_image``: heuristics that drop scanlation credit/promo pages
  from chapter image lists.
"""

import copy
import re
from typing import Any, Callable, Iterable, Optional

from nobar.clients.base import StreamSource

Extractor = Callable[[Any], Any]
Predicate = Callable[[Any], bool]


# ── Extractors ───────────────────────────────────────────────────

def path(*keys: str | int) -> Extractor:
    """Extractor following dict keys / list indexes; any miss yields None."""

    def extract(doc: Any) -> Any:
        node = doc
        for key in keys:
            if isinstance(key, int):
                if not isinstance(node, list) or not -len(node) <= key < len(node):
                    return None
                node = node[key]
            elif isinstance(node, dict):
                node = node.get(key)
            else:
                return None
        return node

    extract.__name__ = "path(" + ".".join(str(k) for k in keys) + ")"
    return extract


def identity(doc: Any) -> Any:
    return doc


def unwrapped(doc: Any) -> Any:
    """The document itself, unless it is a ``{"data": ...}`` envelope."""
    if isinstance(doc, dict) and "data" in doc:
        return None
    return doc


# ── Acceptors ────────────────────────────────────────────────────

def is_list(value: Any) -> bool:
    return isinstance(value, list)


def is_nonempty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def is_truthy(value: Any) -> bool:
    # None, "", 0, False and empty containers all fail, like a JS `||` chain
    return bool(value)


def is_present(value: Any) -> bool:
    return value is not None


class Chain:
    """Prioritized extraction: first accepted result wins, else ``default``."""

    def __init__(self, *extractors: Extractor, default: Any = None, accept: Predicate = is_truthy):
        self.extractors = extractors
        self.default = default
        self.accept = accept

    def __call__(self, doc: Any) -> Any:
        for extract in self.extractors:
            try:
                value = extract(doc)
            except (TypeError, KeyError, IndexError, AttributeError):
                continue
            if self.accept(value):
                return value
        return copy.deepcopy(self.default)

    def __repr__(self) -> str:
        names = ", ".join(getattr(e, "__name__", repr(e)) for e in self.extractors)
        return f"Chain({names}, default={self.default!r})"


# Bare array, then {"data": [...]}, then {"value": [...]}.
LIST_CHAIN = Chain(identity, path("data"), path("value"), default=[], accept=is_list)

# {"data": {...}} or the object itself; an envelope with empty data yields None.
OBJECT_CHAIN = Chain(path("data"), unwrapped, default=None, accept=is_truthy)


def first_of(doc: Any, *extractors: Extractor, default: Any = None) -> Any:
    """One-off truthy chain, for item field fallbacks."""
    return Chain(*extractors, default=default)(doc)


# ── Structural search ────────────────────────────────────────────

FIND_ARRAY_MAX_DEPTH = 4


def find_array(doc: Any, predicate: Predicate, max_depth: int = FIND_ARRAY_MAX_DEPTH) -> Optional[list]:
    """Depth-first search for the first non-empty list whose first element
    satisfies ``predicate``.

    Containers are inspected down to ``max_depth`` levels below the root
    (root = 0); a list that is a direct child of an inspected container is a
    candidate. The root itself is never a candidate. Dict values and list
    items are visited in document order.
    """

    def walk(node: Any, depth: int) -> Optional[list]:
        if depth > max_depth:
            return None
        children: Iterable = node.values() if isinstance(node, dict) else node
        for child in children:
            if isinstance(child, list) and child and predicate(child[0]):
                return child
            if isinstance(child, (dict, list)):
                found = walk(child, depth + 1)
                if found is not None:
                    return found
        return None

    if not isinstance(doc, (dict, list)):
        return None
    return walk(doc, 0)


def looks_like_chapter(value: Any) -> bool:
    return isinstance(value, dict) and any(
        value.get(k) for k in ("id", "chapter_id", "chapter_number", "chapter")
    )


def looks_like_image_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("http")


# ── Comic pages ──────────────────────────────────────────────────

CREDIT_KEYWORDS = (
    "credit", "promo", "watermark", "donasi", "discord", "join", "staff",
    "sh-ae", "ae-logo", "social-media", "banner", "website-group",
)
CREDIT_PREFIXES = ("00-", "9999-", "zzz-")


def is_credit_image(url: Optional[str]) -> bool:
    """True for scanlation credit/promo pages appended to a chapter."""
    if not url:
        return False
    full_url = url.lower()
    file_name = full_url.rsplit("/", 1)[-1]

    if file_name.startswith(CREDIT_PREFIXES):
        return True
    if any(k in file_name for k in CREDIT_KEYWORDS):
        return True
    # shngm.id is the image CDN itself, so only flag "shinigami" elsewhere
    if "shinigami" in file_name or ("shinigami" in full_url and "shngm.id" not in full_url):
        return True
    return False


def _is_image_source(value: Any) -> bool:
    if isinstance(value, str):
        return "http" in value
    return is_nonempty_list(value) and isinstance(value[0], str)


_IMAGE_CHAIN = Chain(
    path("data", 0, "panel"),
    path("data", "chapter", "data"),
    path("data", "images"),
    path("chapter", "data"),
    path("images"),
    path("data"),
    identity,
    default=None,
    accept=_is_image_source,
)


def extract_images(doc: Any) -> list[str]:
    """Page image URLs of a chapter, with credit pages removed."""
    images = _IMAGE_CHAIN(doc)
    if isinstance(images, str):
        # Some providers send one space/comma separated string
        images = re.split(r"[\s,]+", images.strip())
    if not images:
        images = find_array(doc, looks_like_image_url) or []
    return [u for u in images if isinstance(u, str) and u and not is_credit_image(u)]


_CHAPTER_CHAIN = Chain(
    path("chapters"),
    path("data", "chapter"),
    path("data", "chapters"),
    path("data", "list"),
    path("data"),
    identity,
    default=None,
    accept=is_nonempty_list,
)


def extract_chapters(doc: Any) -> list:
    """Raw chapter entries of a comic detail payload."""
    chapters = _CHAPTER_CHAIN(doc)
    if chapters is None:
        chapters = find_array(doc, looks_like_chapter) or []
    return chapters


# ── Drama episodes ───────────────────────────────────────────────

def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def pick_episode_video(episodes: list, index: int) -> Optional[StreamSource]:
    """Playable URL from an ``allepisode`` listing.

    The entry whose ``chapterIndex`` equals ``index`` carries
    ``cdnList[0].videoPathList[0]``; that first path is the default quality.
    This field layout covers locked (VIP) episodes too, unlike the detail
    payload.
    """
    for ep in episodes:
        if not isinstance(ep, dict) or _as_int(ep.get("chapterIndex")) != index:
            continue
        video = path("cdnList", 0, "videoPathList", 0)(ep)
        if isinstance(video, dict) and video.get("videoPath"):
            return StreamSource(url=video["videoPath"], quality=str(video.get("quality") or "auto"))
        return None
    return None


def pick_detail_episode_video(chapters: list, index: int) -> Optional[StreamSource]:
    """Fallback on the detail ``chapterList``: free episodes expose mp4/m3u8."""
    entries = [c for c in chapters if isinstance(c, dict)]
    episode = next((c for c in entries if _as_int(c.get("index")) == index), None)
    if episode is None and 0 <= index < len(entries):
        episode = entries[index]
    if episode is None:
        return None
    url = first_of(episode, path("mp4"), path("m3u8Url"))
    return StreamSource(url=url, quality="auto") if url else None
