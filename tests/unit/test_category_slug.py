from __future__ import annotations

import re

import pytest

from deptcms.domain.category import generate_slug

_SAMPLES = [
    "Workshops",
    "  Guest Lectures  ",
    "Seminars & Symposia",
    "Literary--Fest 2025!!",
    "-leading and trailing-",
    "Café Conversations",
    "tabs\tand\nnewlines",
    "---",
    "",
    "already-a-slug",
]


def test_generate_slug_examples():
    assert generate_slug("Workshops") == "workshops"
    assert generate_slug("Seminars & Symposia") == "seminars-symposia"
    assert generate_slug("Literary--Fest 2025!!") == "literary-fest-2025"
    assert generate_slug("  Guest Lectures  ") == "guest-lectures"
    assert generate_slug("Café Conversations") == "caf-conversations"


@pytest.mark.parametrize("name", _SAMPLES)
def test_generate_slug_is_url_safe_and_idempotent(name: str):
    slug = generate_slug(name)

    assert re.fullmatch(r"[a-z0-9-]*", slug)
    assert not slug.startswith("-")
    assert not slug.endswith("-")
    assert "--" not in slug
    assert generate_slug(slug) == slug
