import pytest

from trailcam.models import LiveStream
from trailcam.models.stream import make_slug
from trailcam.services.stream_service import recommend_quality


def test_slug_from_title():
    slug = make_slug("Gunung Rinjani: Summit Cam #2")
    base, suffix = slug.rsplit("-", 1)
    assert base == "gunung-rinjani-summit-cam-2"
    assert len(suffix) == 6
    assert suffix.isalnum()


def test_slug_for_title_without_letters():
    assert make_slug("!!!").startswith("stream-")


def test_slugs_are_unique():
    assert make_slug("Cam") != make_slug("Cam")


@pytest.mark.parametrize(
    ("viewers", "quality"),
    [(0, "1080p"), (50, "1080p"), (51, "720p"), (100, "720p"), (101, "360p")],
)
def test_recommend_quality(viewers, quality):
    assert recommend_quality(viewers) == quality


def test_ownership():
    owned = LiveStream(id=1, slug="a", title="A", status="offline", broadcaster_id="u1")
    shared = LiveStream(id=2, slug="b", title="B", status="offline")
    assert owned.is_owned_by("u1")
    assert not owned.is_owned_by("u2")
    assert shared.is_owned_by("anyone")
    assert owned.channel == "stream.1"
