"""
pytest 공용 픽스처
YouTube 응답을 흉내 낸 HTML/XML 샘플을 제공합니다.
"""

import json

import pytest
import requests


VIDEO_ID = "dQw4w9WgXcQ"

TRANSCRIPT_XML = (
    '<?xml version="1.0" encoding="utf-8" ?><transcript>'
    '<text start="0.5" dur="2.25">Hello &amp;amp; welcome</text>'
    '<text start="3" dur="1.5">It&amp;#39;s a test</text>'
    '</transcript>'
)


def make_player_response(tracks=None, title="Never Gonna Give You Up"):
    data = {"videoDetails": {"videoId": VIDEO_ID, "title": title}}
    if tracks is not None:
        data["captions"] = {
            "playerCaptionsTracklistRenderer": {"captionTracks": tracks}
        }
    return data


def make_track(language="en", kind=None, base_url=None, name="English"):
    track = {
        "baseUrl": base_url or f"https://www.youtube.com/api/timedtext?v={VIDEO_ID}&lang={language}",
        "languageCode": language,
        "name": {"simpleText": name},
    }
    if kind:
        track["kind"] = kind
    return track


def make_watch_page(player_response=None, extra=""):
    parts = [
        "<html><head><title>Never Gonna Give You Up - YouTube</title>",
        '<meta name="title" content="Meta Title">',
        "</head><body>",
        '<script>ytcfg.set({"INNERTUBE_API_KEY":"test-key","visitorData":"visitor-123"});</script>',
    ]
    if player_response is not None:
        parts.append(
            f"<script>var ytInitialPlayerResponse = {json.dumps(player_response)};var meta = {{}};</script>"
        )
    parts.append(extra)
    parts.append("</body></html>")
    return "".join(parts)


def make_response(status_code=200, text="", url="https://www.youtube.com/"):
    """실제 requests.Response 객체를 만듭니다."""
    response = requests.Response()
    response.status_code = status_code
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    response.url = url
    return response


@pytest.fixture
def transcript_xml():
    return TRANSCRIPT_XML


@pytest.fixture
def video_id():
    return VIDEO_ID
