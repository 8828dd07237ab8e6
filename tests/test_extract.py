"""Tests for image acquisition and decoding."""

from __future__ import annotations

import base64
from urllib.parse import quote

import numpy as np
import pytest
import requests
from tenacity import wait_none

from logo_metrics.extract import acquire, decode
from logo_metrics.extract.acquire import SourceError, decode_data_uri, load_source
from logo_metrics.extract.decode import ImageDecodeError, decode_image
from logo_metrics.features.metrics import extract_metrics


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None, allow_redirects=True):
        self.calls.append(url)
        return self._responses.pop(0)


def _response(status: int, content: bytes = b"", content_type: str = "image/png", url: str = ""):
    response = requests.Response()
    response.status_code = status
    response._content = content
    response.headers["Content-Type"] = content_type
    response.url = url
    return response


def test_decode_png_keeps_alpha(make_png):
    alpha = np.zeros((6, 8), dtype=np.uint8)
    alpha[2:4, 3:5] = 255
    decoded = decode_image(make_png(alpha), "image/png")

    buffer = decoded.buffer
    assert (buffer.width, buffer.height) == (8, 6)
    assert len(buffer.data) == 8 * 6 * 4
    assert decoded.original_size == (8, 6)
    pixels = np.frombuffer(buffer.data, dtype=np.uint8).reshape(6, 8, 4)
    assert np.array_equal(pixels[:, :, 3], alpha)


def test_decode_jpeg_is_fully_opaque(make_png):
    decoded = decode_image(make_png(np.full((4, 4), 255), fmt="JPEG"))
    pixels = np.frombuffer(decoded.buffer.data, dtype=np.uint8).reshape(4, 4, 4)
    assert (pixels[:, :, 3] == 255).all()


def test_downscale_reports_original_size(make_png):
    alpha = np.full((20, 40), 255, dtype=np.uint8)
    decoded = decode_image(make_png(alpha), max_side=10)

    assert (decoded.buffer.width, decoded.buffer.height) == (10, 5)
    assert decoded.original_size == (40, 20)
    metrics = extract_metrics(decoded.buffer, decoded.original_size)
    assert metrics.aspect_ratio == pytest.approx(2.0)
    assert (metrics.width, metrics.height) == (10, 5)


def test_small_images_are_not_upscaled(make_png):
    decoded = decode_image(make_png(np.full((3, 5), 255)), max_side=64)
    assert (decoded.buffer.width, decoded.buffer.height) == (5, 3)


@pytest.mark.parametrize("payload", [b"", b"definitely not an image"])
def test_unreadable_payloads(payload):
    with pytest.raises(ImageDecodeError):
        decode_image(payload)


def test_svg_without_rasterizer(monkeypatch):
    monkeypatch.setattr(decode, "cairosvg", None)
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="24" height="12"></svg>'
    with pytest.raises(ImageDecodeError):
        decode_image(svg)


@pytest.mark.parametrize(
    "svg, expected",
    [
        (b'<svg xmlns="http://www.w3.org/2000/svg" width="24px" height="12"/>', (24, 12)),
        (b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 256 259"/>', (256, 259)),
        (b'<svg xmlns="http://www.w3.org/2000/svg" width="100%" viewBox="0,0,40,20"/>', (40, 20)),
        (b'<svg xmlns="http://www.w3.org/2000/svg"/>', None),
        (b"<svg", None),
    ],
)
def test_svg_declared_size(svg, expected):
    assert decode._svg_declared_size(svg) == expected


def test_base64_data_uri(make_png):
    png = make_png(np.full((2, 2), 255))
    uri = "data:image/png;base64," + base64.b64encode(png).decode("ascii")
    data, mime = load_source(uri)
    assert data == png
    assert mime == "image/png"


def test_percent_encoded_data_uri():
    svg = '<svg xmlns="http://www.w3.org/2000/svg"/>'
    data, mime = decode_data_uri("data:image/svg+xml," + quote(svg))
    assert data == svg.encode("utf-8")
    assert mime == "image/svg+xml"


@pytest.mark.parametrize("uri", ["data:image/png;base64,!!!", "data:image/png;base64"])
def test_malformed_data_uri(uri):
    with pytest.raises(SourceError):
        decode_data_uri(uri)


def test_local_file(tmp_path, make_png):
    path = tmp_path / "mark.PNG"
    png = make_png(np.full((3, 3), 255))
    path.write_bytes(png)
    assert load_source(str(path)) == (png, "image/png")


def test_missing_file(tmp_path):
    with pytest.raises(SourceError):
        load_source(str(tmp_path / "missing.png"))


def test_empty_source():
    with pytest.raises(SourceError):
        load_source("   ")


def test_url_download(monkeypatch, make_png):
    png = make_png(np.full((2, 2), 255))
    session = FakeSession([_response(200, png, "image/png; charset=binary", "https://x.test/a.png")])
    monkeypatch.setattr(acquire, "_get_session", lambda: session)

    assert load_source("https://x.test/a.png") == (png, "image/png")
    assert session.calls == ["https://x.test/a.png"]


def test_url_mime_falls_back_to_extension(monkeypatch):
    session = FakeSession(
        [_response(200, b"<svg/>", "application/octet-stream", "https://x.test/logo.svg")]
    )
    monkeypatch.setattr(acquire, "_get_session", lambda: session)
    assert load_source("https://x.test/logo.svg")[1] == "image/svg+xml"


def test_url_retries_server_errors(monkeypatch):
    session = FakeSession(
        [
            _response(503, url="https://x.test/a.png"),
            _response(200, b"ok", "image/png", "https://x.test/a.png"),
        ]
    )
    monkeypatch.setattr(acquire, "_get_session", lambda: session)
    monkeypatch.setattr(acquire, "_retryer", acquire._retryer.copy(wait=wait_none()))

    assert load_source("https://x.test/a.png") == (b"ok", "image/png")
    assert len(session.calls) == 2


def test_url_client_error(monkeypatch):
    session = FakeSession([_response(404, url="https://x.test/a.png")])
    monkeypatch.setattr(acquire, "_get_session", lambda: session)
    with pytest.raises(SourceError):
        load_source("https://x.test/a.png")
