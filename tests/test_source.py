import io

import httpx
import pytest
from PIL import ImageFile

from meme import CanonicalImage, SourceUnavailable, fetch_template, normalize
from meme.source import decode_payload


def test_normalize_bytes_uses_decoded_format(image_bytes):
    image = normalize(image_bytes(format="JPEG"))

    assert image.media_type == "image/jpeg"
    assert image.size == (600, 400)


def test_decoded_format_wins_over_declared_type(image_bytes):
    image = normalize((image_bytes(format="PNG"), "image/jpeg"))

    assert image.media_type == "image/png"


def test_normalize_path(tmp_path, image_bytes):
    path = tmp_path / "cat.png"
    path.write_bytes(image_bytes(320, 240))

    image = normalize(path)
    assert image.size == (320, 240)
    assert normalize(str(path)) == image


def test_normalize_missing_path(tmp_path):
    with pytest.raises(SourceUnavailable):
        normalize(tmp_path / "missing.png")


def test_normalize_file_object(image_bytes):
    image = normalize(io.BytesIO(image_bytes(format="GIF")))

    assert image.media_type == "image/gif"


def test_normalize_canonical_image_returns_verified_copy(make_image):
    original = make_image()
    copy = normalize(original)

    assert copy == original


def test_normalize_unsupported_type():
    with pytest.raises(SourceUnavailable):
        normalize(12345)


def test_empty_payload_rejected():
    with pytest.raises(SourceUnavailable):
        decode_payload(b"", "image/png")


def test_corrupt_payload_rejected():
    with pytest.raises(SourceUnavailable):
        normalize((b"<html>not an image</html>", "image/png"))


def test_truncated_payload_rejected(image_bytes):
    payload = image_bytes(format="PNG")

    with pytest.raises(SourceUnavailable):
        normalize(payload[: len(payload) // 2])


def test_size_does_not_decode_pixels(monkeypatch, make_image):
    image = make_image(320, 200)

    def fail_load(self):
        raise AssertionError("pixel data decoded")

    monkeypatch.setattr(ImageFile.ImageFile, "load", fail_load)

    assert image.size == (320, 200)


def test_size_of_garbage_payload():
    with pytest.raises(SourceUnavailable):
        CanonicalImage(payload=b"garbage", media_type="image/png").size


def test_data_url_round_trip(make_image):
    image = make_image(64, 48)
    data_url = image.to_data_url()

    assert data_url.startswith("data:image/png;base64,")
    assert CanonicalImage.from_data_url(data_url) == image


def test_malformed_data_url():
    with pytest.raises(SourceUnavailable):
        CanonicalImage.from_data_url("data:image/png;base64")
    with pytest.raises(SourceUnavailable):
        CanonicalImage.from_data_url("data:image/png;base64,***")


def test_response_error_status():
    response = httpx.Response(404, content=b"not found")

    with pytest.raises(SourceUnavailable):
        normalize(response)


@pytest.mark.asyncio
async def test_fetch_template(image_bytes):
    payload = image_bytes(600, 400, format="JPEG")
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, content=payload, headers={"content-type": "image/jpeg"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        image = await fetch_template("https://picsum.photos/seed/meme1/600/400", client=client)

    assert requested == ["https://picsum.photos/seed/meme1/600/400"]
    assert image.media_type == "image/jpeg"
    assert image.size == (600, 400)


@pytest.mark.asyncio
async def test_fetch_template_http_error():
    def handler(request):
        return httpx.Response(503)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SourceUnavailable):
            await fetch_template("https://example.com/down.png", client=client)


@pytest.mark.asyncio
async def test_fetch_template_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SourceUnavailable):
            await fetch_template("https://example.com/meme.png", client=client)


@pytest.mark.asyncio
async def test_fetch_template_non_image_body():
    def handler(request):
        return httpx.Response(200, content=b"<html></html>", headers={"content-type": "text/html"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SourceUnavailable):
            await fetch_template("https://example.com/page", client=client)


@pytest.mark.asyncio
async def test_fetch_template_invalid_url():
    with pytest.raises(SourceUnavailable):
        await fetch_template("not a url at all")
