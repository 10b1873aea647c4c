from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from minimusiker.clients.storage import (
    R2Storage,
    final_audio_key,
    logo_key,
    raw_audio_key,
    sanitize_filename,
    validate_audio_content_type,
    validate_logo_content_type,
)
from minimusiker.core.errors import ValidationError


def test_sanitize_filename():
    assert sanitize_filename("Unser Lied (Klasse 3a).MP3") == "unser_lied__klasse_3a_.mp3"
    assert len(sanitize_filename("x" * 80 + ".wav")) == 50


def test_key_layout():
    assert (
        raw_audio_key("evt_1", "cls_1", "recSong", "Take 1.wav", timestamp=1700000000000)
        == "recordings/evt_1/cls_1/recSong/raw/1700000000000_take_1.wav"
    )
    assert (
        final_audio_key("evt_1", "cls_1", "recSong", "Master.WAV", timestamp=42)
        == "recordings/evt_1/cls_1/recSong/final/final_42.wav"
    )
    assert final_audio_key("e", "c", "s", "noext", timestamp=1).endswith("final_1.mp3")
    assert logo_key("recEin", "Logo.SVG") == "logos/recEin/logo.svg"
    assert logo_key("recEin", "logo") == "logos/recEin/logo.png"


def test_content_type_validation():
    validate_audio_content_type("audio/mpeg")
    validate_logo_content_type("image/webp")
    with pytest.raises(ValidationError, match="MP3, WAV, M4A/AAC"):
        validate_audio_content_type("video/mp4")
    with pytest.raises(ValidationError, match="PNG, JPEG, SVG, WebP"):
        validate_logo_content_type("application/pdf")


@pytest.mark.asyncio
async def test_presigned_put_uses_expiry():
    minio = MagicMock()
    minio.presigned_put_object.return_value = "https://r2.example/put"
    storage = R2Storage(client=minio, bucket="recordings")

    url = await storage.presigned_put_url("recordings/a.mp3", expires=600)

    assert url == "https://r2.example/put"
    minio.presigned_put_object.assert_called_once_with(
        "recordings", "recordings/a.mp3", expires=timedelta(seconds=600)
    )


@pytest.mark.asyncio
async def test_presigned_get_with_download_name():
    minio = MagicMock()
    minio.presigned_get_object.return_value = "https://r2.example/get"
    storage = R2Storage(client=minio, bucket="recordings")

    await storage.presigned_get_url("k.mp3", expires=60, download_name="Song.mp3")

    kwargs = minio.presigned_get_object.call_args.kwargs
    assert kwargs["response_headers"] == {
        "response-content-disposition": 'attachment; filename="Song.mp3"'
    }


@pytest.mark.asyncio
async def test_object_exists_and_delete():
    minio = MagicMock()
    storage = R2Storage(client=minio, bucket="recordings")

    assert await storage.object_exists("k.mp3") is True
    await storage.delete_object("k.mp3")

    minio.stat_object.assert_called_once_with("recordings", "k.mp3")
    minio.remove_object.assert_called_once_with("recordings", "k.mp3")
