import base64

import pytest

from conftest import run

from dal.attachment_store import AttachmentStore
from utils.media_validation import (
    MAX_ATTACHMENT_BYTES,
    attachment_filename,
    audio_filename,
    decode_base64_payload,
    validate_attachment_size,
)


def test_decode_accepts_data_urls():
    encoded = base64.b64encode(b"%PDF-1.4").decode()
    assert decode_base64_payload(f"data:application/pdf;base64,{encoded}") == b"%PDF-1.4"


@pytest.mark.parametrize("value", ["", "   ", "@@@", "data:audio/ogg;base64,"])
def test_decode_rejects_bad_payloads(value):
    with pytest.raises(ValueError):
        decode_base64_payload(value, "audio_b64")


def test_audio_filename_follows_mime_type():
    assert audio_filename("audio/ogg; codecs=opus") == "voice-note.ogg"
    assert audio_filename("audio/mpeg") == "voice-note.mp3"
    with pytest.raises(ValueError):
        audio_filename("video/mp4")


def test_attachment_filename_is_sanitized():
    name = attachment_filename("../../Diseño final (v2).PDF")
    assert name.endswith("_Dise_o_final_v2.pdf")
    assert "/" not in name
    with pytest.raises(ValueError):
        attachment_filename("notas.txt")


def test_oversized_attachment_is_rejected():
    with pytest.raises(ValueError):
        validate_attachment_size(b"\0" * (MAX_ATTACHMENT_BYTES + 1))


def test_attachment_store_writes_under_user_folder(tmp_path):
    store = AttachmentStore(tmp_path)
    path = run(store.save("+56 9 1234", "abc_logo.png", b"data"))
    assert path == str(tmp_path / "5691234" / "abc_logo.png")
    with open(path, "rb") as fh:
        assert fh.read() == b"data"
