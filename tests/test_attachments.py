import logging
import re
from datetime import date

import pytest

from app.musaib.attachments import UploadedFile, attach, build_storage_key, upload_file
from app.musaib.storage import LocalStorage, S3Storage, StorageError, storage_from_config


def test_storage_key_layout():
    key = build_storage_key("demands", "Facture Clinique (1).pdf", date(2026, 10, 19))
    assert re.fullmatch(r"demands/2026-10-19/[0-9a-f]{12}-Facture_Clinique_1.pdf", key)
    assert build_storage_key("family", "../../", date(2026, 1, 1)).endswith("-document.bin")


def test_upload_to_local_storage(storage):
    result = upload_file(storage, UploadedFile("acte.pdf", b"%PDF acte", "application/pdf"), "family")
    assert result is not None
    assert result.name == "acte.pdf"
    assert result.size == 9
    assert result.url == f"/storage/{result.path}"
    with storage.open(result.path) as fh:
        assert fh.read() == b"%PDF acte"


def test_failed_upload_returns_none(failing_storage):
    assert upload_file(failing_storage, UploadedFile("acte.pdf", b"%PDF"), "family") is None
    assert attach(failing_storage, UploadedFile("acte.pdf", b"%PDF"), "family") is None


def test_empty_upload_returns_none_without_writing(storage, caplog):
    with caplog.at_level(logging.WARNING, logger="app.musaib.attachments"):
        assert upload_file(storage, UploadedFile("vide.pdf", b""), "demands") is None
        assert attach(storage, UploadedFile("vide.pdf", b""), "demands") is None
    assert not storage.root.exists()
    assert "attachment_error: empty upload skipped" in caplog.text


def test_failed_upload_is_logged(failing_storage, caplog):
    with caplog.at_level(logging.WARNING, logger="app.musaib.attachments"):
        upload_file(failing_storage, UploadedFile("acte.pdf", b"%PDF"), "family")
    assert "attachment_error: upload failed" in caplog.text
    assert "bucket unavailable" in caplog.text


def test_attach_returns_document_record(storage):
    doc = attach(storage, UploadedFile("ordonnance.pdf", b"%PDF ordonnance"), "demands")
    assert set(doc) == {"name", "url", "path", "size", "uploaded_at"}
    assert doc["size"] == len(b"%PDF ordonnance")


def test_local_storage_refuses_keys_outside_root(storage):
    with pytest.raises(StorageError):
        storage.put_bytes("../evasion.txt", b"x")


def test_storage_from_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    local = storage_from_config({"STORAGE_BACKEND": "local", "STORAGE_PUBLIC_BASE_URL": "/files/"})
    assert isinstance(local, LocalStorage)
    assert local.url("family/a.pdf") == "/files/family/a.pdf"

    s3 = storage_from_config(
        {
            "STORAGE_BACKEND": "s3",
            "S3_ENDPOINT": "fra1.digitaloceanspaces.com",
            "S3_BUCKET": "musaib",
            "S3_ACCESS_KEY_ID": "k",
            "S3_SECRET_ACCESS_KEY": "s",
        }
    )
    assert isinstance(s3, S3Storage)
    assert s3.region == "fra1"
    assert s3.url("demands/x.pdf") == "https://musaib.fra1.digitaloceanspaces.com/demands/x.pdf"
