"""Tests for certificate/key normalization and storage."""

import os
import stat
import tempfile
from pathlib import Path

import pytest
from loguru import logger

from docgrounding_client.credential import CredentialStore, normalize_pem
from docgrounding_client.errors import ValidationError


def test_normalize_pem_expands_escaped_newlines():
    assert normalize_pem("-----BEGIN-----\\nabc\\n-----END-----") == "-----BEGIN-----\nabc\n-----END-----\n"
    # Already multi-line text only gains the trailing newline
    assert normalize_pem("line1\nline2") == "line1\nline2\n"
    assert normalize_pem("done\n") == "done\n"


def test_store_writes_owner_only_files():
    """Stored files are normalized and readable by the owner only."""
    with tempfile.TemporaryDirectory() as temp_dir:
        store = CredentialStore(Path(temp_dir) / "credentials_adjusted")

        credential = store.store("CERT\\nBODY", "KEY\\nBODY")

        assert credential.cert_path.read_text() == "CERT\nBODY\n"
        assert credential.key_path.read_text() == "KEY\nBODY\n"
        assert credential.cert_path.name == "doc-grounding.crt"
        assert credential.key_path.name == "doc-grounding.key"

        for path in (credential.cert_path, credential.key_path):
            assert stat.S_IMODE(os.stat(path).st_mode) == 0o600, f"{path} is not 0600"

        assert stat.S_IMODE(os.stat(store.storage_dir).st_mode) == 0o700
        logger.info("✓ Credential files stored with owner-only permissions")


def test_store_keeps_only_base_names(tmp_path):
    store = CredentialStore(tmp_path / "creds")

    credential = store.store("CERT", "KEY", cert_file_name="../../elsewhere/client.crt", key_file_name="/tmp/client.key")

    assert credential.cert_path == tmp_path / "creds" / "client.crt"
    assert credential.key_path == tmp_path / "creds" / "client.key"
    assert not (tmp_path / "elsewhere").exists()


@pytest.mark.parametrize("cert_text,key_text", [("", "KEY"), ("CERT", ""), ("   ", "KEY")])
def test_store_rejects_empty_values(tmp_path, cert_text, key_text):
    store = CredentialStore(tmp_path / "creds")

    with pytest.raises(ValidationError):
        store.store(cert_text, key_text)

    assert not (tmp_path / "creds" / "doc-grounding.crt").exists()


def test_store_overwrites_existing_pair(tmp_path):
    store = CredentialStore(tmp_path)

    store.store("OLD", "OLD")
    credential = store.store("NEW", "NEW")

    assert credential.cert_path.read_text() == "NEW\n"
    assert stat.S_IMODE(os.stat(credential.key_path).st_mode) == 0o600


def test_load_accepts_stored_pair(tmp_path):
    store = CredentialStore(tmp_path)
    stored = store.store("CERT", "KEY")

    assert store.load(stored.cert_path, stored.key_path) == stored


def test_load_rejects_missing_and_insecure_files(tmp_path):
    store = CredentialStore(tmp_path)
    stored = store.store("CERT", "KEY")

    with pytest.raises(ValidationError, match="not found"):
        store.load(tmp_path / "missing.crt", stored.key_path)

    os.chmod(stored.key_path, 0o644)
    with pytest.raises(ValidationError, match="insecure permissions"):
        store.load(stored.cert_path, stored.key_path)


def test_load_rejects_empty_file(tmp_path):
    store = CredentialStore(tmp_path)
    stored = store.store("CERT", "KEY")
    stored.cert_path.write_text("")

    with pytest.raises(ValidationError, match="empty"):
        store.load(stored.cert_path, stored.key_path)
