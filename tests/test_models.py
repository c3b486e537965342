"""Tests for publisher models."""
from pathlib import Path

import pytest

from publisher.errors import CredentialSourceMissing
from publisher.models import (
    Credential,
    CredentialSource,
    HistoryRecord,
    OperationResult,
    PackageSize,
    PublishTarget,
    StorageUploadResult,
)
from publisher.orchestrator.models import PublishResult, RunStatus


class TestPackageSize:
    def test_labels(self):
        assert PackageSize("__FULL__", 1).label == "full package"
        assert PackageSize("__APP__", 1).label == "main package"
        assert PackageSize("pages/sub", 1).label == "pages/sub"

    def test_sizes(self):
        pkg = PackageSize("__FULL__", 2 * 1024 * 1024)
        assert pkg.size_kb == 2048
        assert pkg.size_mb == 2


class TestOperationResult:
    def test_from_sizes(self):
        result = OperationResult.from_sizes(
            "release", [{"name": "__FULL__", "size": 300}, {"name": "__APP__", "size": 200}]
        )
        assert result.kind == "release"
        assert result.package_info == (PackageSize("__FULL__", 300), PackageSize("__APP__", 200))
        assert result.preview_path is None

    def test_from_sizes_none(self):
        assert OperationResult.from_sizes("preview", None).package_info == ()


class TestCredential:
    def test_explicit_not_owned(self):
        assert Credential(Path("k"), CredentialSource.EXPLICIT).owned is False

    def test_written_sources_owned(self):
        for source in (CredentialSource.REMOTE_URL, CredentialSource.INLINE_BASE64, CredentialSource.COPIED):
            assert Credential(Path("k"), source).owned is True


def test_target_with_credential_returns_copy():
    target = PublishTarget(app_id="wx1", project_path=Path("dist"))
    updated = target.with_credential("private.wx1.key")

    assert target.private_key_path is None
    assert updated.private_key_path == Path("private.wx1.key")
    assert updated.app_id == "wx1"


def test_storage_upload_result_factories():
    ok = StorageUploadResult.ok("https://cdn/1/a.jpg", "1/a.jpg")
    fail = StorageUploadResult.fail("quota exceeded")

    assert ok.success is True and ok.error is None
    assert fail.success is False and fail.url is None and fail.error == "quota exceeded"


def test_history_record_to_dict_omits_empty_optionals():
    record = HistoryRecord(
        kind="preview",
        version="1.0.0",
        description="d",
        env="staging",
        robot=2,
        timestamp="t",
        qrcode_url="https://cdn/1/qr.jpg",
    )
    data = record.to_dict()

    assert data["qrcode_url"] == "https://cdn/1/qr.jpg"
    assert "local_qrcode_path" not in data
    assert data["package_info"] == []
    assert data["build_info"] == {}


class TestPublishResult:
    def test_degraded_is_success(self):
        result = PublishResult(status=RunStatus.DEGRADED, action="release", warnings=("upload failed",))
        assert result.success is True
        assert result.degraded is True
        result.raise_for_status()

    def test_raise_for_status(self):
        error = CredentialSourceMissing("no key")
        result = PublishResult(status=RunStatus.FAILED, action="release", exception=error)

        assert result.success is False
        with pytest.raises(CredentialSourceMissing):
            result.raise_for_status()
