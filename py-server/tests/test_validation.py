from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import main
from utils import endpoint_decorators, validation
from utils.validation import (
    DocumentOpenError,
    MemoryLimitError,
    ResourceMonitor,
    ensure_valid_content,
    validate_file_content,
    validate_page_number,
    validate_processing_environment,
)


def test_signature_may_follow_leading_garbage() -> None:
    assert validate_file_content(b"\x00" * 100 + b"%PDF-1.7\n") == (True, None)

    is_valid, error = validate_file_content(b"\x00" * 2000 + b"%PDF-1.7\n")
    assert not is_valid
    assert "signature" in error


def test_short_and_oversized_content_is_rejected() -> None:
    assert validate_file_content(b"%P")[0] is False

    is_valid, error = validate_file_content(b"%PDF" + b"0" * (1024 * 1024), max_size_mb=1)
    assert not is_valid
    assert error.startswith("File too large")

    with pytest.raises(DocumentOpenError):
        ensure_valid_content(b"hello world")


def test_page_numbers_are_one_based() -> None:
    validate_page_number(1, 1)
    with pytest.raises(IndexError):
        validate_page_number(0, 3)
    with pytest.raises(IndexError):
        validate_page_number(4, 3)


def test_environment_check_reports_low_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(validation.psutil, "virtual_memory", lambda: SimpleNamespace(available=10 * 1024 * 1024))

    is_valid, error = validate_processing_environment()
    assert not is_valid
    assert "Insufficient memory" in error


def test_resource_monitor_enforces_memory_limit() -> None:
    with ResourceMonitor("tiny limit", max_memory_mb=1) as monitor:
        with pytest.raises(MemoryLimitError):
            monitor.check_memory()

    with ResourceMonitor("default limit") as monitor:
        assert monitor.max_memory_mb == validation.VALIDATION_CONSTANTS["MAX_MEMORY_USAGE_MB"]


def test_endpoint_refuses_work_when_memory_is_low(monkeypatch: pytest.MonkeyPatch, blank_pdf: bytes) -> None:
    monkeypatch.setattr(endpoint_decorators, "validate_processing_environment", lambda: (False, "Insufficient memory"))

    response = TestClient(main.app).post(
        "/is-searchable", files={"file": ("doc.pdf", blank_pdf, "application/pdf")}
    )

    assert response.status_code == 503
    assert response.json()["detail"] == "Insufficient memory"
