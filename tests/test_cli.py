"""
Tests for the shiftscan-analyze command-line script.
"""

import pytest

from conftest import FakeCompletion, FakeOCR
from shiftscan import cli
from shiftscan.config import Settings
from shiftscan.services.analysis import ShiftAnalysisService
from shiftscan.services.errors import CompletionServiceError


@pytest.fixture
def report_file(tmp_path):
    path = tmp_path / "report.jpg"
    path.write_bytes(b"jpeg-bytes")
    return path


def _use_pipeline(monkeypatch, ocr, completion):
    config = Settings(OPENAI_API_KEY="test-key")
    monkeypatch.setattr(
        cli, 'ShiftAnalysisService',
        lambda: ShiftAnalysisService(ocr=ocr, completion=completion, config=config),
    )


class TestAnalyzeCLI:
    def test_prints_method_and_extract(self, monkeypatch, capsys, report_file, report_text):
        _use_pipeline(monkeypatch, FakeOCR(report_text), FakeCompletion())

        assert cli.main([str(report_file)]) == 0

        out = capsys.readouterr().out
        assert "QUALITY: " in out and "(accept_deterministic)" in out
        assert "  money_pattern_count: " in out
        assert "METHOD:  deterministic" in out
        assert '"gross_sales": "1245.67"' in out

    def test_missing_file(self, tmp_path):
        assert cli.main([str(tmp_path / "missing.jpg")]) == 1

    def test_save_requires_store(self, report_file):
        assert cli.main([str(report_file), '--save']) == 1

    def test_extraction_failure(self, monkeypatch, capsys, report_file):
        _use_pipeline(monkeypatch, FakeOCR(""), FakeCompletion(
            vision_response=CompletionServiceError("upstream timeout", tier="ai_vision")
        ))

        assert cli.main([str(report_file)]) == 2
        assert "CompletionServiceError" in capsys.readouterr().out
