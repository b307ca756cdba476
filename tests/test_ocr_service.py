"""
Tests for the OCR service (Tesseract and poppler calls are patched out).
"""

import io
import json

import pytest
import pytesseract
from PIL import Image
from pdf2image.exceptions import PDFSyntaxError

from conftest import FakeCompletion
from shiftscan.config import Settings
from shiftscan.services.analysis import ShiftAnalysisService
from shiftscan.services import ocr as ocr_module
from shiftscan.services.errors import AcquisitionError
from shiftscan.services.ocr import OCRService, TESSERACT_CONFIG


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (20, 10), "white").save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def service():
    return OCRService(Settings(TESSERACT_CMD="tesseract"))


class TestImageOCR:
    def test_preprocessed_image_is_sent_to_tesseract(self, service, monkeypatch):
        calls = []

        def fake_image_to_string(image, config=None):
            calls.append((image.mode, config))
            return "  GROSS SALES 1.00\n"

        monkeypatch.setattr(ocr_module.pytesseract, 'image_to_string', fake_image_to_string)

        assert service.extract_text(_png_bytes(), 'image/png') == "GROSS SALES 1.00"
        assert calls == [('L', TESSERACT_CONFIG)]

    def test_undecodable_image(self, service):
        with pytest.raises(AcquisitionError):
            service.extract_text(b"not an image", 'image/jpeg')

    def test_oversized_image(self, service, monkeypatch):
        monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 10)

        with pytest.raises(AcquisitionError):
            service.extract_text(_png_bytes(), 'image/png')

    def test_oversized_image_degrades_to_vision(self, service, monkeypatch):
        monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 10)
        completion = FakeCompletion(vision_response=json.dumps({'fuel': {'fuel_sales': 10, 'confidence': 0.5}}))
        analysis = ShiftAnalysisService(
            ocr=service, completion=completion, config=Settings(OPENAI_API_KEY="test-key")
        )

        result = analysis.analyze(_png_bytes(), 'image/png')

        assert result.method == 'ai_vision'
        assert result.ocr_text == ""
        assert len(completion.vision_calls) == 1

    def test_tesseract_missing(self, service, monkeypatch):
        def missing(image, config=None):
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(ocr_module.pytesseract, 'image_to_string', missing)

        with pytest.raises(AcquisitionError):
            service.extract_text(_png_bytes(), 'image/png')


class TestPDF:
    def test_pdf_text_is_empty(self, service):
        assert service.extract_text(b"%PDF-1.4", 'application/pdf') == ""

    def test_first_page_rendered_as_png(self, service, monkeypatch):
        rendered = {}

        def fake_convert(data, **kwargs):
            rendered.update(kwargs)
            return [Image.new('RGB', (8, 8), 'white'), Image.new('RGB', (8, 8), 'black')]

        monkeypatch.setattr(ocr_module, 'convert_from_bytes', fake_convert)

        png = service.render_pdf_first_page(b"%PDF-1.4")

        assert png.startswith(b"\x89PNG")
        assert rendered['first_page'] == 1 and rendered['last_page'] == 1

    def test_unreadable_pdf(self, service, monkeypatch):
        def broken(data, **kwargs):
            raise PDFSyntaxError("bad xref")

        monkeypatch.setattr(ocr_module, 'convert_from_bytes', broken)

        with pytest.raises(AcquisitionError):
            service.render_pdf_first_page(b"garbage")

    def test_pdf_without_pages(self, service, monkeypatch):
        monkeypatch.setattr(ocr_module, 'convert_from_bytes', lambda data, **kwargs: [])

        with pytest.raises(AcquisitionError):
            service.render_pdf_first_page(b"%PDF-1.4")
