"""
OCR service for extracting text from shift report photos.
"""

import io
import logging

import pytesseract
from PIL import Image, ImageEnhance, UnidentifiedImageError
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError, PDFInfoNotInstalledError

from shiftscan.config import Settings, settings as default_settings
from shiftscan.services.errors import AcquisitionError

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = 'application/pdf'

# Uniform block of text: register printouts are a single column
TESSERACT_CONFIG = r'--oem 3 --psm 6'

PDF_RENDER_DPI = 200


class OCRService:
    """Service for extracting text from shift report files."""

    def __init__(self, config: Settings = None):
        """Initialize OCR service with Tesseract configuration."""
        self.config = config or default_settings
        pytesseract.pytesseract.tesseract_cmd = self.config.TESSERACT_CMD

    def extract_text_from_image(self, image_data: bytes) -> str:
        """
        Extract text from an image using Tesseract OCR.

        Args:
            image_data: Raw image bytes (JPEG, PNG, etc.)

        Returns:
            Extracted text

        Raises:
            AcquisitionError: Image could not be decoded or Tesseract failed
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image = self._preprocess_image(image)
            text = pytesseract.image_to_string(image, config=TESSERACT_CONFIG)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise AcquisitionError(f"Could not read image: {e}") from e
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError) as e:
            raise AcquisitionError(f"Tesseract failed: {e}") from e

        return text.strip()

    def extract_text_from_pdf(self, pdf_data: bytes) -> str:
        """
        PDF text extraction.

        Not implemented: PDFs always yield empty text, which scores as
        use_vision and sends the rendered first page to the vision tier.
        """
        logger.debug("PDF text extraction not implemented, returning empty text", extra={
            "size_bytes": len(pdf_data)
        })
        return ""

    def extract_text(self, file_data: bytes, mime_type: str) -> str:
        """
        Extract text from a file (dispatches on MIME type).

        Args:
            file_data: Raw file bytes
            mime_type: MIME type of the file

        Returns:
            Extracted text ("" for PDFs)

        Raises:
            AcquisitionError: OCR failed on an image
        """
        if mime_type == PDF_MIME_TYPE:
            return self.extract_text_from_pdf(file_data)
        return self.extract_text_from_image(file_data)

    def render_pdf_first_page(self, pdf_data: bytes) -> bytes:
        """
        Render page 1 of a PDF to PNG bytes for the vision tier.

        Raises:
            AcquisitionError: PDF could not be rendered (bad file or poppler missing)
        """
        try:
            pages = convert_from_bytes(pdf_data, dpi=PDF_RENDER_DPI, first_page=1, last_page=1)
        except (PDFPageCountError, PDFSyntaxError, PDFInfoNotInstalledError) as e:
            raise AcquisitionError(f"Could not render PDF: {e}") from e

        if not pages:
            raise AcquisitionError("PDF has no pages")

        buffer = io.BytesIO()
        pages[0].save(buffer, format='PNG')
        return buffer.getvalue()

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """
        Preprocess image to improve OCR accuracy.

        Thermal register paper fades, so contrast is boosted after grayscale.
        """
        if image.mode != 'RGB':
            image = image.convert('RGB')

        image = image.convert('L')

        enhancer = ImageEnhance.Contrast(image)
        return enhancer.enhance(2.0)
