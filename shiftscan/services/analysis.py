"""
Extraction orchestrator: OCR -> quality score -> deterministic parse -> tier chain.

Tiers are tried cheapest first and each returns an explicit TierOutcome:
- accepted: a validated extract, the pipeline stops
- retry:    this tier declined or failed recoverably, try the next one
- fatal:    stop and raise to the caller

Only the vision tier's failures and schema validation failures are fatal.
ConfigurationError is fatal wherever it shows up.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from shiftscan.config import Settings, settings as default_settings
from shiftscan.models.shift_report import ExtractionMethod, ShiftReportExtract, validate_extract
from shiftscan.services.completion import CompletionService, load_json_object, TEXT_TIER, VISION_TIER
from shiftscan.services.errors import (
    AcquisitionError,
    CompletionServiceError,
    ConfigurationError,
    ExtractionValidationError,
)
from shiftscan.services.ocr import OCRService, PDF_MIME_TYPE
from shiftscan.services.parser import ShiftReportParser
from shiftscan.services.prompts import TEXT_EXTRACTION_PROMPT, VISION_EXTRACTION_PROMPT, text_user_message
from shiftscan.utils.scoring import QualityScoreResult, Recommendation, score_ocr_output

logger = logging.getLogger(__name__)


class TierStatus(str, Enum):
    ACCEPTED = "accepted"
    RETRY = "retry"
    FATAL = "fatal"


@dataclass
class TierOutcome:
    """Result of one tier attempt."""
    status: TierStatus
    extract: Optional[ShiftReportExtract] = None
    reason: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def accepted(cls, extract: ShiftReportExtract) -> 'TierOutcome':
        return cls(TierStatus.ACCEPTED, extract=extract)

    @classmethod
    def retry(cls, reason: str, error: Optional[Exception] = None) -> 'TierOutcome':
        return cls(TierStatus.RETRY, reason=reason, error=error)

    @classmethod
    def fatal(cls, error: Exception) -> 'TierOutcome':
        return cls(TierStatus.FATAL, reason=str(error), error=error)


@dataclass
class TierContext:
    """Inputs shared by every tier of one pipeline run."""
    file_data: bytes
    mime_type: str
    ocr_text: str
    quality: QualityScoreResult
    parsed: ShiftReportExtract


@dataclass
class AnalysisResult:
    """What analyze() hands back to the caller."""
    extract: ShiftReportExtract
    method: str
    quality: QualityScoreResult
    ocr_text: str
    skipped_tiers: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def quality_score(self) -> int:
        return self.quality.score


class ShiftAnalysisService:
    """Runs the three-tier extraction pipeline for one uploaded document."""

    def __init__(
        self,
        ocr: Optional[OCRService] = None,
        completion: Optional[CompletionService] = None,
        parser: Optional[ShiftReportParser] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.ocr = ocr or OCRService(self.config)
        self.completion = completion or CompletionService(self.config)
        self.parser = parser or ShiftReportParser()

    @property
    def tiers(self) -> List[Callable[[TierContext], TierOutcome]]:
        return [self._deterministic_tier, self._text_tier, self._vision_tier]

    def analyze(self, file_data: bytes, mime_type: str) -> AnalysisResult:
        """
        Extract a validated ShiftReportExtract from an uploaded file.

        Args:
            file_data: Raw file bytes (image or PDF)
            mime_type: MIME type of file_data

        Returns:
            AnalysisResult with the extract, the tier that produced it and
            the quality score of the OCR text

        Raises:
            ExtractionValidationError: Winning candidate failed the schema
            CompletionServiceError: Vision tier failed
            ConfigurationError: A completion tier was needed but no API key is set
            AcquisitionError: PDF could not be rendered for the vision tier
        """
        ocr_text = self._acquire_text(file_data, mime_type)

        quality = score_ocr_output(ocr_text)
        logger.info("OCR quality scored", extra={
            "score": quality.score,
            "recommendation": quality.recommendation.value,
            **quality.analysis(),
        })

        # Always parse: cheap, and reused when the score recommends acceptance
        parsed = self.parser.parse(ocr_text)

        context = TierContext(
            file_data=file_data,
            mime_type=mime_type,
            ocr_text=ocr_text,
            quality=quality,
            parsed=parsed,
        )

        skipped: List[Dict[str, Any]] = []
        for tier in self.tiers:
            outcome = tier(context)

            if outcome.status == TierStatus.ACCEPTED:
                extract = outcome.extract
                logger.info("Extraction tier accepted", extra={
                    "method": extract.extraction_method,
                    "extraction_confidence": extract.extraction_confidence,
                    "quality_score": quality.score,
                })
                return AnalysisResult(
                    extract=extract,
                    method=extract.extraction_method,
                    quality=quality,
                    ocr_text=ocr_text,
                    skipped_tiers=skipped,
                )

            if outcome.status == TierStatus.FATAL:
                logger.error("Extraction failed", extra={
                    "tier": tier.__name__,
                    "error": outcome.reason,
                }, exc_info=outcome.error)
                raise outcome.error

            skipped.append({"tier": tier.__name__.strip('_'), "reason": outcome.reason})
            logger.info("Extraction tier skipped", extra={
                "tier": tier.__name__,
                "reason": outcome.reason,
            })

        # The vision tier never returns retry
        raise CompletionServiceError("No extraction tier produced a result", tier=VISION_TIER)

    def _acquire_text(self, file_data: bytes, mime_type: str) -> str:
        """OCR the file; failures degrade to empty text."""
        try:
            text = self.ocr.extract_text(file_data, mime_type)
        except AcquisitionError as e:
            logger.warning("OCR failed, continuing with empty text", extra={
                "mime_type": mime_type,
                "error": str(e),
            })
            return ""

        logger.info("OCR complete", extra={"mime_type": mime_type, "text_length": len(text)})
        return text

    def _deterministic_tier(self, context: TierContext) -> TierOutcome:
        if context.quality.recommendation != Recommendation.ACCEPT_DETERMINISTIC:
            return TierOutcome.retry(f"quality recommends {context.quality.recommendation.value}")

        confidence = context.parsed.extraction_confidence
        if confidence < self.config.ACCEPT_MIN_PARSER_CONFIDENCE:
            return TierOutcome.retry(
                f"parser confidence {confidence} below {self.config.ACCEPT_MIN_PARSER_CONFIDENCE}"
            )

        return self._stamp_and_validate(
            context.parsed.model_dump(),
            raw_text=context.ocr_text,
            method=ExtractionMethod.DETERMINISTIC,
        )

    def _text_tier(self, context: TierContext) -> TierOutcome:
        if context.quality.recommendation != Recommendation.NORMALIZE_TEXT:
            return TierOutcome.retry(f"quality recommends {context.quality.recommendation.value}")

        if len(context.ocr_text) <= self.config.TEXT_TIER_MIN_LENGTH:
            return TierOutcome.retry(f"OCR text too short ({len(context.ocr_text)} chars)")

        try:
            content = self.completion.complete_text(
                TEXT_EXTRACTION_PROMPT,
                text_user_message(context.ocr_text),
            )
            data = load_json_object(content, tier=TEXT_TIER)
        except ConfigurationError as e:
            return TierOutcome.fatal(e)
        except CompletionServiceError as e:
            logger.warning("Text tier failed, falling through to vision", extra={"error": str(e)})
            return TierOutcome.retry("text completion failed", error=e)

        return self._stamp_and_validate(data, raw_text=context.ocr_text, method=ExtractionMethod.AI_TEXT)

    def _vision_tier(self, context: TierContext) -> TierOutcome:
        try:
            image_data, image_mime = self._vision_image(context)
            content = self.completion.complete_vision(VISION_EXTRACTION_PROMPT, image_data, image_mime)
            data = load_json_object(content, tier=VISION_TIER)
        except (ConfigurationError, CompletionServiceError, AcquisitionError) as e:
            return TierOutcome.fatal(e)

        # OCR text when there was any, else the model's own transcription
        transcription = data.get('raw_text')
        raw_text = context.ocr_text if context.ocr_text.strip() else (
            transcription if isinstance(transcription, str) else ""
        )

        return self._stamp_and_validate(data, raw_text=raw_text, method=ExtractionMethod.AI_VISION)

    def _vision_image(self, context: TierContext):
        if context.mime_type == PDF_MIME_TYPE:
            return self.ocr.render_pdf_first_page(context.file_data), 'image/png'
        return context.file_data, context.mime_type

    @staticmethod
    def _stamp_and_validate(data: Dict[str, Any], raw_text: str, method: ExtractionMethod) -> TierOutcome:
        candidate = dict(data)
        candidate['raw_text'] = raw_text
        candidate['extraction_method'] = method.value
        # Overall confidence is always recomputed by the model
        candidate.pop('extraction_confidence', None)

        try:
            return TierOutcome.accepted(validate_extract(candidate))
        except ExtractionValidationError as e:
            return TierOutcome.fatal(e)
