"""
Tests for the ShiftReportExtract schema and its confidence invariant.
"""

import pytest

from shiftscan.models.shift_report import (
    DEFAULT_SECTION_CONFIDENCE,
    NO_SECTION_CONFIDENCE,
    ShiftReportExtract,
    validate_extract,
)
from shiftscan.services.errors import ExtractionValidationError


def _extract(**sections):
    return validate_extract({'raw_text': 'text', 'extraction_method': 'ai_text', **sections})


class TestConfidenceInvariant:
    """extraction_confidence is always the mean of the present sections."""

    def test_mean_of_sections(self):
        extract = _extract(
            balances={'cash_variance': -1.5, 'confidence': 0.8},
            fuel={'fuel_sales': 10, 'confidence': 0.4},
        )
        assert extract.extraction_confidence == pytest.approx(0.6)

    def test_line_lists_contribute_their_mean(self):
        extract = _extract(
            balances={'confidence': 0.8},
            fuel={'confidence': 0.4},
            department_sales=[
                {'department_name': 'TOBACCO', 'amount': 10, 'confidence': 0.6},
                {'department_name': 'SNACKS', 'amount': 5, 'confidence': 0.2},
            ],
        )
        # (0.8 + 0.4 + mean(0.6, 0.2)) / 3
        assert extract.extraction_confidence == pytest.approx(0.5333, abs=1e-4)

    @pytest.mark.parametrize("confidences", [
        [0.1],
        [0.9, 0.3],
        [0.7, 0.7, 0.4, 0.3],
        [1.0, 0.0, 0.5, 0.25, 0.75, 0.6, 0.2],
    ])
    def test_property_over_known_confidences(self, confidences):
        names = ['store_metadata', 'balances', 'sales_summary', 'fuel', 'inside_sales', 'tenders', 'safe_activity']
        sections = {name: {'confidence': c} for name, c in zip(names, confidences)}

        extract = _extract(**sections)

        assert extract.extraction_confidence == pytest.approx(sum(confidences) / len(confidences), abs=1e-4)

    def test_missing_section_confidence_defaults(self):
        extract = _extract(fuel={'fuel_sales': 10})
        assert extract.extraction_confidence == DEFAULT_SECTION_CONFIDENCE

    def test_no_sections_is_floor(self):
        assert _extract().extraction_confidence == NO_SECTION_CONFIDENCE

    def test_producer_confidence_is_ignored(self):
        extract = _extract(extraction_confidence=0.99, fuel={'confidence': 0.3})
        assert extract.extraction_confidence == pytest.approx(0.3)

    def test_empty_lists_do_not_count(self):
        extract = _extract(fuel={'confidence': 0.3}, item_sales=[], department_sales=None)
        assert extract.extraction_confidence == pytest.approx(0.3)


class TestValidation:
    """validate_extract() accepts the contract and rejects everything else."""

    def test_missing_raw_text(self):
        with pytest.raises(ExtractionValidationError) as exc_info:
            validate_extract({'extraction_method': 'deterministic'})
        assert exc_info.value.errors
        assert exc_info.value.errors[0]['loc'] == ('raw_text',)

    def test_unknown_method(self):
        with pytest.raises(ExtractionValidationError):
            validate_extract({'raw_text': '', 'extraction_method': 'magic'})

    def test_out_of_range_confidence(self):
        with pytest.raises(ExtractionValidationError):
            _extract(balances={'confidence': 1.5})

    def test_wrong_type(self):
        with pytest.raises(ExtractionValidationError):
            _extract(sales_summary={'gross_sales': 'a lot'})

    def test_department_requires_amount(self):
        with pytest.raises(ExtractionValidationError):
            _extract(department_sales=[{'department_name': 'TOBACCO'}])

    def test_not_an_object(self):
        with pytest.raises(ExtractionValidationError):
            validate_extract(['raw_text'])

    def test_unknown_keys_are_dropped(self):
        extract = _extract(additional_data={'lottery': 5}, fuel={'fuel_sales': 10, 'octane': 87})
        assert not hasattr(extract, 'additional_data')
        assert 'octane' not in extract.fuel.model_dump()

    def test_nulls_are_accepted(self):
        extract = _extract(
            store_metadata=None,
            department_sales=None,
            item_sales=None,
            exceptions=[{'type': 'void', 'count': None, 'amount': None}],
        )
        assert extract.store_metadata is None
        assert extract.department_sales == []
        assert extract.exceptions[0].count == 0

    def test_numeric_ids_become_text(self):
        extract = _extract(store_metadata={'register_id': 2, 'operator_id': 1047})
        assert extract.store_metadata.register_id == '2'
        assert extract.store_metadata.operator_id == '1047'

    def test_method_is_plain_string(self):
        assert _extract().extraction_method == 'ai_text'

    def test_direct_model_validation_recomputes_too(self):
        extract = ShiftReportExtract.model_validate({
            'raw_text': '',
            'extraction_method': 'deterministic',
            'tenders': {'confidence': 0.3},
        })
        assert extract.extraction_confidence == pytest.approx(0.3)
