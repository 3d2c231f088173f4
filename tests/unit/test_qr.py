"""
Unit tests for QR payload interpretation.
"""

import json

import pytest

from thesisvault.access.qr import PayloadKind, QRPayloadInterpreter, classify
from thesisvault.errors import AmbiguousMatchError, InvalidInputError, NotFoundError


STORAGE_LINK = "https://files.example.edu/storage/v1/object/public/thesis_files/thesis-pdfs/ML_Healthcare_2023.pdf"


class TestClassify:
    """Tests for payload shape detection."""

    def test_json_payload(self):
        payload = classify('{"thesis_id": 42, "title": "ML"}')
        assert payload.kind == PayloadKind.JSON
        assert payload.value == 42

    def test_borrow_payload_is_json(self):
        payload = classify('{"thesis_id":42,"user_id":7}')
        assert payload.kind == PayloadKind.JSON

    def test_storage_link(self):
        payload = classify(STORAGE_LINK)
        assert payload.kind == PayloadKind.FILE_URL
        assert payload.value == STORAGE_LINK

    def test_storage_link_with_query_and_upper_case(self):
        payload = classify(STORAGE_LINK.replace(".pdf", ".PDF") + "?token=abc")
        assert payload.kind == PayloadKind.FILE_URL

    def test_numeric(self):
        payload = classify(" 108 ")
        assert payload.kind == PayloadKind.NUMERIC
        assert payload.value == 108

    @pytest.mark.parametrize("raw", ["+5", "1_000", "-5", "\u0661\u0662", "4 2", "0x2a"])
    def test_only_plain_digits_are_numeric(self, raw):
        with pytest.raises(InvalidInputError):
            classify(raw)

    def test_json_without_thesis_id_is_not_json_kind(self):
        with pytest.raises(InvalidInputError):
            classify('{"title": "ML"}')

    def test_non_storage_pdf_link_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            classify("https://example.com/papers/ML_Healthcare_2023.pdf")
        assert exc_info.value.message == "QR code does not contain valid thesis information"

    def test_storage_link_not_pdf_rejected(self):
        with pytest.raises(InvalidInputError):
            classify("https://files.example.edu/storage/v1/object/public/thesis_files/cover.png")

    def test_empty(self):
        with pytest.raises(InvalidInputError):
            classify("   ")

    def test_custom_markers(self):
        payload = classify("https://cdn.example.edu/files/x.pdf", storage_markers=("/files/",))
        assert payload.kind == PayloadKind.FILE_URL

    def test_json_number_literal_is_numeric(self):
        """A JSON scalar is not an object, so the numeric rule applies."""
        payload = classify(json.dumps(42))
        assert payload.kind == PayloadKind.NUMERIC


class TestQRPayloadInterpreter:
    """Tests for resolving payloads against the catalog."""

    @pytest.fixture
    def interpreter(self, container, seeded):
        return QRPayloadInterpreter(container.thesis_repository)

    def test_json_resolves(self, interpreter):
        thesis = interpreter.interpret('{"thesis_id": 42}')
        assert thesis.thesis_id == 42
        assert thesis.title == "Machine Learning in Healthcare"

    def test_json_string_id_resolves(self, interpreter):
        assert interpreter.interpret('{"thesis_id": "108"}').thesis_id == 108

    def test_numeric_resolves(self, interpreter):
        assert interpreter.interpret("108").thesis_id == 108

    def test_storage_link_resolves_by_file_name(self, interpreter):
        thesis = interpreter.interpret(STORAGE_LINK)
        assert thesis.thesis_id == 42

    def test_file_name_match_is_case_insensitive(self, interpreter):
        link = STORAGE_LINK.replace("ML_Healthcare_2023", "ml_healthcare_2023")
        assert interpreter.interpret(link).thesis_id == 42

    def test_unknown_id_is_not_found(self, interpreter):
        with pytest.raises(NotFoundError):
            interpreter.interpret('{"thesis_id": 999}')

    def test_unknown_file_is_not_found(self, interpreter):
        with pytest.raises(NotFoundError):
            interpreter.interpret(STORAGE_LINK.replace("ML_Healthcare_2023", "Nope"))

    def test_ambiguous_file_name(self, interpreter):
        """Two theses store a 'report.pdf'; the link must not pick one."""
        link = "https://files.example.edu/storage/v1/object/public/thesis_files/report.pdf"
        with pytest.raises(AmbiguousMatchError):
            interpreter.interpret(link)

    def test_malformed_id_is_invalid_input(self, interpreter):
        with pytest.raises(InvalidInputError):
            interpreter.interpret('{"thesis_id": "abc"}')

    def test_negative_numeric_is_invalid_input(self, interpreter):
        with pytest.raises(InvalidInputError):
            interpreter.interpret("-5")

    def test_like_wildcards_are_literal(self, container, seeded):
        """A file name containing % must not match everything."""
        interpreter = QRPayloadInterpreter(container.thesis_repository)
        with pytest.raises(NotFoundError):
            interpreter.interpret("https://files.example.edu/storage/v1/x/%.pdf")

    def test_storage_host_link_with_token(self, interpreter):
        link = "https://storage.example/bucket/thesis-pdfs/ML_Healthcare_2023.pdf?token=abc"
        assert interpreter.interpret(link).thesis_id == 42

    def test_borrow_code_resolves_to_thesis(self, interpreter):
        assert interpreter.interpret('{"thesis_id":42,"user_id":7}').thesis_id == 42

    def test_free_text_is_invalid_input(self, interpreter):
        with pytest.raises(InvalidInputError):
            interpreter.interpret("not-a-thesis")
