"""Tests for document extraction. The model is always a fake."""

import asyncio
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from src.config import AppSettings
from src.models.extraction import DocumentKind
from src.models.finance import TransactionKind
from src.services.ocr import (
    ExtractionFailedError,
    GeminiOCRService,
    NoTransactionsFoundError,
    OCRNotConfiguredError,
    UnsupportedDocumentError,
    clean_row,
    parse_extraction,
    strip_code_fences,
)

TODAY = date(2024, 5, 10)
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

FATURA_ANSWER = """```json
{"type": "fatura", "transactions": [
  {"descricao": "IFOOD", "valor": 45.9, "data": "2024-04-12", "tipo": "SAIDA", "categoria": "Alimentação"},
  {"descricao": "ESTORNO NETFLIX", "valor": "39,90", "data": "2024-04-15T00:00:00", "tipo": "ENTRADA"},
  {"descricao": "", "valor": null}
]}
```"""


class FakeModel:
    """Stands in for a GenerativeModel."""

    def __init__(self, text):
        self.text = text
        self.calls = []

    async def generate_content_async(self, parts):
        self.calls.append(parts)
        return SimpleNamespace(text=self.text)


def make_service(text="", **app):
    return GeminiOCRService(app_settings=AppSettings(**app), model=FakeModel(text))


class TestParsing:
    """Tests for turning the model's answer into rows."""

    @pytest.mark.parametrize(
        "text",
        ['```json\n{"a": 1}\n```', '```\n{"a": 1}```', '  {"a": 1}  '],
    )
    def test_strip_code_fences(self, text):
        """Test fenced and bare JSON come out the same."""
        assert strip_code_fences(text) == '{"a": 1}'

    def test_clean_row_defaults(self):
        """Test missing fields fall back to defaults."""
        row = clean_row({"valor": "-12.50"}, TODAY)

        assert row.description == "Transação importada"
        assert row.amount == Decimal("12.50")
        assert row.date == TODAY
        assert row.kind == TransactionKind.EXPENSE
        assert row.category == "Outros"

    def test_clean_row_income(self):
        """Test ENTRADA rows are income."""
        row = clean_row({"descricao": "Pix", "valor": 100, "tipo": "ENTRADA"}, TODAY)
        assert row.kind == TransactionKind.INCOME

    @pytest.mark.parametrize(
        "row",
        [
            {},
            {"descricao": "", "valor": 0},
            {"descricao": "Loja", "valor": "abc"},
            {"descricao": "Loja", "valor": 10, "data": "ontem"},
            "not a row",
        ],
    )
    def test_clean_row_rejects(self, row):
        """Test unreadable rows are dropped."""
        assert clean_row(row, TODAY) is None

    def test_parse_extraction(self):
        """Test a fenced fatura answer with one empty row."""
        result = parse_extraction(FATURA_ANSWER, DocumentKind.BOLETO, TODAY)

        assert result.kind == DocumentKind.FATURA
        assert result.count == 2
        ifood, refund = result.transactions
        assert ifood.amount == Decimal("45.9")
        assert ifood.category == "Alimentação"
        assert refund.amount == Decimal("39.90")
        assert refund.date == date(2024, 4, 15)
        assert refund.kind == TransactionKind.INCOME

    def test_parse_unknown_type_keeps_requested_kind(self):
        """Test the requested kind is used when the answer names none."""
        text = '{"transactions": [{"descricao": "Condomínio", "valor": 800}]}'
        result = parse_extraction(text, DocumentKind.BOLETO, TODAY)
        assert result.kind == DocumentKind.BOLETO

    def test_parse_invalid_json(self):
        """Test prose answers are an extraction failure."""
        with pytest.raises(ExtractionFailedError, match="interpretar"):
            parse_extraction("Não consegui ler o documento.", DocumentKind.BOLETO, TODAY)

    def test_parse_wrong_shape(self):
        """Test JSON without a transaction list is an extraction failure."""
        with pytest.raises(ExtractionFailedError, match="Formato de resposta inválido"):
            parse_extraction('{"transactions": {}}', DocumentKind.BOLETO, TODAY)

    def test_parse_nothing_found(self):
        """Test an answer whose rows are all empty."""
        with pytest.raises(NoTransactionsFoundError) as exc:
            parse_extraction('{"transactions": [{}]}', DocumentKind.FATURA, TODAY)
        assert exc.value.status_code == 400


class TestUploadValidation:
    """Tests for the checks made before calling the model."""

    def test_unsupported_type(self):
        """Test non-image types are rejected."""
        with pytest.raises(UnsupportedDocumentError, match="Tipo de arquivo não suportado"):
            make_service().validate_upload(b"data", "text/plain")

    def test_too_large(self):
        """Test the size limit comes from settings."""
        service = make_service(max_upload_size_mb=1)
        with pytest.raises(UnsupportedDocumentError, match="Tamanho máximo: 1MB"):
            service.validate_upload(b"\x00" * (1024 * 1024 + 1), "image/png")

    def test_empty(self):
        """Test empty uploads are rejected."""
        with pytest.raises(UnsupportedDocumentError, match="vazio"):
            make_service().validate_upload(b"", "image/jpeg")

    def test_pdf_hint(self):
        """Test PDFs are accepted as a type but answered with a conversion hint."""
        with pytest.raises(UnsupportedDocumentError, match="converta o PDF"):
            make_service().validate_upload(b"%PDF-1.4", "application/pdf")

    def test_mime_type_is_case_insensitive(self):
        """Test upper-case MIME types are accepted."""
        make_service().validate_upload(PNG, "IMAGE/PNG")


class TestExtract:
    """Tests for GeminiOCRService.extract."""

    def test_not_configured(self):
        """Test a service without key nor model refuses to extract."""
        service = GeminiOCRService(app_settings=AppSettings())

        assert service.is_configured is False
        with pytest.raises(OCRNotConfiguredError) as exc:
            asyncio.run(service.extract(PNG, "image/png"))
        assert exc.value.status_code == 503

    def test_extract_fatura(self):
        """Test the fatura prompt is sent with the image."""
        service = make_service(FATURA_ANSWER)

        result = asyncio.run(
            service.extract(PNG, "image/png", DocumentKind.FATURA, "fatura.png", today=TODAY)
        )

        assert result.count == 2
        [parts] = service._model.calls
        assert parts[0] == {"mime_type": "image/png", "data": PNG}
        assert "fatura de cartão de crédito" in parts[1]

    def test_extract_boleto_defaults_date(self):
        """Test a boleto without due date uses today."""
        service = make_service('{"type": "boleto", "transactions": [{"descricao": "Enel", "valor": 180.35}]}')

        result = asyncio.run(service.extract(PNG, "image/jpeg", today=TODAY))

        assert result.kind == DocumentKind.BOLETO
        assert result.transactions[0].date == TODAY
        assert "boleto bancário" in service._model.calls[0][1]

    def test_rejected_upload_never_calls_model(self):
        """Test validation runs before the API call."""
        service = make_service(FATURA_ANSWER)

        with pytest.raises(UnsupportedDocumentError):
            asyncio.run(service.extract(b"", "image/png"))
        assert service._model.calls == []

    def test_empty_answer(self):
        """Test an empty model answer is an extraction failure."""
        with pytest.raises(ExtractionFailedError, match="não retornou conteúdo"):
            asyncio.run(make_service("").extract(PNG, "image/png", today=TODAY))
