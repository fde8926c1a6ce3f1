"""
OCR Service using Gemini

DESIGN DECISION: We use a vision LLM instead of a template OCR because:
1. Boletos and card statements vary by bank with no common layout
2. The model returns STRUCTURED data (JSON), not just raw text
3. It can suggest a category for each purchase in the same pass

This service handles:
1. Upload validation (type, size, emptiness) before any API call
2. Sending the image to Gemini with a document-specific prompt
3. Parsing the JSON answer, tolerating markdown code fences
4. Cleaning rows into ExtractedTransaction models

CRITICAL: PDFs are rejected with a hint to convert them to an image. The
extraction contract is images only.
"""

import json
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import AppSettings, GeminiSettings, get_settings
from src.models.extraction import (
    DEFAULT_CATEGORY,
    DEFAULT_DESCRIPTION,
    DocumentKind,
    ExtractedTransaction,
    ExtractionResult,
)
from src.models.finance import TransactionKind

logger = structlog.get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"

_FENCE = re.compile(r"```(?:json)?\n?")


class OCRError(Exception):
    """Base exception for OCR errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OCRNotConfiguredError(OCRError):
    """No Gemini API key is configured."""

    status_code = 503

    def __init__(self):
        super().__init__("Serviço de OCR não configurado. Configure GEMINI_API_KEY.")


class UnsupportedDocumentError(OCRError):
    """The upload cannot be sent for extraction."""

    status_code = 400


class NoTransactionsFoundError(OCRError):
    """The model answered but found nothing to import."""

    status_code = 400

    def __init__(self):
        super().__init__(
            "Nenhuma transação foi encontrada no documento. Verifique se o "
            "arquivo contém uma fatura ou boleto válido."
        )


class ExtractionFailedError(OCRError):
    """Failed to extract data from document."""
    pass


FATURA_PROMPT = """Analise esta fatura de cartão de crédito de um banco brasileiro.

Extraia TODAS as transações listadas na fatura. Para cada transação, extraia:
- descricao: nome do estabelecimento ou descrição da compra
- valor: valor em reais (apenas número, sem R$)
- data: data da transação no formato YYYY-MM-DD
- tipo: sempre "SAIDA" para despesas de cartão
- categoria: tente identificar a categoria (Alimentação, Transporte, Compras, Assinaturas, Lazer, Saúde, Educação, Outros)

Retorne APENAS um JSON válido no formato:
{"type": "fatura", "transactions": [{"descricao": "...", "valor": 99.90, "data": "2024-01-15", "tipo": "SAIDA", "categoria": "..."}]}

Se não conseguir identificar a data exata, use a data de vencimento da fatura.
NÃO inclua o valor total da fatura, apenas as transações individuais."""

BOLETO_PROMPT = """Analise este boleto bancário brasileiro.

Extraia as seguintes informações:
- descricao: nome do beneficiário/cedente (empresa que vai receber o pagamento)
- valor: valor do boleto em reais (apenas número, sem R$)
- data: data de vencimento no formato YYYY-MM-DD
- tipo: sempre "SAIDA"
- categoria: tente identificar a categoria baseado no beneficiário (Moradia, Saúde, Educação, Assinaturas, Outros)

Retorne APENAS um JSON válido no formato:
{"type": "boleto", "transactions": [{"descricao": "...", "valor": 99.90, "data": "2024-01-15", "tipo": "SAIDA", "categoria": "..."}]}"""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return _FENCE.sub("", text).strip()


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        return Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        return None


def clean_row(row: Any, today: date) -> Optional[ExtractedTransaction]:
    """
    Turn one raw row into an ExtractedTransaction, filling defaults.

    Returns None for rows with neither description nor amount, and for rows
    whose amount or date cannot be read.
    """
    if not isinstance(row, dict) or not (row.get("descricao") or row.get("valor")):
        return None

    amount = _parse_amount(row.get("valor"))
    if amount is None:
        return None

    kind = TransactionKind.INCOME if row.get("tipo") == "ENTRADA" else TransactionKind.EXPENSE
    raw_date = row.get("data")

    try:
        return ExtractedTransaction(
            description=row.get("descricao") or DEFAULT_DESCRIPTION,
            amount=abs(amount),
            date=str(raw_date)[:10] if raw_date else today,
            kind=kind,
            category=row.get("categoria") or DEFAULT_CATEGORY,
        )
    except ValidationError:
        return None


def parse_extraction(text: str, kind: DocumentKind, today: date) -> ExtractionResult:
    """
    Parse the model's answer into an ExtractionResult.

    Raises:
        ExtractionFailedError: If the answer is not the expected JSON
        NoTransactionsFoundError: If no row survives cleaning
    """
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError:
        raise ExtractionFailedError(
            "Erro ao interpretar os dados extraídos. Tente uma imagem mais "
            "clara ou outro formato."
        )

    if not isinstance(data, dict) or not isinstance(data.get("transactions"), list):
        raise ExtractionFailedError(
            "Formato de resposta inválido da API. O documento pode não conter "
            "transações reconhecíveis."
        )

    transactions = [
        t for t in (clean_row(row, today) for row in data["transactions"])
        if t is not None
    ]
    if not transactions:
        raise NoTransactionsFoundError()

    try:
        detected = DocumentKind(data.get("type"))
    except ValueError:
        detected = kind

    return ExtractionResult(kind=detected, transactions=transactions)


class GeminiOCRService:
    """
    OCR service using Gemini for structured transaction extraction.

    IMPORTANT BOUNDARIES:
    1. This service ONLY extracts data - it never writes to storage
    2. Uploads are validated before any API call is made
    3. Extracted rows are suggestions; the importer decides what is stored
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
        model: Optional[Any] = None,
    ):
        """
        Args:
            settings: Gemini configuration. Without it (and without `model`)
                the service reports itself as not configured.
            app_settings: Upload limits
            model: A ready GenerativeModel-like object, mainly for tests
        """
        self._settings = settings
        self._app_settings = app_settings or get_settings().app
        self._model = model
        if self._model is None and settings is not None:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @property
    def is_configured(self) -> bool:
        return self._model is not None

    def validate_upload(self, content: bytes, mime_type: str) -> None:
        """
        Reject uploads that cannot be extracted.

        Raises:
            UnsupportedDocumentError: Wrong type, too large, empty or PDF
        """
        mime_type = (mime_type or "").lower()
        if mime_type not in self._app_settings.supported_types_list:
            raise UnsupportedDocumentError(
                "Tipo de arquivo não suportado. Use JPG, PNG, GIF, WebP ou PDF."
            )
        if len(content) > self._app_settings.max_upload_size_bytes:
            raise UnsupportedDocumentError(
                "Arquivo muito grande. Tamanho máximo: "
                f"{self._app_settings.max_upload_size_mb}MB"
            )
        if len(content) == 0:
            raise UnsupportedDocumentError("Arquivo está vazio ou corrompido")
        if mime_type == PDF_MIME_TYPE:
            raise UnsupportedDocumentError(
                "PDFs não são suportados diretamente. Por favor, converta o PDF "
                "para uma imagem (JPG ou PNG) antes de importar, ou tire uma "
                "captura de tela do PDF."
            )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, content: bytes, mime_type: str, prompt: str) -> str:
        response = await self._model.generate_content_async(
            [{"mime_type": mime_type, "data": content}, prompt]
        )
        return response.text

    async def extract(
        self,
        content: bytes,
        mime_type: str,
        kind: DocumentKind = DocumentKind.BOLETO,
        filename: str = "",
        today: Optional[date] = None,
    ) -> ExtractionResult:
        """
        Read the transactions in a document image.

        Args:
            content: Raw file bytes
            mime_type: Declared MIME type of the upload
            kind: Whether the document is a boleto or a fatura
            filename: Original filename, for logging only
            today: Date used for rows without one

        Raises:
            OCRNotConfiguredError: No API key configured
            UnsupportedDocumentError: Upload rejected before extraction
            ExtractionFailedError: The API call failed or its answer was unreadable
            NoTransactionsFoundError: Nothing to import in the document
        """
        if not self.is_configured:
            raise OCRNotConfiguredError()

        self.validate_upload(content, mime_type)
        logger.info(
            "ocr_upload_accepted",
            filename=filename,
            size=len(content),
            mime_type=mime_type,
            document_kind=kind.value,
        )

        prompt = FATURA_PROMPT if kind == DocumentKind.FATURA else BOLETO_PROMPT
        try:
            text = await self._generate(content, mime_type.lower(), prompt)
        except Exception as e:
            logger.error("ocr_api_failed", error=str(e), filename=filename)
            raise ExtractionFailedError(f"Erro ao processar documento: {e}")

        if not text:
            raise ExtractionFailedError(
                "A API não retornou conteúdo. Tente novamente ou use outro arquivo."
            )

        return parse_extraction(text, kind, today or date.today())
