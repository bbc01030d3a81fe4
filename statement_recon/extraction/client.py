"""Calls to the document extraction API through the credential pool."""

import time
from typing import Any, Callable, Optional

from openai import OpenAI

from statement_recon.config.settings import Settings
from statement_recon.extraction.credentials import CredentialPool
from statement_recon.utils.exceptions import ExtractionAPIError
from statement_recon.utils.logger import get_logger, mask_credential

SYSTEM_PROMPT = (
    "You extract structured data from bank statements. The input contains one or more "
    "documents, each wrapped in '----- DOCUMENT INDEX: n -----' and "
    "'----- END OF DOCUMENT n -----' markers. For EVERY document return one JSON object "
    "with these keys: document_index (the integer n), bank_name, company_name, "
    "account_number, currency (3-letter ISO code when possible), statement_period "
    "(formatted 'dd/mm/yyyy - dd/mm/yyyy'), and monthly_balances, a list of objects with "
    "month (1-12), year, opening_balance, closing_balance and statement_page. "
    "Use null for anything you cannot find; never invent values. "
    "Return ONLY a JSON array of these objects, no extra text."
)


class ExtractionClient:
    """Sends chunk text to an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        pool: CredentialPool,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize extraction client.

        Args:
            pool: Credential pool shared by all extraction workers.
            settings: Model, endpoint and retry configuration.
            client_factory: Builds an API client for a credential.
            sleep: Pause function used between attempts.
        """
        self.logger = get_logger(__name__)
        self.pool = pool
        self.settings = settings or Settings()
        self.client_factory = client_factory or self._default_client
        self._sleep = sleep

    def _default_client(self, credential: str) -> OpenAI:
        return OpenAI(
            api_key=credential,
            base_url=self.settings.extraction_base_url,
            timeout=self.settings.request_timeout_seconds,
            max_retries=0,
        )

    def extract(self, chunk_text: str) -> str:
        """Send one chunk and return the raw response text.

        Args:
            chunk_text: Delimited document blocks built by the chunker.

        Returns:
            Non-empty response text.

        Raises:
            ExtractionAPIError: If every attempt fails.
        """
        attempts = max(1, self.settings.max_retries)
        last_error: Optional[str] = None

        for attempt in range(1, attempts + 1):
            credential = self.pool.acquire()
            try:
                client = self.client_factory(credential)
                response = client.chat.completions.create(
                    model=self.settings.extraction_model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": chunk_text},
                    ],
                    temperature=self.settings.extraction_temperature,
                    max_tokens=self.settings.extraction_max_tokens,
                )
                content = response.choices[0].message.content if response.choices else None
                if not content or not content.strip():
                    raise ExtractionAPIError("Empty response from extraction API")

                self.pool.report_success(credential)
                self.logger.debug(
                    f"Extraction succeeded on attempt {attempt} with credential "
                    f"{mask_credential(credential)}"
                )
                return content

            except Exception as e:
                self.pool.report_failure(credential)
                last_error = f"{type(e).__name__}: {str(e)}".replace(
                    credential, mask_credential(credential)
                )
                self.logger.warning(
                    f"Extraction attempt {attempt}/{attempts} failed with credential "
                    f"{mask_credential(credential)}: {last_error}"
                )
                if attempt < attempts:
                    self._sleep(self.settings.get_retry_delay(attempt))

        raise ExtractionAPIError(f"Extraction failed after {attempts} attempts: {last_error}")
