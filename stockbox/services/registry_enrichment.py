"""Company registry enrichment for manufacturer and company imports.

Rows for these entities usually carry little more than a CNPJ (the Brazilian
company tax id). Before each row is created, the registry is queried and the
official names, contact details and address are merged into the payload,
taking precedence over what the user typed.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from stockbox.exceptions import ApiError, RateLimitedError, RowRejectedError
from stockbox.models.progress import ImportRowData
from stockbox.services.api_client import ApiClient, parse_retry_after
from stockbox.services.import_service.constants import CNPJ_LENGTH
from stockbox.services.import_service.converters import clean_digits
from stockbox.services.import_service.processor import ImportOptions, ImportProcessController

logger = logging.getLogger(__name__)

ENRICHABLE_ENTITIES = ("manufacturers", "companies")

DEFAULT_REGISTRY_URL = "https://brasilapi.com.br/api/cnpj/v1"

NAME_NOT_PROVIDED = "Name not provided"


class RegistryRecord(BaseModel):
    """A company as returned by the registry, keyed by its wire names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    cnpj: str | None = None
    legal_name: str | None = Field(None, alias="razao_social")
    trade_name: str | None = Field(None, alias="nome_fantasia")
    street_type: str | None = Field(None, alias="descricao_tipo_de_logradouro")
    street: str | None = Field(None, alias="logradouro")
    number: str | None = Field(None, alias="numero")
    complement: str | None = Field(None, alias="complemento")
    district: str | None = Field(None, alias="bairro")
    city: str | None = Field(None, alias="municipio")
    state: str | None = Field(None, alias="uf")
    postal_code: str | None = Field(None, alias="cep")
    email: str | None = None
    phone: str | None = Field(None, alias="ddd_telefone_1")
    phone_secondary: str | None = Field(None, alias="ddd_telefone_2")
    status_code: int | None = Field(None, alias="situacao_cadastral")
    status_description: str | None = Field(None, alias="descricao_situacao_cadastral")
    legal_nature: str | None = Field(None, alias="natureza_juridica")

    @property
    def is_active(self) -> bool:
        return self.status_description == "ATIVA" or self.status_code == 2

    @property
    def address_line(self) -> str | None:
        """Street type, street and number as one line, e.g. "RUA DAS FLORES, 120"."""
        if not self.street:
            return None
        line = f"{self.street_type or ''} {self.street}".strip()
        if self.number:
            line = f"{line}, {self.number}"
        return line


class CompanyRegistryClient:
    """Looks companies up by CNPJ in the public registry API."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def lookup(self, identifier: str) -> RegistryRecord | None:
        """Fetch the registry record for a CNPJ.

        Returns:
            The record, or None when the registry has no usable answer.

        Raises:
            RateLimitedError: The registry answered 429.
        """
        digits = clean_digits(identifier)
        try:
            response = await self._client.get(f"{self.base_url}/{digits}")
        except httpx.HTTPError as e:
            logger.warning("Registry lookup for %s failed: %s", digits, e)
            return None

        if response.status_code == 429:
            raise RateLimitedError(
                "Registry rate limit exceeded",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if response.is_error:
            logger.info("Registry returned %d for %s", response.status_code, digits)
            return None

        try:
            return RegistryRecord.model_validate(response.json())
        except ValueError as e:
            logger.warning("Unreadable registry response for %s: %s", digits, e)
            return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CompanyRegistryClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def build_entity_payload(
    record: RegistryRecord | None,
    row_data: dict[str, Any],
    entity_type: str,
    identifier_key: str = "cnpj",
) -> dict[str, Any]:
    """Merge a registry record with the user's row into a create payload.

    Registry values win over user values. The CNPJ is always sent, digits
    only. Keys whose value is None are dropped.

    Args:
        record: Lookup result, or None when enrichment was not possible.
        row_data: The row as entered in the grid.
        entity_type: "manufacturers" or "companies".
        identifier_key: Row key holding the CNPJ.

    Returns:
        Payload for the entity's create endpoint.
    """
    if entity_type not in ENRICHABLE_ENTITIES:
        raise ValueError(f"Registry enrichment does not support {entity_type!r}")

    r = record or RegistryRecord()

    def pick(registry_value: str | None, user_key: str) -> Any:
        return registry_value or row_data.get(user_key) or None

    name = r.legal_name or r.trade_name or row_data.get("tradeName") or row_data.get("name") or NAME_NOT_PROVIDED
    payload: dict[str, Any] = {
        "name": name,
        "legalName": pick(r.legal_name, "legalName"),
        "tradeName": pick(r.trade_name, "tradeName"),
        "cnpj": clean_digits(str(row_data.get(identifier_key) or "")),
        "email": pick(r.email, "email"),
        "phoneMain": pick(r.phone, "phoneMain"),
    }

    if entity_type == "manufacturers":
        payload.update(
            {
                "addressLine1": pick(r.address_line, "addressLine1"),
                "addressLine2": pick(r.complement, "addressLine2"),
                "city": pick(r.city, "city"),
                "state": pick(r.state, "state"),
                "postalCode": pick(r.postal_code, "postalCode"),
                "country": "Brasil",
            }
        )
    else:
        payload.update(
            {
                "legalNature": pick(r.legal_nature, "legalNature"),
                "status": "ACTIVE" if r.is_active else "INACTIVE",
            }
        )

    return {key: value for key, value in payload.items() if value is not None}


class RegistryEnrichedImportController(ImportProcessController):
    """Import controller that enriches each row from the company registry."""

    def __init__(
        self,
        api_client: ApiClient,
        endpoint: str,
        registry: CompanyRegistryClient,
        entity_type: str,
        options: ImportOptions | None = None,
        identifier_key: str = "cnpj",
        registry_rate_limit_delay: float = 5.0,
    ):
        if entity_type not in ENRICHABLE_ENTITIES:
            raise ValueError(f"Registry enrichment does not support {entity_type!r}")
        super().__init__(api_client, endpoint, options or ImportOptions.for_enrichment())
        self.registry = registry
        self.entity_type = entity_type
        self.identifier_key = identifier_key
        self.registry_rate_limit_delay = registry_rate_limit_delay

    async def build_payload(self, row: ImportRowData) -> dict[str, Any]:
        raw = row.data.get(self.identifier_key)
        identifier = clean_digits(str(raw)) if raw is not None else ""
        if not identifier:
            raise RowRejectedError("CNPJ not provided")
        if len(identifier) != CNPJ_LENGTH:
            raise RowRejectedError(f"CNPJ must have {CNPJ_LENGTH} digits")

        record = await self._lookup(row, identifier)
        if record is None:
            logger.info("Row %d: no registry data for %s, importing as entered", row.row_number, identifier)
        payload = build_entity_payload(record, row.data, self.entity_type, self.identifier_key)
        # Row keys the registry knows nothing about (set by transform_row or
        # extra columns) are sent as they are
        for key, value in row.data.items():
            if key not in payload and key != self.identifier_key and value not in (None, ""):
                payload[key] = value
        return payload

    async def _lookup(self, row: ImportRowData, identifier: str) -> RegistryRecord | None:
        while True:
            try:
                return await self.registry.lookup(identifier)
            except RateLimitedError as e:
                retries = self._note_rate_limit(row)
                delay = e.retry_after if e.retry_after is not None else self.registry_rate_limit_delay
                logger.warning("Registry rate limited on row %d, retry %d in %.1fs", row.row_number, retries, delay)
                await self._wait(delay)
                await self._checkpoint()
            except ApiError as e:
                logger.warning("Registry lookup failed on row %d: %s", row.row_number, e)
                return None
