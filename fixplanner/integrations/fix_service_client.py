from typing import Any, Mapping, Optional

import httpx
from loguru import logger
from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from fixplanner.config.settings import settings
from fixplanner.core.fixes_builder import FixesBuilder
from fixplanner.integrations.fix_providers import FixPartition
from fixplanner.models.errors import ConfigurationError, FixProviderError
from fixplanner.models.issue import Issue

_FACTS = TypeAdapter(dict[str, Any])


def _is_transient(e: BaseException) -> bool:
    if isinstance(e, httpx.HTTPStatusError):
        return e.response.status_code >= 500
    return isinstance(e, httpx.TransportError)


class FixServiceClient:
    """
    Fix provider backed by a remote fix lookup service.

    ``POST {base_url}/fixes`` receives the issue, its nodes and the benchmark
    facts, and answers with the node partition:

        {"fixes": [{"nodes": ["kermit"], "fix": {"task": "mytask", "parameters": {}}}]}
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = (base_url or settings.FIX_SERVICE_URL).rstrip("/")
        if not self.base_url:
            raise ConfigurationError("No fix service URL configured (FIX_SERVICE_URL)")
        self.timeout = timeout if timeout is not None else settings.FIX_SERVICE_TIMEOUT
        self.transport = transport
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = token if token is not None else settings.FIX_SERVICE_TOKEN
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        logger.info(f"FixServiceClient: using {self.base_url}")

    def find_fixes(self, issue: Issue, nodes: frozenset, facts: Mapping[str, Any]) -> FixPartition:
        payload = {
            "issue": issue.ref,
            "mnemonic": issue.mnemonic,
            "section": issue.section,
            "nodes": sorted(nodes),
            "facts": self._jsonable(issue, facts),
        }
        try:
            data = self._post("/fixes", payload)
        except httpx.HTTPStatusError as e:
            raise FixProviderError(
                f"Fix service answered HTTP {e.response.status_code} for {issue.ref}"
            ) from e
        except httpx.HTTPError as e:
            raise FixProviderError(f"Cannot reach fix service at {self.base_url}: {e}") from e
        return self._to_partition(issue, data)

    @staticmethod
    def _jsonable(issue: Issue, facts: Mapping[str, Any]) -> dict:
        # yaml facts may hold dates and other values json cannot encode
        try:
            return _FACTS.dump_python(dict(facts), mode="json")
        except PydanticSerializationError as e:
            raise FixProviderError(f"Facts for {issue.ref} cannot be sent to the fix service: {e}") from e

    # ------------------------------------------------------------------
    # Generic POST with retry
    # ------------------------------------------------------------------
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    def _post(self, endpoint: str, payload: dict) -> Any:
        with httpx.Client(headers=self.headers, timeout=self.timeout, transport=self.transport) as client:
            resp = client.post(f"{self.base_url}{endpoint}", json=payload)
            resp.raise_for_status()
            logger.debug(f"POST {endpoint} → HTTP {resp.status_code}")
            try:
                return resp.json()
            except ValueError as e:
                raise FixProviderError(f"Fix service returned invalid JSON on {endpoint}") from e

    @staticmethod
    def _to_partition(issue: Issue, data: Any) -> FixPartition:
        fixes = data.get("fixes") if isinstance(data, dict) else None
        if not isinstance(fixes, list):
            raise FixProviderError(f"Fix service response for {issue.ref} has no 'fixes' list")
        builder = FixesBuilder(issue.mnemonic, source="fix service")
        result = {}
        for i, item in enumerate(fixes):
            if not isinstance(item, dict) or not isinstance(item.get("nodes"), list):
                raise FixProviderError(f"Fix service response for {issue.ref}: fixes[{i}] needs a 'nodes' list")
            try:
                fix = builder.build_fix(item.get("fix"), f"fixes[{i}].fix")
            except ConfigurationError as e:
                raise FixProviderError(str(e)) from e
            result[frozenset(item["nodes"])] = fix
        return result
