"""Instant-upload probe: reuse content the service already stores."""

from dataclasses import dataclass
from typing import Any, Optional

import pydantic

from common.constants import REASON_MALFORMED, REASON_PROBE_FAILED
from common.logging_config import get_logger
from uploader.exceptions import DedupAmbiguousError, NetworkError
from uploader.schemas import HashProbeRequest, HashProbeResponse
from uploader.storage_client import StorageClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class DedupDecision:
    """Outcome of a probe. ``reason`` is diagnostic only."""
    hit: bool
    file_id: Optional[int] = None
    reason: str = ''


class DedupResolver:
    """Asks the service whether a (digest, size) pair can be materialized without transfer."""

    def __init__(self, client: StorageClient):
        self.client = client

    def try_instant(self, name: str, size: int, digest: str, parent_id: int) -> DedupDecision:
        """
        Probe for an instant upload.

        Anything short of a well-formed hit is a fallback, never an error.

        Args:
            name: File name to materialize
            size: File size in bytes
            digest: Content digest
            parent_id: Target folder id

        Returns:
            DedupDecision
        """
        request = HashProbeRequest(file_name=name, size=size, hash=digest, parent_id=parent_id)
        try:
            payload = self.client.probe_hash(request)
        except NetworkError as e:
            logger.warning(f"Instant probe failed for {name}, falling back: {e}")
            return DedupDecision(hit=False, reason=REASON_PROBE_FAILED)

        try:
            response = self._interpret(payload)
        except DedupAmbiguousError as e:
            logger.info(f"Ambiguous instant response for {name}, falling back: {e}")
            return DedupDecision(hit=False, reason=REASON_MALFORMED)

        if response.instant:
            logger.info(f"Instant upload hit for {name} [file_id={response.file_id}]")
            return DedupDecision(hit=True, file_id=response.file_id, reason=response.reason)

        logger.info(f"Instant upload miss for {name} [reason={response.reason or 'none'}]")
        return DedupDecision(hit=False, reason=response.reason)

    @staticmethod
    def _interpret(payload: Any) -> HashProbeResponse:
        """
        Validate a probe payload.

        Raises:
            DedupAmbiguousError: If the payload is malformed or claims a hit without a valid id
        """
        try:
            response = HashProbeResponse.model_validate(payload if payload is not None else {})
        except pydantic.ValidationError as e:
            raise DedupAmbiguousError(f"unreadable probe response: {e.error_count()} error(s)") from e

        if response.instant and (response.file_id is None or response.file_id <= 0):
            raise DedupAmbiguousError(f"instant hit without a valid file id ({response.file_id!r})")
        return response
