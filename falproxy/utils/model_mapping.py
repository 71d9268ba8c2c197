"""Requested-model to backend-model remapping."""

from collections.abc import Mapping
from types import MappingProxyType

from falproxy.core.logging import get_logger


logger = get_logger(__name__)


class ModelMapper:
    """Read-only model name remap table.

    Built once at startup from configuration and shared by all requests.
    Names without an entry map to themselves.
    """

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        self._mapping: Mapping[str, str] = MappingProxyType(dict(mapping or {}))

    @property
    def mapping(self) -> Mapping[str, str]:
        return self._mapping

    def map(self, requested: str) -> str:
        mapped = self._mapping.get(requested, requested)
        if mapped != requested:
            logger.debug("model_remapped", requested=requested, mapped=mapped)
        return mapped

    def __len__(self) -> int:
        return len(self._mapping)
