"""Template record store interface."""

from typing import Optional, Protocol

from contract_engine.models import TemplateRecord


class TemplateStore(Protocol):
    """Anything that can look up and save template records by id."""

    def get(self, template_id: str) -> Optional[TemplateRecord]: ...

    def put(self, template_id: str, record: TemplateRecord) -> None: ...


class InMemoryTemplateStore:
    """Process-local store. Records are kept serialized, as a database would hold them."""

    def __init__(self):
        self._records: dict[str, str] = {}

    def get(self, template_id: str) -> Optional[TemplateRecord]:
        payload = self._records.get(template_id)
        if payload is None:
            return None
        return TemplateRecord.from_json(payload)

    def put(self, template_id: str, record: TemplateRecord) -> None:
        self._records[template_id] = record.to_json()

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._records

    def __len__(self) -> int:
        return len(self._records)
