"""Typed table access on top of the Airtable client.

Services talk in models and attribute names; this module translates to
table IDs, field IDs and raw records.
"""

from typing import Any, List, Optional, Sequence, Tuple, Type, TypeVar

from minimusiker.clients.airtable import AirtableClient
from minimusiker.core.records import TableModel, decode_record, decode_records, encode_fields

M = TypeVar("M", bound=TableModel)


class Repository:
    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable

    async def get(self, model: Type[M], record_id: str) -> M:
        """Fetch one record by ID; a missing record raises NotFoundError."""
        record = await self.airtable.get_record(model.TABLE_ID, record_id)
        return decode_record(model, record)

    async def find(
        self,
        model: Type[M],
        formula: Optional[str] = None,
        sort: Optional[Sequence[Tuple[str, str]]] = None,
        max_records: Optional[int] = None,
    ) -> List[M]:
        """List decoded records; ``sort`` uses attribute names."""
        records = await self.airtable.list_records(
            model.TABLE_ID,
            formula=formula,
            sort=[(model.field(attr), direction) for attr, direction in sort or []],
            max_records=max_records,
        )
        return decode_records(model, records)

    async def find_one(self, model: Type[M], formula: str) -> Optional[M]:
        record = await self.airtable.first(model.TABLE_ID, formula)
        return decode_record(model, record) if record else None

    async def create(self, model: Type[M], **values: Any) -> M:
        record = await self.airtable.create_record(
            model.TABLE_ID, encode_fields(model, values)
        )
        return decode_record(model, record)

    async def update(self, model: Type[M], record_id: str, **values: Any) -> M:
        record = await self.airtable.update_record(
            model.TABLE_ID, record_id, encode_fields(model, values)
        )
        return decode_record(model, record)

    async def delete(self, model: Type[M], record_id: str) -> None:
        await self.airtable.delete_record(model.TABLE_ID, record_id)
