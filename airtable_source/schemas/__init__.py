from airtable_source.schemas.pipeline import SchemaDescriptor, SetupQuestion
from airtable_source.schemas.records import AirtableRecord, FieldValue, RecordPage, TableSchema

__all__ = [
    "SchemaDescriptor", "SetupQuestion",
    "AirtableRecord", "FieldValue", "RecordPage", "TableSchema",
]
