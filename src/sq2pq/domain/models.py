"""
Pipeline Domain Models

Pydantic models for the column metadata produced by the database and the
output schema derived from it. These models are immutable: a table's columns
are read once and its schema is derived once per export.
"""

from pydantic import BaseModel, Field

from .enums import PhysicalType


class ColumnDescriptor(BaseModel):
    """One source column as reported by the database."""
    ordinal: int = Field(..., ge=0, description="Zero-based position in the row")
    name: str = Field(..., description="Column name as declared in the table")
    declared_type: str = Field(default="", description="Declared SQL type, may be empty")
    nullable: bool = Field(default=True, description="False when declared NOT NULL")
    is_primary_key: bool = Field(default=False, description="Part of the primary key")

    class Config:
        """Pydantic configuration."""
        frozen = True


class OutputField(BaseModel):
    """One field of the derived Parquet schema."""
    name: str = Field(..., description="Identifier-safe field name")
    physical_type: PhysicalType = Field(..., description="Physical column type")
    optional: bool = Field(default=True, description="Whether NULL values are allowed")
    source_column: str = Field(..., description="Column the field was derived from")

    class Config:
        """Pydantic configuration."""
        frozen = True
