"""
Import/Export Row Models

Rows arrive already parsed from the sheet/CSV layer as field-named records
of plain strings. Field aliases are the column headers of the ledger's
CSV format, so a parsed CSV dict can be passed straight in.

Turning the literal delimited text into these rows is NOT done here.
"""

from pydantic import BaseModel, ConfigDict, Field

from ledger_engine.errors import ErrorKind


class ImportRow(BaseModel):
    """One data row of an import file. Every field is raw text."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    date: str = Field(default="", alias="日期")
    type: str = Field(default="", alias="类型")
    parent_category: str = Field(default="", alias="一级分类")
    child_category: str = Field(default="", alias="二级分类")
    description: str = Field(default="", alias="描述")
    original_amount: str = Field(default="", alias="原始金额")
    currency: str = Field(default="", alias="币种")
    exchange_rate: str = Field(default="", alias="汇率")
    notes: str = Field(default="", alias="备注")


class ExportRow(ImportRow):
    """An exported transaction: the import shape plus the converted amount."""

    amount_cny: str = Field(default="", alias="人民币金额")


class ImportRowError(BaseModel):
    """Why a given row was not imported."""

    row: int = Field(..., ge=2, description="Sheet row number (header is row 1)")
    error: str
    kind: ErrorKind
    data: ImportRow


class ImportResult(BaseModel):
    """Summary of an import batch."""

    success: int = 0
    failed: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.failed
