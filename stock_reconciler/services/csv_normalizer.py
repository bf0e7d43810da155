import io
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from stock_reconciler.core.exceptions import RowValidationError
from stock_reconciler.models.inventory import MAX_QUANTITY
from stock_reconciler.services.column_mapping import (
    FIELD_BARCODE,
    FIELD_CATEGORY,
    FIELD_NAME,
    FIELD_PRICE,
    FIELD_QUANTITY,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedRecord:
    row_index: int
    barcode: str
    quantity: int
    name: Optional[str] = None
    price: Optional[str] = None
    category: Optional[str] = None

    @property
    def unit_cost(self) -> Optional[Decimal]:
        return parse_decimal(self.price)


@dataclass(frozen=True)
class RowError:
    row_index: int
    message: str
    barcode: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"row": self.row_index, "barcode": self.barcode, "error": self.message}


RowOutcome = Union[NormalizedRecord, RowError]


def decode_upload(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValueError(f"CSV file must be UTF-8 encoded: {e}") from e


def detect_delimiter(header_line: str) -> str:
    return ";" if header_line.count(";") > header_line.count(",") else ","


def read_csv_rows(text: str) -> Tuple[List[str], List[Dict[str, str]]]:
    """Parse CSV text into its header row and a list of row dicts keyed by header"""
    text = text.lstrip("\ufeff")
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise ValueError("CSV must have at least a header row")

    delimiter = detect_delimiter(lines[0])
    df = pd.read_csv(
        io.StringIO(text),
        sep=delimiter,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        skipinitialspace=True,
    )
    df.columns = [str(c).strip() for c in df.columns]
    headers = list(df.columns)
    rows = df.to_dict(orient="records")

    logger.debug(f"Parsed CSV with {len(headers)} columns and {len(rows)} rows (delimiter {delimiter!r})")
    return headers, rows


def parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    text = str(value).strip().replace(" ", "")
    if not text:
        return None
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def coerce_quantity(value: Any) -> int:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValueError("Missing quantity")

    amount = parse_decimal(text)
    if amount is None or not amount.is_finite():
        raise ValueError(f"Quantity is not a number: {text!r}")
    if amount != amount.to_integral_value():
        raise ValueError(f"Quantity must be a whole number: {text!r}")
    if amount < 0:
        raise ValueError(f"Quantity cannot be negative: {text!r}")
    if amount > MAX_QUANTITY:
        raise ValueError(f"Quantity exceeds the maximum of {MAX_QUANTITY}: {text!r}")
    return int(amount)


def _optional_text(row: Mapping[str, Any], column: Optional[str]) -> Optional[str]:
    if not column:
        return None
    value = row.get(column)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _raw_value(row: Mapping[str, Any], column: Optional[str]) -> Optional[Any]:
    if not column:
        return None
    return row.get(column)


class NormalizedBatch:
    """Re-iterable view of raw rows normalized through a resolved column mapping.

    Iterating yields only the valid records; ``errors`` holds the rows rejected
    during the most recent pass. ``outcomes()`` yields both in row order.
    """

    def __init__(self, raw_rows: Sequence[Mapping[str, Any]], mapping: Mapping[str, Optional[str]]):
        self.raw_rows = raw_rows
        self.mapping = dict(mapping)
        self.errors: List[RowError] = []

    def __len__(self) -> int:
        return len(self.raw_rows)

    def __iter__(self) -> Iterator[NormalizedRecord]:
        for outcome in self.outcomes():
            if isinstance(outcome, NormalizedRecord):
                yield outcome

    def outcomes(self) -> Iterator[RowOutcome]:
        self.errors = []
        for index, row in enumerate(self.raw_rows, start=1):
            try:
                yield self._normalize_row(index, row)
            except RowValidationError as e:
                error = RowError(row_index=index, message=str(e), barcode=e.barcode)
                self.errors.append(error)
                yield error

    def _normalize_row(self, index: int, row: Mapping[str, Any]) -> NormalizedRecord:
        raw_barcode = _optional_text(row, self.mapping.get(FIELD_BARCODE))
        if not raw_barcode:
            raise RowValidationError("Missing barcode", row_index=index)
        barcode = raw_barcode.upper()

        try:
            quantity = coerce_quantity(row.get(self.mapping.get(FIELD_QUANTITY)))
        except ValueError as e:
            raise RowValidationError(str(e), row_index=index, barcode=barcode) from e

        return NormalizedRecord(
            row_index=index,
            barcode=barcode,
            quantity=quantity,
            name=_raw_value(row, self.mapping.get(FIELD_NAME)),
            price=_raw_value(row, self.mapping.get(FIELD_PRICE)),
            category=_raw_value(row, self.mapping.get(FIELD_CATEGORY)),
        )


class CsvNormalizer:
    def normalize(
        self,
        raw_rows: Sequence[Mapping[str, Any]],
        resolved_mapping: Mapping[str, Optional[str]]
    ) -> NormalizedBatch:
        return NormalizedBatch(raw_rows, resolved_mapping)
