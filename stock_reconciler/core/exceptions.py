from typing import Iterable, Optional


class ReconciliationError(Exception):
    """Base class for errors raised by the reconciliation services"""


class MissingRequiredColumns(ReconciliationError):
    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class RowValidationError(ReconciliationError):
    def __init__(self, message: str, row_index: Optional[int] = None, barcode: Optional[str] = None):
        self.row_index = row_index
        self.barcode = barcode
        super().__init__(message)


class UnknownProductNotAllowed(RowValidationError):
    def __init__(self, barcode: str, row_index: Optional[int] = None):
        super().__init__(
            f"Unknown barcode {barcode}: current stock uploads only update existing products",
            row_index=row_index,
            barcode=barcode,
        )


class QuantityOutOfRange(ReconciliationError):
    def __init__(self, store_id: str, product_id: str, delta: int):
        self.store_id = store_id
        self.product_id = product_id
        self.delta = delta
        super().__init__(
            f"Adding {delta} to product {product_id} in store {store_id} exceeds the maximum quantity"
        )


class NotFoundError(ReconciliationError):
    def __init__(self, entity: str, identifier: str):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class ReceiptNotFound(NotFoundError):
    def __init__(self, receipt_id: str):
        self.receipt_id = receipt_id
        super().__init__("Stock receipt", receipt_id)


class InvalidReceiptState(ReconciliationError):
    def __init__(self, receipt_id: str, status: str, expected: str = "pending"):
        self.receipt_id = receipt_id
        self.status = status
        self.expected = expected
        super().__init__(
            f"Stock receipt {receipt_id} is {status}, expected {expected}"
        )


class ReceiptProcessingFailed(ReconciliationError):
    def __init__(self, receipt_id: str, reason: str):
        self.receipt_id = receipt_id
        self.reason = reason
        super().__init__(f"Stock receipt {receipt_id} failed: {reason}")


class DuplicateConstraintViolation(ReconciliationError):
    def __init__(self, message: str, row_index: Optional[int] = None, barcode: Optional[str] = None):
        self.row_index = row_index
        self.barcode = barcode
        super().__init__(message)


class PersistenceFailure(ReconciliationError):
    def __init__(self, message: str, row_index: Optional[int] = None, barcode: Optional[str] = None):
        self.row_index = row_index
        self.barcode = barcode
        super().__init__(message)
