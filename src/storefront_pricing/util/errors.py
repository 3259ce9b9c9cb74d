from __future__ import annotations


class RetryableError(Exception):
    """Indicates a failure that may succeed on retry."""


class NonRetryableError(Exception):
    """Indicates a failure that should not be retried."""


class TransientFetchError(RetryableError):
    """A catalog or store call failed; the affected record is left as it was."""


class ProductNotFoundError(NonRetryableError):
    def __init__(self, product_id: int) -> None:
        super().__init__(f"product {product_id} not found in catalog")
        self.product_id = product_id


class PricingValidationError(NonRetryableError):
    """A contract price rule was rejected on the write path."""


class PricingConflictError(PricingValidationError):
    def __init__(self, message: str, conflicts: list[str] | None = None) -> None:
        super().__init__(message)
        self.conflicts = conflicts or []


class InvalidMarginDetailsError(NonRetryableError):
    def __init__(self, commission_id: str, message: str) -> None:
        super().__init__(message)
        self.commission_id = commission_id


class ConfigurationError(NonRetryableError):
    """Required configuration or credentials are missing."""
