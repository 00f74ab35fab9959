"""Error kinds raised by the storefront core.

Every business-rule failure is a ``StorefrontError`` carrying a stable
``code`` and the HTTP status the API surface answers with. Store failures
are wrapped in ``StoreFailure`` so driver details never reach a client.
"""


class StorefrontError(Exception):
    """Base exception for all storefront failures."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status

    def to_response(self) -> dict:
        return {"error": self.message}


class InvalidPayload(StorefrontError):
    """Malformed or missing request fields."""
    def __init__(self, message: str = "Invalid payload."):
        super().__init__(message, "invalid_payload", 400)


class ProductNotFound(StorefrontError):
    def __init__(self, product_id: int):
        super().__init__("Product not found.", "product_not_found", 400)
        self.product_id = product_id


class InsufficientStock(StorefrontError):
    def __init__(self, product_id: int, requested: int):
        super().__init__(
            "Insufficient stock for one of the items.", "insufficient_stock", 400,
        )
        self.product_id = product_id
        self.requested = requested


class NoUpdatesProvided(StorefrontError):
    def __init__(self):
        super().__init__("No updates provided.", "no_updates_provided", 400)


class InvalidCredentials(StorefrontError):
    def __init__(self):
        super().__init__("Invalid credentials.", "invalid_credentials", 401)


class Unauthorized(StorefrontError):
    """Token missing, unknown or expired. The message never says which."""
    def __init__(self):
        super().__init__("Unauthorized.", "unauthorized", 401)


class StoreFailure(StorefrontError):
    """The store failed underneath a transaction; nothing was committed."""
    def __init__(self, operation: str):
        super().__init__("Internal server error.", "store_failure", 500)
        self.operation = operation
