"""
Typed failures of the ordering core.

Every error carries the HTTP status and a machine code so the API layer can
render it without knowing which component raised it.
"""

from fastapi import Request
from fastapi.responses import JSONResponse


class OrderingError(Exception):
    status_code = 400
    code = "ORDERING_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(OrderingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidStatus(ValidationError):
    code = "INVALID_STATUS"

    def __init__(self, value):
        super().__init__(f"Unknown order status: {value!r}")


class EmptyCart(OrderingError):
    status_code = 400
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("Cart is empty")


class NotAuthenticated(OrderingError):
    status_code = 401
    code = "NOT_AUTHENTICATED"

    def __init__(self):
        super().__init__("Not authenticated")


class Forbidden(OrderingError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(OrderingError):
    status_code = 404
    code = "NOT_FOUND"


class IllegalTransition(OrderingError):
    status_code = 409
    code = "ILLEGAL_TRANSITION"

    def __init__(self, current, target):
        super().__init__(f"Cannot move order from {current} to {target}")
        self.current = current
        self.target = target


class StaleOrder(OrderingError):
    status_code = 409
    code = "STALE_ORDER"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} was modified concurrently, reload and retry")


class PersistenceFailure(OrderingError):
    status_code = 503
    code = "PERSISTENCE_FAILURE"


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})
