"""Exception types raised by the policy engine.

Policy ineligibility is not an error; it is returned as a normal result.
These exceptions cover malformed requests, missing records and bad
configuration, and carry the HTTP status the endpoint layer maps them to.
"""


class BookingPolicyError(Exception):
    """Base class for all policy engine errors."""

    status_code = 500


class RequestValidationError(BookingPolicyError):
    """Raised when a request is malformed, before any state is read."""

    status_code = 400


class BookingNotFoundError(BookingPolicyError):
    """Raised when the booking id does not exist."""

    status_code = 404

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class RefundNotFoundError(BookingPolicyError):
    """Raised when a refund transaction id does not exist."""

    status_code = 404

    def __init__(self, refund_transaction_id: str) -> None:
        super().__init__(f"Refund transaction {refund_transaction_id} not found")
        self.refund_transaction_id = refund_transaction_id


class PolicyConfigurationError(BookingPolicyError):
    """Raised when a cancellation policy table is structurally invalid."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("Invalid cancellation policy: " + "; ".join(problems))
        self.problems = problems
