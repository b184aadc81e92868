class PosError(Exception):
    """An error whose message is safe to show to the cashier."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PosError):
    status_code = 404


class ValidationFailed(PosError):
    status_code = 400


class CartError(ValidationFailed):
    pass


class CheckoutError(ValidationFailed):
    pass


class LoanError(ValidationFailed):
    pass


class StoreError(PosError):
    """A call to the backing store failed; nothing is retried."""
    status_code = 502
