"""Failure taxonomy raised by the account service and the transfer engine.

Precondition failures (InvalidRequest, NotFound, InsufficientFunds) are raised
before anything is written. TransferFailed is raised after the unit of work has
been rolled back and hides the underlying cause from the caller.
"""


class TransferError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(TransferError):
    pass


class DuplicateAccount(InvalidRequest):
    pass


class NotFound(TransferError):
    pass


class InsufficientFunds(TransferError):
    pass


class TransferFailed(TransferError):
    def __init__(self, message: str = "Transaction failed"):
        super().__init__(message)
