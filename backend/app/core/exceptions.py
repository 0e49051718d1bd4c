"""
Domain errors raised by the services and mapped to HTTP responses in app.main.
"""
from fastapi import status


class AppError(Exception):
    """Base class for errors that surface to API callers."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Error occurred in server"

    def __init__(self, message: str = None, detail: str = None):
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


class InvalidInputError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Review your input"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflict"


class InternalError(AppError):
    pass


# Not found
class RoomNotFound(NotFoundError):
    message = "Room not found"


class TransactionNotFound(NotFoundError):
    message = "Transaction not found"


class InviteNotFound(NotFoundError):
    message = "Invite not found"


class MessageNotFound(NotFoundError):
    message = "Message not found"


class NotificationNotFound(NotFoundError):
    message = "Notification not found"


class SubscriptionNotFound(NotFoundError):
    message = "Subscription not found"


class UserNotFound(NotFoundError):
    message = "User not found"


class PayersNotFound(NotFoundError):
    message = "Payer(s) not found"


# Invalid input
class EmptyPayers(InvalidInputError):
    message = "Payers of a bill can't be empty"


class EmptyContent(InvalidInputError):
    message = "Content cannot be empty"


class NoBillsToConsolidate(InvalidInputError):
    message = "No bills to consolidate"


class InvalidInviteStatus(InvalidInputError):
    message = "Invalid invite status"


# Forbidden
class NotHost(ForbiddenError):
    message = "User is not the host of the room"


class NotInRoom(ForbiddenError):
    message = "User is not in the room"


class InvalidPayer(ForbiddenError):
    message = "Only the payer can settle this transaction"


# Conflict
class AlreadyConsolidated(ConflictError):
    message = "Bills for this room have already been consolidated"


class AlreadySettled(ConflictError):
    message = "Transaction already settled"


class AlreadyInRoom(ConflictError):
    message = "User is already in room"


class AlreadyInvited(ConflictError):
    message = "User already has a pending invite"


class UnconsolidatedBills(ConflictError):
    message = "Cannot perform action with unconsolidated bills"


class LeaveAsHost(ConflictError):
    message = "Cannot leave room as host"


class RoomClosed(ConflictError):
    message = "Room is closed"


# Internal
class PushQueueClosed(InternalError):
    message = "Push notification queue is closed"


class PublishError(InternalError):
    message = "Failed to publish message"
