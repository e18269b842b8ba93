"""Typed failures raised by the verification and post lifecycle services.

Every error carries a human-readable ``message`` and a ``kind`` naming its
category. The HTTP layer maps ``kind`` to a status code; the services never
know about transports.
"""


class FoodShareError(Exception):
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Categories

class ValidationError(FoodShareError):
    kind = "validation"


class NotFoundError(FoodShareError):
    kind = "not_found"


class ConflictError(FoodShareError):
    kind = "conflict"


class StateError(FoodShareError):
    kind = "state"


class AuthorizationError(FoodShareError):
    kind = "authorization"


class ExpiredError(FoodShareError):
    kind = "expired"


class DependencyError(FoodShareError):
    kind = "dependency"


# Validation

class MissingField(ValidationError):
    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} is required")
        self.field = field


class InvalidCode(ValidationError):
    def __init__(self, message: str = "Invalid verification code"):
        super().__init__(message)


class WrongPostType(ValidationError):
    pass


class InvalidRating(ValidationError):
    pass


# Not found

class NoPendingRegistration(NotFoundError):
    def __init__(self, message: str = "No pending registration found with this email"):
        super().__init__(message)


class NoVerificationFound(NotFoundError):
    def __init__(self, message: str = "No verification code found for this email"):
        super().__init__(message)


class UserNotFound(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class PostNotFound(NotFoundError):
    def __init__(self, post_id: str):
        super().__init__(f'Post with ID "{post_id}" not found')
        self.post_id = post_id


# Conflict

class DuplicateEmail(ConflictError):
    def __init__(self, message: str = "User with this email already exists"):
        super().__init__(message)


class UserAlreadyExists(ConflictError):
    def __init__(self, message: str = "User with this email already exists"):
        super().__init__(message)


class AlreadyRated(ConflictError):
    def __init__(self, message: str = "You have already rated this user for this post"):
        super().__init__(message)


# State

class NotAvailable(StateError):
    pass


class ClaimConflict(NotAvailable, ConflictError):
    """Lost a concurrent claim/fulfill: the post left ACTIVE between read and write."""

    kind = "conflict"


class WrongState(StateError):
    pass


class NotDeletable(StateError):
    pass


class PostNotCompleted(StateError):
    def __init__(self, message: str = "Can only rate completed posts"):
        super().__init__(message)


# Authorization

class NotAuthorized(AuthorizationError):
    pass


class NotOwner(AuthorizationError):
    def __init__(self, message: str = "Only the post owner can do this"):
        super().__init__(message)


class EmailNotVerified(AuthorizationError):
    def __init__(self, message: str = "Email is not verified. Please verify your email first."):
        super().__init__(message)


class InvalidCredentials(AuthorizationError):
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


# Expired

class CodeExpired(ExpiredError):
    def __init__(self, message: str = "Verification code has expired"):
        super().__init__(message)


# Dependency

class NotificationFailed(DependencyError):
    def __init__(self, message: str = "Failed to send email"):
        super().__init__(message)


class HashingFailed(DependencyError):
    def __init__(self, message: str = "Password hashing failed"):
        super().__init__(message)


class StoreFailed(DependencyError):
    def __init__(self, message: str = "Data store operation failed"):
        super().__init__(message)
