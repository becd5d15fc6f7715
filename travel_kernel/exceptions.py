"""
Typed Exception Hierarchy for the Travel Kernel.

Every failure the core can surface has a typed exception class carrying a
machine-readable ``code``, an ``http_status`` the outer API layer maps to a
response, and structured attributes describing the failure.  Callers catch
by type, never by message.

    TravelKernelError (base, 500)
    |
    +-- ValidationError (400)
    |   +-- InvalidAmountError
    |   +-- InvalidEnumValueError
    |   +-- InvalidServiceDetailsError
    |   +-- OverpaymentError
    |   +-- PartyTypeMismatchError
    |   +-- ReceiptCustomerMismatchError
    |
    +-- NotFoundError (404)
    |   +-- AccountNotFoundError
    |   +-- JournalEntryNotFoundError
    |   +-- PartyNotFoundError
    |   +-- UserNotFoundError
    |   +-- BookingNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- ReceiptNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- BankAccountNotFoundError
    |   +-- CashRegisterNotFoundError
    |   +-- AssignmentNotFoundError
    |
    +-- ConflictError (409)
    |   +-- AlreadyPostedError
    |   +-- PostedEntryDeletionError
    |   +-- EntryNotPostedError
    |   +-- EntryAlreadyReversedError
    |   +-- ImmutabilityViolationError
    |   +-- AccountHasDependentsError
    |   +-- DuplicateAccountCodeError
    |   +-- BookingNotEditableError
    |   +-- BookingAlreadyCancelledError
    |   +-- BookingHasDependentsError
    |   +-- InvoiceAlreadyExistsError
    |   +-- InvoiceAlreadyPaidError
    |   +-- InvoiceCancelledError
    |   +-- DuplicateCashRegisterError
    |
    +-- AccessDeniedError (403)

Codes are stable strings (e.g. ``ALREADY_POSTED``) safe to expose over an API.
"""


class TravelKernelError(Exception):
    """Base exception for all travel kernel errors."""

    code: str = "TRAVEL_KERNEL_ERROR"
    http_status: int = 500


# =============================================================================
# Validation errors
# =============================================================================


class ValidationError(TravelKernelError):
    """Malformed or missing required input."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400


class InvalidAmountError(ValidationError):
    """A monetary amount is missing, non-numeric, non-finite or out of range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, reason: str = "must be a finite number"):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} ({value!r}): {reason}")


class InvalidEnumValueError(ValidationError):
    """A value is not one of the members of an enumeration."""

    code: str = "INVALID_ENUM_VALUE"

    def __init__(self, field: str, value: object, allowed: list[str]):
        self.field = field
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid {field} {value!r}; expected one of {', '.join(allowed)}"
        )


class InvalidServiceDetailsError(ValidationError):
    """Service details payload does not match the booking's service type."""

    code: str = "INVALID_SERVICE_DETAILS"

    def __init__(self, service_type: str, reason: str):
        self.service_type = service_type
        self.reason = reason
        super().__init__(f"Invalid {service_type} service details: {reason}")


class OverpaymentError(ValidationError):
    """Receipt amount exceeds the remaining balance of its invoice."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: str, remaining: str):
        self.invoice_id = invoice_id
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Receipt amount {amount} exceeds remaining balance {remaining} "
            f"on invoice {invoice_id}"
        )


class PartyTypeMismatchError(ValidationError):
    """Referenced party exists but has the wrong type."""

    code: str = "PARTY_TYPE_MISMATCH"

    def __init__(self, party_id: str, expected: str, actual: str):
        self.party_id = party_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Party {party_id} is a {actual}, expected {expected}")


class ReceiptCustomerMismatchError(ValidationError):
    """Receipt customer differs from the customer billed on the invoice."""

    code: str = "RECEIPT_CUSTOMER_MISMATCH"

    def __init__(self, invoice_id: str, customer_id: str):
        self.invoice_id = invoice_id
        self.customer_id = customer_id
        super().__init__(
            f"Customer {customer_id} is not the customer on invoice {invoice_id}"
        )


# =============================================================================
# Not found errors
# =============================================================================


class NotFoundError(TravelKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    http_status: int = 404
    entity: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity = "Account"


class JournalEntryNotFoundError(NotFoundError):
    code: str = "JOURNAL_ENTRY_NOT_FOUND"
    entity = "Journal entry"


class PartyNotFoundError(NotFoundError):
    code: str = "PARTY_NOT_FOUND"
    entity = "Party"


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"
    entity = "User"


class BookingNotFoundError(NotFoundError):
    code: str = "BOOKING_NOT_FOUND"
    entity = "Booking"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity = "Invoice"


class ReceiptNotFoundError(NotFoundError):
    code: str = "RECEIPT_NOT_FOUND"
    entity = "Receipt"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity = "Payment"


class BankAccountNotFoundError(NotFoundError):
    code: str = "BANK_ACCOUNT_NOT_FOUND"
    entity = "Bank account"


class CashRegisterNotFoundError(NotFoundError):
    code: str = "CASH_REGISTER_NOT_FOUND"
    entity = "Cash register"


class AssignmentNotFoundError(NotFoundError):
    code: str = "ASSIGNMENT_NOT_FOUND"
    entity = "Customer assignment"


# =============================================================================
# Conflict errors
# =============================================================================


class ConflictError(TravelKernelError):
    """Operation conflicts with the current state of an entity."""

    code: str = "CONFLICT"
    http_status: int = 409


class AlreadyPostedError(ConflictError):
    """Journal entry has already been posted."""

    code: str = "ALREADY_POSTED"

    def __init__(self, entry_id: str, entry_number: str):
        self.entry_id = entry_id
        self.entry_number = entry_number
        super().__init__(f"Journal entry {entry_number} is already posted")


class PostedEntryDeletionError(ConflictError):
    """Posted journal entries must be reversed, never deleted."""

    code: str = "POSTED_ENTRY_DELETION"

    def __init__(self, entry_id: str, entry_number: str):
        self.entry_id = entry_id
        self.entry_number = entry_number
        super().__init__(
            f"Journal entry {entry_number} is posted and cannot be deleted; "
            "post a reversing entry instead"
        )


class EntryNotPostedError(ConflictError):
    """Only posted entries can be reversed."""

    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(f"Journal entry {entry_id} is {status}, not posted")


class EntryAlreadyReversedError(ConflictError):
    """A posted entry can be reversed at most once."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_id: str):
        self.entry_id = entry_id
        self.reversal_id = reversal_id
        super().__init__(
            f"Journal entry {entry_id} was already reversed by {reversal_id}"
        )


class ImmutabilityViolationError(ConflictError):
    """Attempted modification of an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


class AccountHasDependentsError(ConflictError):
    """Account cannot be deleted while children or journal entries reference it."""

    code: str = "ACCOUNT_HAS_DEPENDENTS"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Account {account_code} cannot be deleted: {reason}")


class DuplicateAccountCodeError(ConflictError):
    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class BookingNotEditableError(ConflictError):
    """Cancelled and refund bookings are read-only."""

    code: str = "BOOKING_NOT_EDITABLE"

    def __init__(self, booking_id: str, status: str):
        self.booking_id = booking_id
        self.status = status
        super().__init__(f"Booking {booking_id} is {status} and cannot be changed")


class BookingAlreadyCancelledError(ConflictError):
    code: str = "BOOKING_ALREADY_CANCELLED"

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} is already cancelled")


class BookingHasDependentsError(ConflictError):
    """Booking cannot be deleted once it has been invoiced or confirmed."""

    code: str = "BOOKING_HAS_DEPENDENTS"

    def __init__(self, booking_id: str, reason: str):
        self.booking_id = booking_id
        self.reason = reason
        super().__init__(f"Booking {booking_id} cannot be deleted: {reason}")


class InvoiceAlreadyExistsError(ConflictError):
    code: str = "INVOICE_ALREADY_EXISTS"

    def __init__(self, booking_id: str, invoice_number: str):
        self.booking_id = booking_id
        self.invoice_number = invoice_number
        super().__init__(
            f"Invoice {invoice_number} already exists for booking {booking_id}"
        )


class InvoiceAlreadyPaidError(ConflictError):
    code: str = "INVOICE_ALREADY_PAID"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is already fully paid")


class InvoiceCancelledError(ConflictError):
    code: str = "INVOICE_CANCELLED"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is cancelled")


class DuplicateCashRegisterError(ConflictError):
    code: str = "DUPLICATE_CASH_REGISTER"

    def __init__(self, name: str, currency: str):
        self.name = name
        self.currency = currency
        super().__init__(f"Cash register {name!r} already exists for {currency}")


# =============================================================================
# Access errors
# =============================================================================


class AccessDeniedError(TravelKernelError):
    """RBAC scope excludes the requested entity.

    ``reason`` explains why access was denied without naming data that
    belongs to other users.
    """

    code: str = "ACCESS_DENIED"
    http_status: int = 403

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Access denied to this {entity_type}: {reason}")
