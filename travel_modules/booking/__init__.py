"""
Booking Module.

Bookings across service types, their tagged-union service details and the
financial calculator that derives VAT, commissions and profit.
"""

from travel_modules.booking.calculator import (
    VAT_RATE,
    BookingFinancialInput,
    BookingFinancials,
    calculate_booking_financials,
)
from travel_modules.booking.details import ServiceType, parse_service_details
from travel_modules.booking.models import (
    BookingFilter,
    BookingInfo,
    BookingPatch,
    BookingStatus,
    CreateBookingRequest,
)

__all__ = [
    "VAT_RATE",
    "BookingFilter",
    "BookingFinancialInput",
    "BookingFinancials",
    "BookingInfo",
    "BookingPatch",
    "BookingStatus",
    "CreateBookingRequest",
    "ServiceType",
    "calculate_booking_financials",
    "parse_service_details",
]
