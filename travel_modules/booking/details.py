"""
Service details as a tagged union keyed by service type.

Each service type has its own frozen dataclass with typed fields.  Payloads
coming from the outside are parsed with ``parse_service_details``, which
rejects keys the variant does not define, so there is one place that knows
what a hotel booking carries and no "try this key, then that key" lookups
anywhere else.  ``details_to_dict`` produces the JSON stored on the booking
row, tagged with ``type``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, is_dataclass
from datetime import date
from enum import Enum
from typing import Any, ClassVar, Union

from travel_kernel.exceptions import InvalidEnumValueError, InvalidServiceDetailsError


class ServiceType(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    VISA = "visa"
    TRANSFER = "transfer"
    CRUISE = "cruise"
    RENTAL_CAR = "rental_car"
    TRAIN = "train"
    ACTIVITY = "activity"

    @classmethod
    def parse(cls, value: object) -> "ServiceType":
        """Accept a member, its value or its name (any case)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.lower() == member.value or text.upper() == member.name:
                return member
        raise InvalidEnumValueError("service_type", value, [m.name for m in cls])


@dataclass(frozen=True)
class FlightDetails:
    service_type: ClassVar[ServiceType] = ServiceType.FLIGHT

    airline: str | None = None
    flight_number: str | None = None
    departure_airport: str | None = None
    arrival_airport: str | None = None
    departure_time: str | None = None
    return_time: str | None = None
    cabin_class: str | None = None
    ticket_number: str | None = None
    passengers: int = 1


@dataclass(frozen=True)
class HotelDetails:
    service_type: ClassVar[ServiceType] = ServiceType.HOTEL

    hotel_name: str | None = None
    city: str | None = None
    check_in: date | None = None
    check_out: date | None = None
    room_type: str | None = None
    board_basis: str | None = None
    rooms: int = 1
    guests: int = 1

    def __post_init__(self) -> None:
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise InvalidServiceDetailsError("hotel", "check_out is before check_in")

    @property
    def nights(self) -> int | None:
        if self.check_in and self.check_out:
            return (self.check_out - self.check_in).days
        return None


@dataclass(frozen=True)
class VisaDetails:
    service_type: ClassVar[ServiceType] = ServiceType.VISA

    country: str | None = None
    visa_type: str | None = None
    entry_type: str | None = None
    applicant_name: str | None = None
    passport_number: str | None = None


@dataclass(frozen=True)
class TransferDetails:
    service_type: ClassVar[ServiceType] = ServiceType.TRANSFER

    pickup_location: str | None = None
    dropoff_location: str | None = None
    pickup_time: str | None = None
    vehicle_type: str | None = None
    passengers: int = 1


@dataclass(frozen=True)
class CruiseDetails:
    service_type: ClassVar[ServiceType] = ServiceType.CRUISE

    cruise_line: str | None = None
    ship_name: str | None = None
    departure_port: str | None = None
    arrival_port: str | None = None
    sail_date: date | None = None
    cabin_type: str | None = None
    passengers: int = 1


@dataclass(frozen=True)
class RentalCarDetails:
    service_type: ClassVar[ServiceType] = ServiceType.RENTAL_CAR

    rental_company: str | None = None
    car_type: str | None = None
    pickup_location: str | None = None
    dropoff_location: str | None = None
    pickup_date: date | None = None
    dropoff_date: date | None = None

    def __post_init__(self) -> None:
        if self.pickup_date and self.dropoff_date and self.dropoff_date < self.pickup_date:
            raise InvalidServiceDetailsError("rental_car", "dropoff_date is before pickup_date")


@dataclass(frozen=True)
class TrainDetails:
    service_type: ClassVar[ServiceType] = ServiceType.TRAIN

    operator: str | None = None
    train_number: str | None = None
    departure_station: str | None = None
    arrival_station: str | None = None
    departure_time: str | None = None
    seat_class: str | None = None
    passengers: int = 1


@dataclass(frozen=True)
class ActivityDetails:
    service_type: ClassVar[ServiceType] = ServiceType.ACTIVITY

    activity_name: str | None = None
    location: str | None = None
    activity_date: date | None = None
    participants: int = 1


ServiceDetails = Union[
    FlightDetails,
    HotelDetails,
    VisaDetails,
    TransferDetails,
    CruiseDetails,
    RentalCarDetails,
    TrainDetails,
    ActivityDetails,
]

_VARIANTS: dict[ServiceType, type] = {
    variant.service_type: variant
    for variant in (
        FlightDetails,
        HotelDetails,
        VisaDetails,
        TransferDetails,
        CruiseDetails,
        RentalCarDetails,
        TrainDetails,
        ActivityDetails,
    )
}

_DATE_FIELDS = frozenset(
    {"check_in", "check_out", "sail_date", "pickup_date", "dropoff_date", "activity_date"}
)
_COUNT_FIELDS = frozenset({"passengers", "rooms", "guests", "participants"})


def variant_for(service_type: ServiceType) -> type:
    return _VARIANTS[service_type]


def _coerce(service_type: ServiceType, name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _DATE_FIELDS:
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            raise InvalidServiceDetailsError(
                service_type.value, f"{name} is not an ISO date: {value!r}"
            ) from None
    if name in _COUNT_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise InvalidServiceDetailsError(service_type.value, f"{name} must be an integer")
        try:
            count = int(value)
        except ValueError:
            raise InvalidServiceDetailsError(
                service_type.value, f"{name} must be an integer"
            ) from None
        if count < 1:
            raise InvalidServiceDetailsError(service_type.value, f"{name} must be at least 1")
        return count
    return str(value)


def parse_service_details(
    service_type: ServiceType,
    payload: ServiceDetails | Mapping[str, Any] | None,
) -> ServiceDetails:
    """
    Build the typed details variant for ``service_type``.

    Raises:
        InvalidServiceDetailsError: If the payload is a different variant,
            carries a mismatching ``type`` tag or has unknown keys.
    """
    variant = _VARIANTS[service_type]
    if payload is None:
        return variant()
    if is_dataclass(payload):
        if not isinstance(payload, variant):
            raise InvalidServiceDetailsError(
                service_type.value,
                f"got {type(payload).__name__} for a {service_type.value} booking",
            )
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidServiceDetailsError(service_type.value, "details must be an object")

    data = dict(payload)
    tag = data.pop("type", None)
    if tag is not None and ServiceType.parse(tag) is not service_type:
        raise InvalidServiceDetailsError(
            service_type.value, f"details are tagged {tag!r}"
        )
    known = {f.name for f in fields(variant)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidServiceDetailsError(
            service_type.value, f"unknown fields: {', '.join(unknown)}"
        )
    return variant(**{name: _coerce(service_type, name, value) for name, value in data.items()})


def details_to_dict(details: ServiceDetails) -> dict[str, Any]:
    """JSON-safe dict tagged with ``type``."""
    data: dict[str, Any] = {"type": details.service_type.value}
    for name, value in asdict(details).items():
        data[name] = value.isoformat() if isinstance(value, date) else value
    return data


def details_from_dict(data: Mapping[str, Any]) -> ServiceDetails:
    """Inverse of ``details_to_dict``; the ``type`` tag selects the variant."""
    return parse_service_details(ServiceType.parse(data["type"]), data)
