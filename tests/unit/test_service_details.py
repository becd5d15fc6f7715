"""Tests for the tagged-union service details."""

from datetime import date

import pytest

from travel_kernel.exceptions import InvalidEnumValueError, InvalidServiceDetailsError
from travel_modules.booking.details import (
    ActivityDetails,
    FlightDetails,
    HotelDetails,
    RentalCarDetails,
    ServiceType,
    VisaDetails,
    details_from_dict,
    details_to_dict,
    parse_service_details,
    variant_for,
)


class TestServiceTypeParse:
    @pytest.mark.parametrize("raw", ["HOTEL", "hotel", " Hotel ", ServiceType.HOTEL])
    def test_accepts_name_value_and_member(self, raw):
        assert ServiceType.parse(raw) is ServiceType.HOTEL

    def test_rental_car_by_name(self):
        assert ServiceType.parse("RENTAL_CAR") is ServiceType.RENTAL_CAR

    def test_unknown_rejected(self):
        with pytest.raises(InvalidEnumValueError) as exc_info:
            ServiceType.parse("SPACESHIP")
        assert "FLIGHT" in exc_info.value.allowed


class TestParseServiceDetails:
    def test_none_gives_empty_variant(self):
        details = parse_service_details(ServiceType.VISA, None)
        assert details == VisaDetails()

    def test_every_service_type_has_a_variant(self):
        for service_type in ServiceType:
            assert variant_for(service_type).service_type is service_type

    def test_hotel_from_mapping(self):
        details = parse_service_details(
            ServiceType.HOTEL,
            {
                "hotel_name": "Atlantis",
                "city": "Dubai",
                "check_in": "2024-04-01",
                "check_out": "2024-04-05",
                "rooms": "2",
            },
        )
        assert isinstance(details, HotelDetails)
        assert details.check_in == date(2024, 4, 1)
        assert details.rooms == 2
        assert details.nights == 4

    def test_unknown_keys_rejected(self):
        with pytest.raises(InvalidServiceDetailsError, match="unknown fields: airline"):
            parse_service_details(ServiceType.HOTEL, {"hotel_name": "X", "airline": "EK"})

    def test_mismatched_tag_rejected(self):
        with pytest.raises(InvalidServiceDetailsError, match="tagged"):
            parse_service_details(ServiceType.HOTEL, {"type": "flight"})

    def test_matching_tag_accepted(self):
        details = parse_service_details(ServiceType.FLIGHT, {"type": "FLIGHT", "airline": "EK"})
        assert details == FlightDetails(airline="EK")

    def test_wrong_variant_instance_rejected(self):
        with pytest.raises(InvalidServiceDetailsError):
            parse_service_details(ServiceType.HOTEL, FlightDetails(airline="EK"))

    def test_variant_instance_passthrough(self):
        flight = FlightDetails(airline="EK", flight_number="EK001")
        assert parse_service_details(ServiceType.FLIGHT, flight) is flight

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidServiceDetailsError, match="must be an object"):
            parse_service_details(ServiceType.FLIGHT, ["EK"])

    def test_bad_date_rejected(self):
        with pytest.raises(InvalidServiceDetailsError, match="ISO date"):
            parse_service_details(ServiceType.ACTIVITY, {"activity_date": "next tuesday"})

    @pytest.mark.parametrize("count", [0, "-1", "two", True, 1.5])
    def test_bad_counts_rejected(self, count):
        with pytest.raises(InvalidServiceDetailsError):
            parse_service_details(ServiceType.FLIGHT, {"passengers": count})

    def test_hotel_checkout_before_checkin(self):
        with pytest.raises(InvalidServiceDetailsError, match="check_out"):
            HotelDetails(check_in=date(2024, 4, 5), check_out=date(2024, 4, 1))

    def test_rental_dropoff_before_pickup(self):
        with pytest.raises(InvalidServiceDetailsError, match="dropoff_date"):
            parse_service_details(
                ServiceType.RENTAL_CAR,
                {"pickup_date": "2024-04-05", "dropoff_date": "2024-04-01"},
            )


class TestSerialization:
    def test_to_dict_is_tagged_and_json_safe(self):
        data = details_to_dict(ActivityDetails(activity_name="Desert safari", activity_date=date(2024, 5, 1)))
        assert data["type"] == "activity"
        assert data["activity_date"] == "2024-05-01"
        assert data["participants"] == 1

    def test_from_dict_selects_variant_by_tag(self):
        original = RentalCarDetails(rental_company="Hertz", pickup_date=date(2024, 6, 1))
        restored = details_from_dict(details_to_dict(original))
        assert restored == original
