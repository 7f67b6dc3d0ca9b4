import pytest

from travel_app.core.errors import ValidationError
from travel_app.models.enums import TourType
from travel_app.validation.entities import destination_rules, flight_rules, user_rules
from travel_app.validation.rules import (
    custom,
    length,
    number,
    one_of,
    pattern,
    required,
    run_validation,
    validate_fields,
)


def test_first_failing_rule_wins_per_field():
    rules = {"name": [required("Name is required"), length(2, 5, "Name must be 2-5 characters")]}

    assert validate_fields({"name": ""}, rules) == {"name": "Name is required"}
    assert validate_fields({"name": "x"}, rules) == {"name": "Name must be 2-5 characters"}
    assert validate_fields({"name": "abc"}, rules) == {}


def test_every_field_is_reported_with_camel_case_keys():
    rules = {
        "max_guests": [number(1, 10, integer=True, message="Out of range")],
        "tour_type": [one_of(TourType, "Unknown tour type")],
        "start_date": [required("Start date is required")],
    }

    errors = validate_fields({"max_guests": 0, "tour_type": "SKIING"}, rules)

    assert errors == {
        "maxGuests": "Out of range",
        "tourType": "Unknown tour type",
        "startDate": "Start date is required",
    }


def test_optional_rules_skip_missing_values():
    rules = {"city": [pattern(r"^[a-z]+$", "Letters only")], "stops": [number(0, 5)]}
    assert validate_fields({"city": None, "stops": None}, rules) == {}


def test_number_rejects_booleans_and_fractions_for_integers():
    rule = number(1, 10, integer=True, message="bad")
    assert rule(True, {}) == "bad"
    assert rule(2.5, {}) == "bad"
    assert rule(3, {}) is None


def test_pattern_must_match_whole_value():
    rule = pattern(r"[A-Z]{2}[0-9]+", "bad")
    assert rule("KQ101", {}) is None
    assert rule("KQ101x", {}) == "bad"


def test_one_of_accepts_enum_members_and_values():
    rule = one_of(TourType)
    assert rule(TourType.BEACH, {}) is None
    assert rule("BEACH", {}) is None
    assert rule("beach", {}) is not None


def test_custom_rule_sees_the_whole_record():
    rules = {"end": [custom(lambda value, ctx: value > ctx["start"], "End must be after start")]}
    assert validate_fields({"start": 5, "end": 3}, rules) == {"end": "End must be after start"}


def test_partial_validation_only_checks_sent_fields():
    rules = {"name": [required()], "country": [required()]}
    assert validate_fields({"name": "Kumasi"}, rules, partial=True) == {}
    assert validate_fields({"name": "Kumasi"}, rules) == {"country": "This field is required"}


def test_run_validation_raises_with_the_error_map():
    with pytest.raises(ValidationError) as exc:
        run_validation({}, {"email": [required("Email is required")]})

    assert exc.value.status_code == 422
    assert exc.value.to_dict() == {"message": "Validation failed", "errors": {"email": "Email is required"}}


def test_destination_uniqueness_is_case_insensitive(db, make_destination):
    make_destination("Accra", "Ghana", "Accra")

    duplicate = {"name": "ACCRA", "country": "ghana", "city": " accra "}
    assert "name" in validate_fields(duplicate, destination_rules(db))

    other_city = {"name": "Accra", "country": "Ghana", "city": "Tema"}
    assert validate_fields(other_city, destination_rules(db)) == {}


def test_destination_update_does_not_collide_with_itself(db, make_destination):
    destination = make_destination("Accra", "Ghana", "Accra")
    data = {"name": "accra", "country": "Ghana", "city": "Accra"}
    assert validate_fields(data, destination_rules(db, current_id=destination.id)) == {}


def test_destination_place_pattern(db):
    errors = validate_fields({"name": "Lagos", "country": "N1geria"}, destination_rules(db))
    assert errors == {"country": "Country must contain only letters, spaces, hyphens, and apostrophes"}


def test_flight_rules_cross_field_checks(db, make_destination, make_flight):
    flight = make_flight(number="KQ101")
    data = {
        "flight_number": "KQ101",
        "airline": "Kenya Airways",
        "departure": flight.departure,
        "arrival": flight.departure,
        "origin_id": flight.origin_id,
        "destination_id": flight.origin_id,
        "price": 10,
        "seats_available": 10,
    }

    errors = validate_fields(data, flight_rules(db))

    assert errors["flightNumber"] == "Flight number already exists"
    assert errors["arrival"] == "Arrival time must be at least 30 minutes after departure"
    assert errors["destinationId"] == "Origin and destination must be different"


def test_user_rules(db, customer):
    errors = validate_fields(
        {"name": "A", "email": "CUSTOMER@example.com", "password": "short", "phone": "12ab"},
        user_rules(db),
    )

    assert errors == {
        "name": "Name must be between 2 and 100 characters",
        "email": "Email is already registered",
        "password": "Password must be between 8 and 255 characters",
        "phone": "Phone must be a valid phone number (10-15 digits)",
    }
