"""initial travel schema

Revision ID: 3b9d0c6e1a27
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3b9d0c6e1a27"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum("ADMIN", "CUSTOMER", "AGENT", name="userrole")
tour_type = sa.Enum("ADVENTURE", "CULTURAL", "BEACH", "CITY", "WILDLIFE", "CRUISE", name="tourtype")
tour_status = sa.Enum("UPCOMING", "ONGOING", "COMPLETED", "CANCELLED", name="tourstatus")
flight_class = sa.Enum("ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST_CLASS", name="flightclass")
booking_type = sa.Enum("TOUR", "ROOM", "FLIGHT", name="bookingtype")
booking_status = sa.Enum("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", name="bookingstatus")
payment_status = sa.Enum("PENDING", "COMPLETED", "FAILED", "REFUNDED", name="paymentstatus")
payment_method = sa.Enum("CREDIT_CARD", "DEBIT_CARD", "MOBILE_MONEY", "BANK_TRANSFER", name="paymentmethod")

ENUMS = (
    user_role,
    tour_type,
    tour_status,
    flight_class,
    booking_type,
    booking_status,
    payment_status,
    payment_method,
)


def timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("address", sa.String(255)),
        sa.Column("profile_picture", sa.String()),
        *timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "destinations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("country", sa.String(100), nullable=False),
        sa.Column("city", sa.String(100)),
        sa.Column("photo", sa.String()),
        *timestamps(),
    )
    op.create_index("ix_destinations_id", "destinations", ["id"])
    op.create_index("ix_destinations_name", "destinations", ["name"])

    op.create_table(
        "hotels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("destination_id", sa.Integer(), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("country", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("star_rating", sa.Integer(), nullable=False),
        sa.Column("amenities", sa.JSON(), nullable=False),
        sa.Column("photo", sa.String()),
        *timestamps(),
    )
    op.create_index("ix_hotels_id", "hotels", ["id"])
    op.create_index("ix_hotels_destination_id", "hotels", ["destination_id"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hotel_id", sa.Integer(), sa.ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("amenities", sa.JSON(), nullable=False),
        sa.Column("photo", sa.String()),
        sa.Column("available", sa.Boolean(), nullable=False),
        *timestamps(),
    )
    op.create_index("ix_rooms_id", "rooms", ["id"])
    op.create_index("ix_rooms_hotel_id", "rooms", ["hotel_id"])

    op.create_table(
        "flights",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("flight_number", sa.String(10), nullable=False),
        sa.Column("airline", sa.String(100), nullable=False),
        sa.Column("departure", sa.DateTime(), nullable=False),
        sa.Column("arrival", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("stops", sa.Integer(), nullable=False),
        sa.Column("origin_id", sa.Integer(), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("destination_id", sa.Integer(), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("flight_class", flight_class, nullable=False),
        sa.Column("seats_available", sa.Integer(), nullable=False),
        sa.Column("photo", sa.String()),
        *timestamps(),
        sa.CheckConstraint("seats_available >= 0", name="ck_flight_seats_non_negative"),
        sa.CheckConstraint("departure < arrival", name="ck_flight_schedule"),
    )
    op.create_index("ix_flights_id", "flights", ["id"])
    op.create_index("ix_flights_flight_number", "flights", ["flight_number"])
    op.create_index("ix_flights_origin_id", "flights", ["origin_id"])
    op.create_index("ix_flights_destination_id", "flights", ["destination_id"])

    op.create_table(
        "tours",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("type", tour_type, nullable=False),
        sa.Column("status", tour_status, nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("max_guests", sa.Integer(), nullable=False),
        sa.Column("guests_booked", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        *timestamps(),
        sa.CheckConstraint("guests_booked >= 0", name="ck_tour_guests_non_negative"),
        sa.CheckConstraint("guests_booked <= max_guests", name="ck_tour_guests_capacity"),
        sa.CheckConstraint("start_date < end_date", name="ck_tour_dates"),
    )
    op.create_index("ix_tours_id", "tours", ["id"])

    op.create_table(
        "tour_itineraries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("activities", sa.Text()),
        sa.Column("description", sa.Text()),
        *timestamps(),
        sa.UniqueConstraint("tour_id", "day", name="uq_tour_itinerary_day"),
    )
    op.create_index("ix_tour_itineraries_id", "tour_itineraries", ["id"])
    op.create_index("ix_tour_itineraries_tour_id", "tour_itineraries", ["tour_id"])

    for table in ("tour_inclusions", "tour_exclusions"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
            sa.Column("description", sa.String(255), nullable=False),
            *timestamps(),
        )
        op.create_index(f"ix_{table}_id", table, ["id"])
        op.create_index(f"ix_{table}_tour_id", table, ["tour_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", booking_type, nullable=False),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id")),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id")),
        sa.Column("flight_id", sa.Integer(), sa.ForeignKey("flights.id")),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", booking_status, nullable=False),
        sa.Column("total_price", sa.Float(), nullable=False),
        sa.Column("booking_date", sa.DateTime(), nullable=False),
        *timestamps(),
        sa.CheckConstraint("quantity >= 1", name="ck_booking_quantity"),
        sa.CheckConstraint(
            "(type = 'TOUR' AND tour_id IS NOT NULL AND room_id IS NULL AND flight_id IS NULL)"
            " OR (type = 'ROOM' AND room_id IS NOT NULL AND tour_id IS NULL AND flight_id IS NULL)"
            " OR (type = 'FLIGHT' AND flight_id IS NOT NULL AND tour_id IS NULL AND room_id IS NULL)",
            name="ck_booking_single_target",
        ),
    )
    for column in ("id", "user_id", "tour_id", "room_id", "flight_id", "booking_date"):
        op.create_index(f"ix_bookings_{column}", "bookings", [column])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("transaction_reference", sa.String(100), nullable=False),
        sa.Column("authorization_url", sa.String()),
        sa.Column("payment_date", sa.DateTime()),
        sa.Column("refund_reason", sa.String(255)),
        *timestamps(),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_transaction_reference", "payments", ["transaction_reference"], unique=True)
    op.create_index(
        "uq_payments_booking_open",
        "payments",
        ["booking_id"],
        unique=True,
        sqlite_where=sa.text("status IN ('PENDING', 'COMPLETED')"),
        postgresql_where=sa.text("status IN ('PENDING', 'COMPLETED')"),
    )


def downgrade():
    for table in (
        "payments",
        "bookings",
        "tour_exclusions",
        "tour_inclusions",
        "tour_itineraries",
        "tours",
        "flights",
        "rooms",
        "hotels",
        "destinations",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in ENUMS:
        enum.drop(bind, checkfirst=True)
