"""
SQLAlchemy Table definitions for the parcelwatch database.

These Table objects mirror the schema defined in migrations/001_initial_schema.sql.
JSON columns are stored as JSONB on PostgreSQL and plain JSON elsewhere.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

JSONType = JSON().with_variant(JSONB(), "postgresql")

# =============================================================================
# TABLE: marketplace_sessions
# =============================================================================

marketplace_sessions = Table(
    "marketplace_sessions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("credential", Text, nullable=False),
    Column("status", String(20), nullable=False, default="pending"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("idx_marketplace_sessions_status", "status"),
)

# =============================================================================
# TABLE: orders (active order cache)
# =============================================================================

orders = Table(
    "orders",
    metadata,
    Column("id", String(64), primary_key=True),
    Column(
        "session_id",
        String(36),
        ForeignKey("marketplace_sessions.id", ondelete="SET NULL"),
    ),
    # Order details
    Column("shop", String(255)),
    Column("product", Text, nullable=False),
    Column("quantity", Integer, nullable=False, default=1),
    Column("unit_price", JSONType),
    Column("total_price", JSONType),
    Column("image", Text),
    Column("recipient_name", String(255)),
    Column("recipient_phone", String(20)),
    # Tracking
    Column("tracking_number", String(64)),
    Column("carrier", String(10)),
    Column("tracking_method", Integer, nullable=False, default=0),
    Column("status", Text, nullable=False),
    Column("status_time", DateTime(timezone=True)),
    Column("current_location", Text),
    Column("next_location", Text),
    # Timestamps
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("idx_orders_session_id", "session_id"),
    Index("idx_orders_tracking_method", "tracking_method"),
)

# =============================================================================
# TABLE: delivered_orders (archive)
# =============================================================================

delivered_orders = Table(
    "delivered_orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("order_id", String(64), nullable=False, unique=True),
    Column("order_snapshot", JSONType, nullable=False),
    Column("delivered_via", String(20), nullable=False),
    Column("delivered_at", DateTime(timezone=True), nullable=False),
    Index("idx_delivered_orders_delivered_at", "delivered_at", "id"),
)

# =============================================================================
# TABLE: tracking_journeys
# =============================================================================

tracking_journeys = Table(
    "tracking_journeys",
    metadata,
    Column("tracking_number", String(64), primary_key=True),
    Column("carrier", String(10), nullable=False),
    Column("events", JSONType, nullable=False, default=[]),
    Column("last_fetched", DateTime(timezone=True), nullable=False),
)
