"""
Tracking journey repository.

Caches the carrier history of a tracking code for display. A journey is
only overwritten by a longer history.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table

from parcelwatch.db.repositories.base import (
    BaseRepository,
    jsonb_to_models,
    models_to_jsonb,
)
from parcelwatch.db.tables import tracking_journeys
from parcelwatch.models.order import Carrier, TrackingEvent, TrackingJourney


class JourneyRepository(BaseRepository[TrackingJourney]):
    """Repository for TrackingJourney operations."""

    @property
    def table(self) -> Table:
        return tracking_journeys

    @property
    def key(self):
        return self.table.c.tracking_number

    def _row_to_model(self, row: Any) -> TrackingJourney:
        """Convert database row to TrackingJourney model."""
        return TrackingJourney(
            tracking_number=row.tracking_number,
            carrier=Carrier(row.carrier),
            events=jsonb_to_models(row.events, TrackingEvent),
            last_fetched=row.last_fetched,
        )

    def _model_to_dict(self, model: TrackingJourney) -> dict:
        """Convert TrackingJourney model to database dict."""
        return {
            "tracking_number": model.tracking_number,
            "carrier": model.carrier.value,
            "events": models_to_jsonb(model.events),
            "last_fetched": model.last_fetched or datetime.now(timezone.utc),
        }

    def get(self, tracking_number: str) -> TrackingJourney | None:
        """Get the cached journey of a tracking code."""
        return self.get_by_id(tracking_number)

    def save_if_richer(self, journey: TrackingJourney) -> bool:
        """
        Store a journey unless the cached one has at least as many events.

        Returns:
            True if the journey was written
        """
        existing = self.get(journey.tracking_number)
        if existing is None:
            self.create(journey)
            return True

        if len(journey.events) <= len(existing.events):
            return False

        self.update_by_id(
            journey.tracking_number,
            carrier=journey.carrier.value,
            events=models_to_jsonb(journey.events),
            last_fetched=datetime.now(timezone.utc),
        )
        return True

    def delete(self, tracking_number: str | None) -> bool:
        """Drop the cached journey of a tracking code."""
        if not tracking_number:
            return False
        return self.delete_by_id(tracking_number)
