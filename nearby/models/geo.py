"""Shared point columns for geo entities"""

from sqlalchemy import Column, Numeric, String, event

from nearby.core.geo import to_wkt_point


class GeoPointMixin:
    """Latitude/longitude pair plus the derived WKT geometry.

    ``location`` is recomputed from the pair on every insert and update and
    is never assigned directly.
    """

    latitude = Column(Numeric(10, 7, asdecimal=False), nullable=False)
    longitude = Column(Numeric(10, 7, asdecimal=False), nullable=False)
    location = Column(String(64), nullable=False)

    def sync_location(self) -> None:
        self.location = to_wkt_point(self.latitude, self.longitude)


@event.listens_for(GeoPointMixin, "before_insert", propagate=True)
@event.listens_for(GeoPointMixin, "before_update", propagate=True)
def _derive_location(mapper, connection, target) -> None:
    target.sync_location()
