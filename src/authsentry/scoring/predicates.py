"""Pluggable predicates for the unusual_ip and fingerprint_changed rules.

A predicate is any callable taking (event, baseline) and returning bool.
Both rules default to `never`; deployments with a geo-IP provider or
fingerprint data plug in the implementations below or their own.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Protocol

from authsentry.common.constants import GeoConstants
from authsentry.common.exceptions import AuthSentryError, StoreUnavailable
from authsentry.data.schemas.baseline import UserBaseline
from authsentry.data.schemas.login_event import LoginEvent

logger = logging.getLogger(__name__)


class RulePredicate(Protocol):
    def __call__(self, event: LoginEvent, baseline: UserBaseline) -> bool:
        ...


def never(event: LoginEvent, baseline: UserBaseline) -> bool:
    """Default predicate; the rule contributes nothing."""
    return False


def evaluate_predicate(
    name: str,
    predicate: RulePredicate,
    event: LoginEvent,
    baseline: UserBaseline,
) -> bool:
    """Run a pluggable predicate, surfacing provider failures as retryable.

    A predicate that cannot answer must never read as "did not fire", since
    that would lower the score. Engine errors propagate unchanged; anything
    else is wrapped in StoreUnavailable naming the predicate.

    Raises:
        StoreUnavailable: If the predicate's backing provider failed
    """
    try:
        return bool(predicate(event, baseline))
    except AuthSentryError:
        raise
    except Exception as e:
        logger.error(
            f"Predicate {name} failed: {type(e).__name__}: {e}",
            extra={"rule": name, "event_id": event.event_id},
        )
        raise StoreUnavailable(
            f"Predicate {name} could not be evaluated: {e}",
            store_name=name,
            details={"error_type": type(e).__name__},
        ) from e


@dataclass(frozen=True)
class GeoPoint:
    """Geographic coordinates in decimal degrees."""
    latitude: float
    longitude: float


class GeoIPProvider(Protocol):
    def locate(self, ip: str) -> Optional[GeoPoint]:
        """Return the location of an IP, or None when unknown."""
        ...


class StaticGeoIPProvider:
    """Geo-IP lookups from a fixed table. Intended for tests and development."""

    def __init__(self, locations: Mapping[str, GeoPoint]):
        self._locations = dict(locations)

    def locate(self, ip: str) -> Optional[GeoPoint]:
        return self._locations.get(ip)


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * GeoConstants.EARTH_RADIUS_KM * math.asin(math.sqrt(h))


class ImpossibleTravelPredicate:
    """Flags travel from the last successful login faster than a plane.

    Compares the geolocated last successful IP in the baseline with the
    current IP. Logins from distant places within a few seconds of each
    other always count. Any missing location or history evaluates false.
    """

    def __init__(
        self,
        geo_provider: GeoIPProvider,
        max_velocity_kmh: float = GeoConstants.MAX_VELOCITY_KMH,
    ):
        self.geo_provider = geo_provider
        self.max_velocity_kmh = max_velocity_kmh

    def velocity_kmh(
        self,
        origin: GeoPoint,
        origin_at: datetime,
        destination: GeoPoint,
        destination_at: datetime,
    ) -> Optional[float]:
        """Implied speed between two sightings; None when simultaneous."""
        hours = abs((destination_at - origin_at).total_seconds()) / 3600
        if hours < GeoConstants.SIMULTANEOUS_LOGIN_HOURS:
            return None
        return haversine_km(origin, destination) / hours

    def __call__(self, event: LoginEvent, baseline: UserBaseline) -> bool:
        if baseline.last_success_ip is None or baseline.last_success_at is None:
            return False
        if baseline.last_success_ip == event.ip:
            return False

        origin = self.geo_provider.locate(baseline.last_success_ip)
        destination = self.geo_provider.locate(event.ip)
        if origin is None or destination is None:
            return False

        velocity = self.velocity_kmh(
            origin, baseline.last_success_at, destination, event.timestamp
        )
        if velocity is None:
            distance = haversine_km(origin, destination)
            impossible = distance > GeoConstants.SIMULTANEOUS_MIN_DISTANCE_KM
            if impossible:
                logger.info(
                    f"Simultaneous logins {distance:.1f} km apart for user {event.user_id}",
                    extra={"user_id": event.user_id, "ip": event.ip},
                )
            return impossible

        if velocity > self.max_velocity_kmh:
            logger.info(
                f"Impossible travel for user {event.user_id}: {velocity:.0f} km/h "
                f"(max {self.max_velocity_kmh:.0f})",
                extra={"user_id": event.user_id, "ip": event.ip},
            )
            return True
        return False


class DeviceMismatchPredicate:
    """Flags a user-agent absent from every recent fingerprint of the user.

    Users with no recent fingerprints never match.
    """

    def __call__(self, event: LoginEvent, baseline: UserBaseline) -> bool:
        if not baseline.fingerprint_user_agents:
            return False
        return event.user_agent not in baseline.fingerprint_user_agents


def device_mismatch(event: LoginEvent, baseline: UserBaseline) -> bool:
    return DeviceMismatchPredicate()(event, baseline)
