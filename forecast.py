# ─────────────────────────────────────────────────────────────────
# forecast.py — The precipitation check
#
# This is the check the scheduler runs for each subscriber. It asks
# the weather service's nowcast alert endpoint whether rain or snow
# is about to arrive at the subscriber's location and, if so, tells
# the subscriber.
#
# Anything that goes wrong (network, bad JSON, unexpected shape,
# failed delivery) is raised as CheckError. The scheduler logs it
# and tries again on a later tick.
# ─────────────────────────────────────────────────────────────────

import logging
from typing import Callable

import httpx

from alerts import fire_alert
from models import Location

logger = logging.getLogger("forecast")

# Alert type the service returns when nothing is coming
NO_PRECIPITATION = "noprec"


class CheckError(Exception):
    """The forecast lookup or the follow-up notification failed."""


class ForecastChecker:
    """
    Async callable `(key, location, now) -> bool` for the scheduler.

    Returns True when precipitation is expected and the subscriber
    was notified, False when the sky is clear.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        alert_url: str,
        map_url: str,
        notify: Callable[[int, str, str], None] = fire_alert,
        lang: str = "en",
    ):
        self.client = client
        self.alert_url = alert_url
        self.map_url = map_url
        self.notify = notify
        self.lang = lang

    async def __call__(self, key: int, location: Location, now: int) -> bool:
        params = {
            "lat": str(location.lat),
            "lon": str(location.lon),
            "time": str(now),
            "allow_absent_alert": "true",
            "lang": self.lang,
        }

        logger.info(f"{key} request {self.alert_url} {params}")

        try:
            response = await self.client.get(self.alert_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise CheckError(f"error requesting weather: {exc}") from exc
        except ValueError as exc:
            raise CheckError(f"weather response is not JSON: {exc}") from exc

        logger.info(f"{key} response {payload}")

        try:
            alert_type = payload["alert"]["type"]
            title = payload["alert"]["title"]
        except (KeyError, TypeError) as exc:
            raise CheckError(f"unexpected weather response: {payload!r}") from exc

        if alert_type == NO_PRECIPITATION:
            return False

        try:
            self.notify(key, title, self.map_link(location))
        except Exception as exc:
            raise CheckError(f"failed to notify {key}: {exc}") from exc

        return True

    def map_link(self, location: Location) -> str:
        return f"{self.map_url}?lat={location.lat}&lon={location.lon}&z=9&le_Lightning=1"
