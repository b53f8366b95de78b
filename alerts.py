# ─────────────────────────────────────────────────────────────────
# alerts.py — Alert Notifications
#
# SEPARATION OF CONCERNS:
# All notification logic lives here. If delivery moves from the
# log to a real chat or push API, we only change THIS file.
# forecast.py only knows that it calls fire_alert().
# ─────────────────────────────────────────────────────────────────

import logging

logger = logging.getLogger("alerts")


def simulate_delivery(key: int, title: str, link: str):
    """
    Logs the message the subscriber would receive.

    A real channel would send the text (and a map picture) to the
    subscriber's chat and raise if the send failed, which the
    scheduler then treats as a failed check.
    """

    logger.info("=" * 55)
    logger.info("📨 SIMULATING DELIVERY")
    logger.info(f"   To:      subscriber {key}")
    logger.info(f"   Text:    Oops! {title}")
    logger.info(f"   Map:     {link}")
    logger.info("=" * 55)


def fire_alert(key: int, title: str, link: str):
    """Called by the forecast check when precipitation is on its way."""

    alert_payload = {
        "ALERT": f"Precipitation expected for subscriber {key}: {title}",
        "map": link,
    }

    logger.critical("🚨 " + "=" * 50)
    logger.critical(f"RAIN ALERT: {alert_payload}")
    logger.critical("=" * 50)

    simulate_delivery(key, title, link)
