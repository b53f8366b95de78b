import httpx
import pytest

from forecast import CheckError, ForecastChecker
from models import Location

TALLINN = Location(59.437, 24.7536)
ALERT_URL = "https://weather.test/front/maps/prec-alert"
MAP_URL = "https://weather.test/maps/nowcast"


def make_checker(handler, notify=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sent = []

    def record(key, title, link):
        sent.append((key, title, link))

    checker = ForecastChecker(client, ALERT_URL, MAP_URL, notify=notify or record)
    return checker, sent


@pytest.mark.asyncio
async def test_clear_sky_returns_false():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"alert": {"type": "noprec", "title": "No precipitation"}})

    checker, sent = make_checker(handler)

    assert await checker(42, TALLINN, 1700000000) is False
    assert sent == []
    assert seen["params"] == {
        "lat": "59.437",
        "lon": "24.7536",
        "time": "1700000000",
        "allow_absent_alert": "true",
        "lang": "en",
    }


@pytest.mark.asyncio
async def test_precipitation_notifies_and_returns_true():
    def handler(request):
        return httpx.Response(200, json={"alert": {"type": "rain", "title": "Rain in 10 minutes"}})

    checker, sent = make_checker(handler)

    assert await checker(42, TALLINN, 1700000000) is True
    assert sent == [
        (42, "Rain in 10 minutes", f"{MAP_URL}?lat=59.437&lon=24.7536&z=9&le_Lightning=1"),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, body",
    [
        (503, {"text": "unavailable"}),
        (200, {"text": "<html>not json</html>"}),
        (200, {"json": {"forecast": []}}),
        (200, {"json": {"alert": None}}),
    ],
)
async def test_bad_responses_raise_check_error(status, body):
    checker, sent = make_checker(lambda request: httpx.Response(status, **body))

    with pytest.raises(CheckError):
        await checker(42, TALLINN, 1700000000)
    assert sent == []


@pytest.mark.asyncio
async def test_network_error_raises_check_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    checker, _ = make_checker(handler)

    with pytest.raises(CheckError):
        await checker(42, TALLINN, 1700000000)


@pytest.mark.asyncio
async def test_failed_delivery_raises_check_error():
    def handler(request):
        return httpx.Response(200, json={"alert": {"type": "snow", "title": "Snow soon"}})

    def broken_notify(key, title, link):
        raise ConnectionError("chat api unreachable")

    checker, _ = make_checker(handler, notify=broken_notify)

    with pytest.raises(CheckError, match="failed to notify 42"):
        await checker(42, TALLINN, 1700000000)
