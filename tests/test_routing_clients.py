import httpx
import pytest

from src.geopricing.errors import RoutingFailure
from src.geopricing.models.domain import Coordinates
from src.geopricing.services.routing import (
    DistanceMatrixClient,
    OSRMClient,
    StraightLineEstimator,
    get_travel_time_provider,
)

ORIGIN = Coordinates(43.6532, -79.3832)
DESTINATION = Coordinates(43.7001, -79.4163)


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_osrm_route_returns_minutes_and_distance() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["overview"] = request.url.params["overview"]
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 1500.0, "distance": 12345.0}]})

    client = OSRMClient(base_url="http://osrm.test/", client=_client(handler))
    result = client.travel_time(ORIGIN, DESTINATION, traffic_model="pessimistic")

    assert seen["path"] == "/route/v1/driving/-79.3832,43.6532;-79.4163,43.7001"
    assert seen["overview"] == "false"
    assert result.minutes == 25.0
    assert result.distance_meters == 12345.0
    assert result.distance_text == "12.3 km"
    assert result.provider == "osrm"


def test_osrm_no_route_is_a_routing_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "NoRoute", "message": "Impossible route between points"})

    client = OSRMClient(base_url="http://osrm.test", client=_client(handler))

    with pytest.raises(RoutingFailure, match="Impossible route"):
        client.travel_time(ORIGIN, DESTINATION)


def test_osrm_rate_limit_is_a_routing_failure() -> None:
    client = OSRMClient(base_url="http://osrm.test", client=_client(lambda request: httpx.Response(429)))

    with pytest.raises(RoutingFailure):
        client.travel_time(ORIGIN, DESTINATION)


def test_osrm_timeout_retries_then_fails() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    client = OSRMClient(
        base_url="http://osrm.test",
        client=_client(handler),
        max_retries=1,
        backoff_seconds=0,
    )

    with pytest.raises(RoutingFailure) as excinfo:
        client.travel_time(ORIGIN, DESTINATION)

    assert len(attempts) == 2
    assert excinfo.value.retryable


def test_osrm_requires_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.geopricing.config import settings

    monkeypatch.setattr(settings, "osrm_base_url", None)

    with pytest.raises(ValueError):
        OSRMClient()


def _matrix(element: dict, status: str = "OK") -> dict:
    return {"status": status, "rows": [{"elements": [element]}]}


def test_distance_matrix_prefers_duration_in_traffic() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(
            200,
            json=_matrix(
                {
                    "status": "OK",
                    "duration": {"value": 1200, "text": "20 mins"},
                    "duration_in_traffic": {"value": 1800, "text": "30 mins"},
                    "distance": {"value": 15000, "text": "15.0 km"},
                }
            ),
        )

    client = DistanceMatrixClient(api_key="key", client=_client(handler))
    result = client.travel_time(ORIGIN, DESTINATION, traffic_model="pessimistic")

    assert seen["traffic_model"] == "pessimistic"
    assert seen["origins"] == "43.6532,-79.3832"
    assert result.minutes == 30.0
    assert result.duration_text == "30 mins"
    assert result.provider == "google"


def test_distance_matrix_unknown_traffic_model_falls_back_to_best_guess() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        element = {"status": "OK", "duration": {"value": 600}, "distance": {"value": 5000}}
        return httpx.Response(200, json=_matrix(element))

    result = DistanceMatrixClient(api_key="key", client=_client(handler)).travel_time(
        ORIGIN, DESTINATION, traffic_model="fastest"
    )

    assert seen["traffic_model"] == "best_guess"
    assert result.minutes == 10.0
    assert result.distance_text == "5.0 km"


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "OVER_QUERY_LIMIT", "rows": []},
        _matrix({"status": "ZERO_RESULTS"}),
    ],
)
def test_distance_matrix_errors_are_routing_failures(payload: dict) -> None:
    client = DistanceMatrixClient(api_key="key", client=_client(lambda request: httpx.Response(200, json=payload)))

    with pytest.raises(RoutingFailure):
        client.travel_time(ORIGIN, DESTINATION)


def test_straight_line_estimate() -> None:
    estimator = StraightLineEstimator(average_speed_kmh=60.0, road_factor=1.0)

    same_place = estimator.travel_time(ORIGIN, ORIGIN)
    one_degree = estimator.travel_time(Coordinates(0.0, 0.0), Coordinates(1.0, 0.0))

    assert same_place.minutes == 0.0
    # one degree of latitude is ~111.2 km, so ~111 minutes at 60 km/h
    assert 110.0 < one_degree.minutes < 112.5
    assert one_degree.duration_text.endswith("(estimated)")


def test_provider_factory() -> None:
    assert isinstance(get_travel_time_provider("estimate"), StraightLineEstimator)
    with pytest.raises(ValueError):
        get_travel_time_provider("carrier-pigeon")
