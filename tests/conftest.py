import json

import httpx
import pytest

from analysis.loader import build_dataset

STATS = [
    {"state_abbr": "CA", "data_year": 2019, "Population": 39500000, "Unemployment_Rate": 4.2,
     "Violent_rate": 450, "Property_rate": 2000},
    {"state_abbr": "TX", "data_year": 2019, "Population": 29000000, "Unemployment_Rate": 3.5,
     "Violent_rate": 300, "Property_rate": 2500},
    {"state_abbr": "NY", "data_year": 2019, "Population": 19450000, "Unemployment_Rate": 3.9,
     "Violent_rate": 225, "Property_rate": 1500},
    {"state_abbr": "GU", "data_year": 2019, "Population": 168000, "Unemployment_Rate": 5.0,
     "Violent_rate": 100, "Property_rate": 900},
    {"state_abbr": "CA", "data_year": 2018, "Population": 39460000, "Unemployment_Rate": 4.3,
     "Violent_rate": 400, "Property_rate": 2100},
    {"state_abbr": "TX", "data_year": 2018, "Population": 28600000, "Unemployment_Rate": 3.9,
     "Violent_rate": 410},
]

GEO = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "properties": {"STATE": "06", "NAME": "California"},
         "geometry": {"type": "Point", "coordinates": [-119.4, 36.7]}},
        {"type": "Feature", "properties": {"STATE": "TX", "NAME": "Texas"},
         "geometry": {"type": "Point", "coordinates": [-99.3, 31.4]}},
        {"type": "Feature", "properties": {"STATE": "36", "NAME": "New York"},
         "geometry": {"type": "Polygon", "coordinates": [
             [[-77.0, 42.0], [-75.0, 42.0], [-75.0, 44.0], [-77.0, 44.0], [-77.0, 42.0]]
         ]}},
    ],
}

STATS_URL = "http://data.test/data_with_coordinates.json"
GEO_URL = "http://data.test/us-states.json"


class FakeSurface:
    """Records what the renderer asked the map to do."""

    def __init__(self):
        self.markers = []
        self.clears = 0

    def clear_markers(self):
        self.clears += 1
        self.markers = []

    def draw_marker(self, point, style, popup_html):
        self.markers.append((point, style, popup_html))


@pytest.fixture
def dataset():
    return build_dataset(STATS, GEO)


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def make_transport():
    def _make(stats=STATS, geo=GEO, stats_status=200, geo_status=200):
        def handler(request):
            if request.url.path.endswith("data_with_coordinates.json"):
                status, body = stats_status, stats
            else:
                status, body = geo_status, geo
            text = body if isinstance(body, str) else json.dumps(body)
            return httpx.Response(status, text=text)
        return httpx.MockTransport(handler)
    return _make
