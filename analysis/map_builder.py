from typing import Protocol

import folium

import config


class MarkerSurface(Protocol):
    """What the renderer needs from a map: drop all point markers, add one."""

    def clear_markers(self) -> None: ...

    def draw_marker(self, point, style, popup_html: str) -> None: ...


def build_base_map():
    """
    Empty Folium map of the continental US:
      Layer 1 — OpenStreetMap tiles (with attribution)
    Point markers are added on top by FoliumSurface.
    """
    m = folium.Map(location=config.MAP_CENTER, zoom_start=config.MAP_ZOOM, tiles=None)
    folium.TileLayer(
        tiles=config.TILE_URL,
        attr=config.TILE_ATTRIBUTION,
        name='OpenStreetMap',
    ).add_to(m)
    return m


class FoliumSurface:
    """MarkerSurface backed by a folium.Map."""

    MARKER_TYPES = (folium.Marker, folium.CircleMarker)

    def __init__(self, m=None):
        self.map = m if m is not None else build_base_map()

    def _marker_keys(self):
        return [key for key, child in self.map._children.items()
                if isinstance(child, self.MARKER_TYPES)]

    def marker_count(self):
        return len(self._marker_keys())

    def clear_markers(self):
        # Tiles and any other layers stay on the map
        for key in self._marker_keys():
            del self.map._children[key]

    def draw_marker(self, point, style, popup_html):
        folium.CircleMarker(
            location=[point.latitude, point.longitude],
            radius=style.radius,
            color=style.color,
            fill=True,
            fill_color=style.fill_color,
            fill_opacity=style.fill_opacity,
            popup=folium.Popup(popup_html, max_width=config.POPUP_MAX_WIDTH),
            tooltip=point.name,
        ).add_to(self.map)
