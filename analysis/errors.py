"""Error taxonomy for loading and rendering the bubble map."""


class BubbleMapError(Exception):
    pass


# ── Load (fatal to initialization) ────────────────────────────────────────────

class LoadError(BubbleMapError):
    """Raised when the source datasets cannot be loaded."""


class HttpLoadError(LoadError):
    def __init__(self, stats_status, geo_status):
        self.stats_status = stats_status
        self.geo_status = geo_status
        super().__init__(
            f"HTTP error! Status: {stats_status} or {geo_status}"
        )


class ParseLoadError(LoadError):
    pass


class ShapeLoadError(LoadError):
    pass


# ── Selection / render (contained to one render cycle) ────────────────────────

class SelectionError(BubbleMapError):
    pass


class SelectionIncomplete(SelectionError):
    pass


class InvalidSelection(SelectionError, ValueError):
    pass


class NoMatchingData(SelectionError):
    pass


class GeometryMissing(BubbleMapError):
    def __init__(self, state_code):
        self.state_code = state_code
        super().__init__(f"No geometry for state {state_code!r}")


class RenderFailure(BubbleMapError):
    pass
