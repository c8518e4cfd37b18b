"""BikePath — crowdsourced bicycle-path quality scoring and route matching.

One-liner API::

    import bikepath

    bikepath.find_routes("bikepath.db", "Via Roma", "Corso Como")
    bikepath.aggregate_street("bikepath.db", street_id)
    bikepath.recompute_path("bikepath.db", path_id)
"""

__version__ = "1.0.0"

from bikepath.api import (
    PathScoreResult,
    RouteSearchResult,
    aggregate_street,
    find_routes,
    recompute_path,
)

__all__ = [
    "find_routes",
    "aggregate_street",
    "recompute_path",
    "RouteSearchResult",
    "PathScoreResult",
    "__version__",
]
