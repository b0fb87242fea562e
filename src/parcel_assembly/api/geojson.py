from typing import Any, Dict, Iterable

from parcel_assembly.parcels.features import ParcelFeature


def to_featurecollection(features: Iterable[ParcelFeature]) -> Dict[str, Any]:
    """Serialize a rendered collection for a GeoJSON map source.

    Role tags ride along in properties so pointer hits can be classified.
    """

    return {
        "type": "FeatureCollection",
        "features": [feature.to_geojson_feature() for feature in features or []],
    }
