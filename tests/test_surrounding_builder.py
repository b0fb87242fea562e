from parcel_assembly.parcels.features import SurroundingRole
from parcel_assembly.parcels.fingerprint import fingerprint
from parcel_assembly.parcels.surrounding import build_surrounding, raw_parcels_from_collection


def test_flagged_main_and_duplicates_are_dropped(make_square):
    main = make_square(-74.0, 40.0)
    candidates = [
        make_square(-74.0, 40.0, is_main_parcel=True),
        make_square(-74.0, 40.0),
        make_square(-74.001, 40.0, address="1 A St"),
        make_square(-74.001, 40.0, address="1 A St again"),
        {"type": "Feature", "geometry": None, "properties": {}},
    ]

    out = build_surrounding(candidates, {fingerprint(main)})

    assert len(out) == 1
    assert out[0].properties["address"] == "1 A St"
    assert out[0].role == SurroundingRole()


def test_properties_pass_through_for_the_click_handler(make_square):
    props = {"address": "5 B St", "city": "Newark", "state": "NJ", "zip": "07102", "lat": 40.1, "lon": -74.1}
    out = build_surrounding([make_square(-74.1, 40.1, **props)], set())
    assert out[0].properties == props


def test_raw_parcels_accepts_collection_or_list(make_square):
    parcel = make_square(-74.0, 40.0)
    assert raw_parcels_from_collection({"type": "FeatureCollection", "features": [parcel]}) == [parcel]
    assert raw_parcels_from_collection([parcel, "junk"]) == [parcel]
    assert raw_parcels_from_collection(None) == []
