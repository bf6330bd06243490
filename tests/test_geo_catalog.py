import pytest

from contacts_directory.geo_catalog import (
    GeoCatalog,
    iso_catalog_mapping,
    load_geo_catalog,
    overlay_countries,
)


def test_bundled_catalog_cardinalities(bundled_catalog):
    us = bundled_catalog.country("US")
    assert us is not None and us.name == "United States"
    assert bundled_catalog.has_states("US")
    assert not bundled_catalog.has_cities("US", "FL")
    assert not bundled_catalog.has_cities("US", "GA")
    assert [city.name for city in bundled_catalog.cities_of("US", "MA")][:2] == [
        "Boston",
        "Cambridge",
    ]
    assert not bundled_catalog.has_states("SG")
    assert bundled_catalog.has_cities("SG")
    assert not bundled_catalog.has_states("LI")
    assert not bundled_catalog.has_cities("LI")


def test_bundled_catalog_keeps_yaml_keyword_codes_as_strings(bundled_catalog):
    assert bundled_catalog.country("NO") is not None
    assert bundled_catalog.state("CA", "ON") is not None
    assert bundled_catalog.state("JP", "13").name == "Tokyo"


def test_lookups_for_unknown_keys_are_empty(small_catalog):
    assert small_catalog.country("ZZ") is None
    assert small_catalog.states_of("ZZ") == ()
    assert small_catalog.cities_of("ZZ") == ()
    assert small_catalog.cities_of("US", "XX") == ()
    assert small_catalog.state("US", None) is None


def test_states_keep_source_order(small_catalog):
    assert [state.code for state in small_catalog.states_of("US")] == ["FL", "GA", "MA"]
    assert [city.name for city in small_catalog.cities_of("CA", "ON")] == ["Toronto", "Ottawa"]
    assert small_catalog.cities_of("US") == ()


def test_country_accepts_lower_case_code(small_catalog):
    assert small_catalog.country("us").code == "US"
    assert "us" in small_catalog
    assert "ZZ" not in small_catalog


def test_duplicate_country_codes_are_rejected():
    with pytest.raises(ValueError):
        GeoCatalog.from_mapping({"countries": [{"code": "US"}, {"code": "us"}]})


def test_load_custom_catalog(tmp_path):
    path = tmp_path / "geo.yaml"
    path.write_text(
        "\n".join(
            [
                "countries:",
                "  - code: fr",
                "    name: France",
                "    states:",
                "      - {code: IDF, name: Ile-de-France, cities: [Paris]}",
            ]
        ),
        encoding="utf-8",
    )
    catalog = load_geo_catalog(path)
    assert len(catalog) == 1
    assert list(catalog.country_codes()) == ["FR"]
    assert catalog.cities_of("FR", "IDF")[0].state_code == "IDF"


def test_bundled_catalog_covers_iso_countries(bundled_catalog):
    assert len(bundled_catalog) >= 240
    for code in ["ES", "IT", "CN", "NL"]:
        assert code in bundled_catalog
        assert bundled_catalog.has_states(code)
    assert bundled_catalog.state("ES", "MD") is not None
    assert not bundled_catalog.has_cities("ES", "MD")
    # curated entries win over the ISO data
    assert bundled_catalog.country("RU").name == "Russia"
    assert [state.code for state in bundled_catalog.states_of("RU")][0] == "MOW"


def test_iso_mapping_uses_subdivision_suffixes():
    countries = {entry["code"]: entry for entry in iso_catalog_mapping()["countries"]}
    us_codes = [state["code"] for state in countries["US"]["states"]]
    assert "FL" in us_codes and "CA" in us_codes
    assert all("-" not in code for code in us_codes)
    assert us_codes == sorted(us_codes)
    assert "MD" in [state["code"] for state in countries["ES"]["states"]]


def test_overlay_replaces_only_listed_keys():
    base = [
        {"code": "ES", "name": "Spain", "states": [{"code": "MD", "name": "Madrid"}]},
        {"code": "IT", "name": "Italy"},
    ]
    overlay = [{"code": "es", "states": []}, {"code": "XK", "name": "Kosovo"}]
    merged = overlay_countries(base, overlay)
    catalog = GeoCatalog.from_mapping({"countries": merged})
    assert list(catalog.country_codes()) == ["ES", "IT", "XK"]
    assert catalog.country("ES").name == "Spain"
    assert not catalog.has_states("ES")
    assert base[0]["states"] == [{"code": "MD", "name": "Madrid"}]


def test_custom_catalog_can_extend_iso(tmp_path):
    path = tmp_path / "geo.yaml"
    path.write_text(
        "\n".join(
            [
                "base: iso3166",
                "countries:",
                "  - code: ES",
                "    states: []",
                "    cities: [Madrid, Barcelona]",
            ]
        ),
        encoding="utf-8",
    )
    catalog = load_geo_catalog(path)
    assert "IT" in catalog
    assert not catalog.has_states("ES")
    assert [city.name for city in catalog.cities_of("ES")] == ["Madrid", "Barcelona"]


def test_unknown_catalog_base_is_rejected(tmp_path):
    path = tmp_path / "geo.yaml"
    path.write_text("base: geonames\ncountries: []\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_geo_catalog(path)
