from pathlib import Path

import pytest

from hgvroute.common.errors import ContractError
from hgvroute.pipeline.ingest import detect_delimiter, map_header, parse_destinations, read_destinations


def test_detect_delimiter_prefers_tab_then_semicolon():
    assert detect_delimiter("id\tadresse;ville") == "\t"
    assert detect_delimiter("id;adresse,ville") == ";"
    assert detect_delimiter("id,adresse") == ","


def test_map_header_matches_aliases():
    assert map_header("Code_Postal") == "postcode"
    assert map_header("Adresse livraison") == "address"
    assert map_header("VILLE") == "city"
    assert map_header("Latitude") == "lat"
    assert map_header("lng") == "lon"
    assert map_header("Identifiant") == "id"
    assert map_header("commentaire") is None


def test_parse_semicolon_export_with_decimal_commas():
    text = (
        "Ref;Adresse;CP;Ville;Lat;Lon\n"
        "C-001;\"12 rue de la République; bât. B\";69002;Lyon;;\n"
        "C-002;;13001;Marseille;43,2965;5,3698\n"
        "\n"
    )

    records = parse_destinations(text)

    assert [r.id for r in records] == ["C-001", "C-002"]
    assert records[0].address == "12 rue de la République; bât. B"
    assert records[0].postcode == "69002"
    assert records[0].lat is None
    assert records[1].address is None
    assert (records[1].lat, records[1].lon) == (43.2965, 5.3698)
    assert records[1].label == "13001 Marseille"
    assert all(r.status == "pending" for r in records)


def test_parse_tab_separated_paste_assigns_line_ids():
    text = "adresse\tville\n1 place Bellecour\tLyon\n2 quai du Port\tMarseille"

    records = parse_destinations(text)

    assert [r.id for r in records] == ["Line 1", "Line 2"]
    assert records[1].city == "Marseille"


def test_unparsable_coordinates_ignored():
    records = parse_destinations("address,lat,lon\nParis,abc,2.35")

    assert records[0].lat is None
    assert records[0].lon == 2.35


def test_max_rows_caps_input():
    text = "city\n" + "\n".join(f"Town {i}" for i in range(10))

    assert len(parse_destinations(text, max_rows=3)) == 3


def test_empty_text_gives_no_records():
    assert parse_destinations("\n  \n") == []


def test_header_without_destination_column_rejected():
    with pytest.raises(ContractError):
        parse_destinations("id,comment\n1,hello")


def test_read_destinations_tolerates_bom(tmp_path: Path):
    path = tmp_path / "destinations.csv"
    path.write_text("\ufeffid,address\nX1,Lyon\n", encoding="utf-8")

    records = read_destinations(path)

    assert records[0].id == "X1"
    assert records[0].address == "Lyon"


def test_read_destinations_missing_file(tmp_path: Path):
    with pytest.raises(ContractError):
        read_destinations(tmp_path / "missing.csv")
