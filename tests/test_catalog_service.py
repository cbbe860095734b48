from conftest import run

from models.catalog_models import OrderRecord
from services.catalog.catalog_service import CatalogService, parse_service_row
from utils.database_init import AsyncDatabaseInitializer

CATALOG_CSV = (
    "Nombre,Categoría,Tipo,Precio,Anchos,Sellado,Ojetillos,Bolsillo,DPI,Formatos,Criterios\n"
    "Tela PVC 13 oz,Telas PVC,Gran formato,$5000,0.9;1.2;1.5,sí,x,,72,PDF;JPG,Mínimo 72 dpi\n"
    "Tarjetas de Presentación,Tarjetas,Digital,15000,,,,,300,PDF,\n"
    ",Sin nombre,,,,,,,,,\n"
)


def _write_catalog(tmp_path):
    csv_path = tmp_path / "catalogo.csv"
    csv_path.write_text(CATALOG_CSV, encoding="utf-8")
    info_path = tmp_path / "info.csv"
    info_path.write_text("Horario,Lunes a viernes\nDirección,Av. Siempre Viva 742\n", encoding="utf-8")
    return csv_path, info_path


def test_parse_service_row_spanish_headers():
    service = parse_service_row({
        "Nombre": "Banderas Satén",
        "Categoría": "Banderas",
        "Anchos": "1;1,5",
        "Sellado": "Sí",
        "Ojetillos": "no",
        "Formatos": "PDF; TIFF",
    })
    assert service.name == "Banderas Satén"
    assert service.available_widths == [1.0, 1.5]
    assert service.available_finishes == {"sellado": True, "ojetillos": False, "bolsillo": False}
    assert service.formats == ["pdf", "tiff"]
    assert service.offered_finishes() == ["sellado"]


def test_parse_service_row_requires_name_and_category():
    assert parse_service_row({"Nombre": "Solo nombre"}) is None
    assert parse_service_row({"Categoría": "Solo categoría"}) is None


def test_refresh_reads_export_and_caches_it(tmp_path):
    csv_path, info_path = _write_catalog(tmp_path)
    db = AsyncDatabaseInitializer(tmp_path / "db")
    catalog = CatalogService(db, csv_path, info_path)

    assert run(catalog.refresh()) == 2
    services = catalog.get_services()
    assert sorted(services) == ["Tarjetas", "Telas PVC"]
    tela = run(catalog.get_service_info("TELA PVC 13 OZ"))
    assert tela.price == 5000.0
    assert tela.available_finishes["sellado"] and tela.available_finishes["ojetillos"]
    assert catalog.additional_info["Dirección"] == "Av. Siempre Viva 742"

    csv_path.unlink()
    info_path.unlink()
    fallback = CatalogService(db, csv_path, info_path)
    assert run(fallback.refresh()) == 2
    assert run(fallback.get_service_info("Tarjetas de Presentación")).min_dpi == 300
    assert fallback.additional_info["Horario"] == "Lunes a viernes"


def test_find_similar_suggests_close_names(catalog):
    assert catalog.find_similar("tela pvc")[0] == "Tela PVC 13 oz"
    assert catalog.find_similar("tarjetas presentacion")[0] == "Tarjetas de Presentación"
    assert catalog.find_similar("") == []


def test_save_order_returns_row_index(catalog):
    record = OrderRecord(
        date="06-03-2024 14:05hrs - miércoles",
        phone="56******678",
        name="Ana",
        details="Tarjetas - 100x Tarjetas de Presentación",
        observations="Sin observaciones",
    )
    first = run(catalog.save_order(record))
    second = run(catalog.save_order(record))
    assert first.success and second.success
    assert second.row_index == first.row_index + 1
    stored = run(catalog.orders_dal.get_order(first.row_index))
    assert stored.name == "Ana"
    assert stored.status == "Nuevo pedido"
