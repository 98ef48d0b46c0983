from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from db_models import Product
from services.pos_sync.product_store import ProductRecord, ProductStore


def record(variant_id=None, name="Coffee Mug", price="12.50"):
    return ProductRecord(
        external_product_id="CLV1",
        external_variant_id=variant_id,
        name=name,
        price=Decimal(price),
    )


def write(store, integration, user, product_record):
    return store.upsert(
        integration_id=integration.id,
        merchant_id=user.id,
        record=product_record,
        category_id=None,
        barter_enabled=True,
        metadata={}
    )


def stale_store(session):
    """A store whose first lookup misses, as if it read before another writer committed"""
    store = ProductStore(session)
    real_find = store.find
    lookups = []

    def find(*args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_find(*args)

    store.find = find
    return store


def test_record_validation():
    with pytest.raises(ValueError):
        ProductRecord(external_product_id="", external_variant_id=None, name="Mug", price=Decimal("1"))
    with pytest.raises(ValueError):
        ProductRecord(external_product_id="A", external_variant_id=None, name=" ", price=Decimal("1"))
    with pytest.raises(ValueError):
        ProductRecord(external_product_id="A", external_variant_id=None, name="Mug", price=Decimal("-0.01"))


def test_upsert_inserts_then_updates(db, make_integration, user):
    integration = make_integration("clover")
    store = ProductStore(db)

    assert write(store, integration, user, record()) is True
    assert write(store, integration, user, record(name="Coffee Mug XL")) is False

    product, = db.query(Product).all()
    assert product.name == "Coffee Mug XL"


def test_database_rejects_duplicate_row_without_variant(db, make_integration, user):
    integration = make_integration("clover")
    for _ in range(2):
        db.add(Product(merchant_id=user.id, pos_integration_id=integration.id,
                       external_product_id="CLV1", external_variant_id=None, name="Coffee Mug", price=1))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


@pytest.mark.parametrize("variant_id", [None, "V1"])
def test_concurrent_insert_converges_to_one_row(session_factory, make_integration, user, variant_id):
    integration = make_integration("clover")
    first = session_factory()
    second = session_factory()
    try:
        assert write(ProductStore(first), integration, user, record(variant_id)) is True
        created = write(stale_store(second), integration, user, record(variant_id, name="Coffee Mug XL"))

        assert created is False
        rows = first.query(Product).filter(Product.pos_integration_id == integration.id).all()
        assert len(rows) == 1
        first.refresh(rows[0])
        assert rows[0].name == "Coffee Mug XL"
    finally:
        first.close()
        second.close()
