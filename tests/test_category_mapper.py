import pytest

from db_models import ProductCategory
from services.pos_sync.category_mapper import CategoryMapper, detect_restricted_product
from services.pos_sync.errors import ConfigurationError


def test_restricted_keyword_overrides_provider_category(db, category_ids):
    mapping = CategoryMapper(db).map("Beverages", "Premium Beer Selection")

    assert mapping.is_restricted is True
    assert mapping.category_id == category_ids["alcohol"]
    assert mapping.matched_label == "alcohol"
    assert mapping.restriction_reason == 'Contains restricted keyword: "beer"'


def test_provider_category_matched_by_name_case_insensitive(db, category_ids):
    mapping = CategoryMapper(db).map("BEVERAGES", "Sparkling Water")

    assert mapping.is_restricted is False
    assert mapping.category_id == category_ids["beverages"]
    assert mapping.restriction_reason is None


def test_provider_category_matched_by_slug(db, category_ids):
    mapping = CategoryMapper(db).map("home-garden", "Flower Pot")
    assert mapping.category_id == category_ids["home-garden"]


@pytest.mark.parametrize("category_name", [None, "", "   ", "Unheard Of Category"])
def test_unknown_or_missing_category_falls_back_to_other(db, category_ids, category_name):
    mapping = CategoryMapper(db).map(category_name, "Plain Notebook")

    assert mapping.category_id == category_ids["other"]
    assert mapping.matched_label == "other"
    assert mapping.is_restricted is False


def test_restriction_detected_in_description_and_category():
    assert detect_restricted_product("Gift Box", "includes a bottle of wine").category_slug == "alcohol"
    assert detect_restricted_product("Starter Kit", None, "Vape Supplies").category_slug == "tobacco"
    assert detect_restricted_product("Plain Notebook", "ruled pages", "Stationery") is None


def test_first_keyword_group_wins():
    match = detect_restricted_product("Lottery ticket and beer bundle")
    assert match.category_slug == "alcohol"
    assert match.keyword == "beer"


def test_lookups_are_memoized(db, category_ids):
    mapper = CategoryMapper(db)
    mapper.get_category_id("Food")
    db.query(ProductCategory).filter(ProductCategory.slug == "food").delete()
    db.commit()

    assert mapper.get_category_id("food") == category_ids["food"]


def test_missing_other_row_is_a_configuration_error(db):
    db.query(ProductCategory).delete()
    db.commit()

    with pytest.raises(ConfigurationError):
        CategoryMapper(db).map(None, "Plain Notebook")
