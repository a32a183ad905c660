from ozon_scout.extractors import schemas
from ozon_scout.extractors.schemas import Product


def test_parse_price_various_inputs() -> None:
    assert schemas.parse_price("12 345 ₽") == 12345
    assert schemas.parse_price("12\u00a0345\u00a0₽") == 12345
    assert schemas.parse_price("12\u2009345₽") == 12345
    assert schemas.parse_price("₽ 1 999") == 1999
    assert schemas.parse_price("Цена по запросу") is None
    assert schemas.parse_price("") is None
    assert schemas.parse_price(None) is None


def test_parse_prices_keeps_order() -> None:
    assert schemas.parse_prices("1 299 ₽ 2 499 ₽") == [1299, 2499]
    assert schemas.parse_prices("нет цены") == []


def test_compute_discount() -> None:
    assert schemas.compute_discount(price=750, old_price=1000) == 25
    for price, old_price in [(None, 100), (75, None), (0, 100), (120, 100), (100, 100)]:
        assert schemas.compute_discount(price=price, old_price=old_price) is None


def test_parse_rating_reviews_and_discount() -> None:
    tile = "4.8 • 1 234 отзыва"
    assert schemas.parse_rating(tile, require_marker=True) == 4.8
    assert schemas.parse_rating("4,6") == 4.6
    assert schemas.parse_rating("6.5") is None
    assert schemas.parse_rating("2.5 кг", require_marker=True) is None
    assert schemas.parse_reviews_count(tile) == 1234
    assert schemas.parse_reviews_count("без отзывов") is None
    assert schemas.parse_discount("−23%") == 23
    assert schemas.parse_discount("-5 %") == 5
    assert schemas.parse_discount("23%") is None


def test_format_price_rub() -> None:
    assert schemas.format_price_rub(12345) == "12\u00a0345\u00a0₽"
    assert schemas.format_price_rub(990) == "990\u00a0₽"
    assert schemas.format_price_rub(None) is None


def test_product_images_and_description_are_normalised() -> None:
    images = ["a.jpg", "a.jpg", ""] + [f"{index}.jpg" for index in range(20)]
    product = Product(
        id="1",
        url="https://www.ozon.ru/product/1/",
        title="Item",
        images=images,
        description="  " + "x" * 3000,
    )

    assert product.images[0] == "a.jpg"
    assert len(product.images) == schemas.MAX_IMAGES
    assert len(set(product.images)) == len(product.images)
    assert len(product.description) == schemas.MAX_DESCRIPTION_CHARS
    assert product.in_stock is True
    assert Product(id="1", url="u", title="t", description="   ").description is None
