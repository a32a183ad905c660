"""Centralised selectors for Ozon scraping flows."""

# ==== SEARCH (product tiles) ====
PRODUCT_PATH_FRAGMENT = "/product/"
PRODUCT_LINK = f"a[href*='{PRODUCT_PATH_FRAGMENT}']"
# Tried in order with Element.closest(); falls back to the link's great-grandparent.
TILE_CONTAINERS = ("[data-index]", "[class*='tile']")

# ==== PRODUCT PAGE (data-widget names) ====
PRICE_WIDGET = "[data-widget='webPrice']"
REVIEW_WIDGET = "[data-widget='webReviewSummary']"
DESCRIPTION_WIDGET = "[data-widget='webDescription']"
SELLER_WIDGET = "[data-widget='webCurrentSeller']"
CHARACTERISTICS_WIDGET = "[data-widget='webCharacteristics']"
PRODUCT_TITLE = "h1"
PRODUCT_IMAGE = "img[src*='ozone']"

# ==== DISCOVERY (categories + filters) ====
CATEGORY_LINK = "a[href*='/category/']"
FILTER_WIDGETS = "[data-widget='filtersDesktop'], [data-widget='searchResultsFilters'], aside [data-widget*='filter']"

# ==== LOCATION ====
LOCATION_TRIGGER = (
    "[data-widget='addressBookBarWeb'] button, "
    "[data-widget='addressBookBarWeb'] [role='button'], "
    "[data-widget='addressBookBarWeb']"
)
CITY_INPUT = (
    "input[placeholder*='город' i], input[placeholder*='city' i], "
    "input[name*='city' i], [role='dialog'] input[type='text']"
)
CITY_SUGGESTION = "[role='dialog'] [role='option'], [role='dialog'] li, [data-widget*='citySelect'] li"

OUT_OF_STOCK_MARKERS = ("нет в наличии", "товар закончился")
