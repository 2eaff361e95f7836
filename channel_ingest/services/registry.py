"""Lookup of the parser for each (upload kind, platform) pair."""

from collections.abc import Callable

from channel_ingest.services.inventory import (
    parse_amazon_inventory,
    parse_bigbasket_inventory,
    parse_blinkit_inventory,
)
from channel_ingest.services.purchase_orders import (
    parse_blinkit_po,
    parse_city_mall_po,
    parse_flipkart_grocery_po,
    parse_swiggy_po,
    parse_zepto_po,
)
from channel_ingest.services.results import ParsedUpload, Platform, UploadContext, UploadKind
from channel_ingest.services.secondary_sales import (
    parse_amazon_secondary_sales,
    parse_bigbasket_secondary_sales,
    parse_blinkit_secondary_sales,
    parse_flipkart_secondary_sales,
    parse_swiggy_secondary_sales,
    parse_zepto_secondary_sales,
)

Parser = Callable[[bytes | str, str, UploadContext | None], ParsedUpload]

PARSERS: dict[tuple[UploadKind, Platform], Parser] = {
    (UploadKind.INVENTORY, Platform.AMAZON): parse_amazon_inventory,
    (UploadKind.INVENTORY, Platform.BIGBASKET): parse_bigbasket_inventory,
    (UploadKind.INVENTORY, Platform.BLINKIT): parse_blinkit_inventory,
    (UploadKind.SECONDARY_SALES, Platform.AMAZON): parse_amazon_secondary_sales,
    (UploadKind.SECONDARY_SALES, Platform.BIGBASKET): parse_bigbasket_secondary_sales,
    (UploadKind.SECONDARY_SALES, Platform.BLINKIT): parse_blinkit_secondary_sales,
    (UploadKind.SECONDARY_SALES, Platform.FLIPKART_GROCERY): parse_flipkart_secondary_sales,
    (UploadKind.SECONDARY_SALES, Platform.SWIGGY): parse_swiggy_secondary_sales,
    (UploadKind.SECONDARY_SALES, Platform.ZEPTO): parse_zepto_secondary_sales,
    (UploadKind.PURCHASE_ORDER, Platform.FLIPKART_GROCERY): parse_flipkart_grocery_po,
    (UploadKind.PURCHASE_ORDER, Platform.ZEPTO): parse_zepto_po,
    (UploadKind.PURCHASE_ORDER, Platform.CITY_MALL): parse_city_mall_po,
    (UploadKind.PURCHASE_ORDER, Platform.BLINKIT): parse_blinkit_po,
    (UploadKind.PURCHASE_ORDER, Platform.SWIGGY): parse_swiggy_po,
}


def get_parser(kind: UploadKind, platform: Platform) -> Parser | None:
    """Return the parser registered for ``kind`` and ``platform``, if any."""
    return PARSERS.get((kind, platform))


def supported_uploads() -> list[dict[str, str]]:
    """List the registered pairs as ``{"kind", "platform"}`` dicts."""
    return [
        {"kind": kind.value, "platform": platform.value}
        for kind, platform in sorted(PARSERS, key=lambda pair: (pair[0].value, pair[1].value))
    ]
