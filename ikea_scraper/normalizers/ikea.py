"""
Explicit normalization layer.
Converts every strategy's candidate shape into the canonical product model.
"""
import re
from dataclasses import dataclass, replace, fields
from decimal import Decimal, InvalidOperation
from typing import List, Dict, Any, Optional, Iterable

from ikea_scraper.errors import IdentityError, NormalizationError, DataContractError
from ikea_scraper.models.candidates import ApiShape, MarkupShape, DomShape, TextShape, Candidate
from ikea_scraper.models.product import CanonicalProduct, AVAILABILITY_UNKNOWN, MAX_FEATURES, unique
from ikea_scraper.utils.urls import extract_product_id, to_abs

CENTS = Decimal("0.01")
NUMBER_TOKEN = re.compile(r"\d(?:[\d.,'\u00a0\u202f]*\d)?")
GROUPING_SPACES = re.compile(r"['\u00a0\u202f]")
PLACEHOLDER_IMAGE_MARKERS = ("spacer", "placeholder")
SCHEMA_ORG_PREFIX = re.compile(r"^https?://schema\.org/", re.IGNORECASE)


@dataclass(frozen=True)
class NormalizationContext:
    """Run-level facts the normalizer needs but no candidate carries."""
    base_url: str
    category: Optional[str] = None
    default_currency: Optional[str] = None


def lookup(payload: Any, path: str) -> Any:
    """Follow a dotted path through dicts; list segments take the first element."""
    current = payload
    for key in path.split("."):
        if isinstance(current, list):
            current = current[0] if current else None
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def first_present(payload: Dict[str, Any], paths: Iterable[str]) -> Any:
    """Value at the first path that resolves to something non-empty."""
    for path in paths:
        value = lookup(payload, path)
        if value not in (None, "", [], {}):
            return value
    return None


def plain_number(token: str) -> str:
    """
    Localized number text to a plain decimal string.

    "1,299.00", "1.299,00" and "299,99" all work: with both marks
    present the later one is the decimal mark, a repeated mark is grouping, and
    a lone mark followed by exactly three digits is grouping.
    """
    token = GROUPING_SPACES.sub("", token)
    if "," in token and "." in token:
        decimal_mark = "," if token.rfind(",") > token.rfind(".") else "."
        grouping_mark = "." if decimal_mark == "," else ","
        return token.replace(grouping_mark, "").replace(decimal_mark, ".")

    mark = "," if "," in token else "." if "." in token else None
    if mark is None:
        return token
    parts = token.split(mark)
    if len(parts) > 2 or len(parts[1]) == 3:
        return "".join(parts)
    return ".".join(parts)


def parse_price(value: Any) -> Optional[Decimal]:
    """Numbers pass through; strings are read with either decimal convention."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dict):
        return parse_price(first_present(value, ("numeral", "value", "amount", "price")))
    try:
        if isinstance(value, (int, float, Decimal)):
            return Decimal(str(value)).quantize(CENTS)
        match = NUMBER_TOKEN.search(str(value))
        if match:
            return Decimal(plain_number(match.group(0))).quantize(CENTS)
    except InvalidOperation:
        pass
    return None


def parse_rating(value: Any) -> Optional[float]:
    """Numeric rating, out-of-range values passed through as extracted."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"(-?\d+(?:\.\d+)?)", str(value))
    return float(match.group(1)) if match else None


def parse_count(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = re.search(r"(-?\d+)", str(value).replace(",", ""))
    return int(match.group(1)) if match else None


def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or None


def clean_image(value: Any) -> Optional[str]:
    """Image URL from a string, a list or an ImageObject; placeholders dropped."""
    if isinstance(value, list):
        for item in value:
            image = clean_image(item)
            if image:
                return image
        return None
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    if not isinstance(value, str) or not value.strip():
        return None
    lowered = value.lower()
    if any(marker in lowered for marker in PLACEHOLDER_IMAGE_MARKERS):
        return None
    return value.strip()


def clean_images(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [i for i in (clean_image(v) for v in values) if i]


def clean_availability(value: Any) -> str:
    if isinstance(value, list):
        parts = [clean_text(v if not isinstance(v, dict) else v.get("text")) for v in value]
        value = ", ".join(p for p in parts if p)
    text = clean_text(value)
    if not text:
        return AVAILABILITY_UNKNOWN
    return SCHEMA_ORG_PREFIX.sub("", text)


class IkeaNormalizer:
    """
    Normalizes strategy candidates into CanonicalProduct.

    Identity is resolved first: a candidate whose URL has no parsable product
    id raises IdentityError before any other field is looked at.
    """

    API_NAME_PATHS = ("productName", "name")
    API_PRICE_PATHS = ("salesPrice.numeral", "priceNumeral", "salesPrice.current.wholeNumber", "price")
    API_CURRENCY_PATHS = ("salesPrice.currencyCode", "currencyCode", "priceCurrency")
    API_IMAGE_PATHS = ("mainImageUrl", "allProductImage.url", "imageUrl", "image")
    API_URL_PATHS = ("pipUrl", "url")
    API_RATING_PATHS = ("ratingValue", "averageRating")
    API_REVIEW_PATHS = ("ratingCount", "numberOfReviews")

    MARKUP_NAME_PATHS = ("name", "item.name", "productName")
    MARKUP_PRICE_PATHS = ("offers.price", "offers.lowPrice", "item.offers.price", "salesPrice.numeral", "priceNumeral", "price")
    MARKUP_CURRENCY_PATHS = ("offers.priceCurrency", "item.offers.priceCurrency", "salesPrice.currencyCode", "priceCurrency", "currency", "currencyCode")
    MARKUP_IMAGE_PATHS = ("image", "item.image", "mainImageUrl", "imageUrl")
    MARKUP_URL_PATHS = ("url", "item.url", "item.@id", "pipUrl", "@id")
    MARKUP_RATING_PATHS = ("aggregateRating.ratingValue", "item.aggregateRating.ratingValue", "ratingValue")
    MARKUP_REVIEW_PATHS = ("aggregateRating.reviewCount", "aggregateRating.ratingCount", "item.aggregateRating.reviewCount", "ratingCount")
    MARKUP_AVAILABILITY_PATHS = ("offers.availability", "item.offers.availability", "availability")

    def __init__(self, context: NormalizationContext):
        self.context = context

    def normalize(self, candidate: Candidate, page_url: Optional[str] = None) -> CanonicalProduct:
        """
        Dispatch on the candidate shape.

        Raises:
            IdentityError: no product id in the candidate's URL
            NormalizationError: unknown shape or unusable payload
        """
        if isinstance(candidate, ApiShape):
            return self.from_api(candidate)
        if isinstance(candidate, MarkupShape):
            return self.from_markup(candidate, page_url)
        if isinstance(candidate, DomShape):
            return self.from_dom(candidate, page_url)
        if isinstance(candidate, TextShape):
            return self.from_text(candidate, page_url)
        raise NormalizationError(f"Unknown candidate type: {type(candidate).__name__}")

    # -- per-shape conversions ------------------------------------------------

    def from_api(self, candidate: ApiShape) -> CanonicalProduct:
        payload = candidate.payload
        product_id, url = self._identity(first_present(payload, self.API_URL_PATHS))

        name_parts = [clean_text(payload.get("name")), clean_text(payload.get("typeName"))]
        name = " ".join(p for p in name_parts if p) or clean_text(first_present(payload, self.API_NAME_PATHS))

        return self._build(
            product_id, url, "api",
            name=name,
            price=first_present(payload, self.API_PRICE_PATHS),
            currency=first_present(payload, self.API_CURRENCY_PATHS),
            main_image=clean_image(first_present(payload, self.API_IMAGE_PATHS)),
            rating=parse_rating(first_present(payload, self.API_RATING_PATHS)),
            review_count=parse_count(first_present(payload, self.API_REVIEW_PATHS)),
            availability=payload.get("availability"),
        )

    def from_markup(self, candidate: MarkupShape, page_url: Optional[str] = None) -> CanonicalProduct:
        payload = candidate.payload
        raw_url = first_present(payload, self.MARKUP_URL_PATHS)
        if candidate.single and not extract_product_id(to_abs(raw_url, self.context.base_url) if raw_url else None):
            raw_url = page_url
        product_id, url = self._identity(raw_url)

        # Rendered-page values fill what the embedded block leaves out
        page = candidate.page_fields or {}
        images: List[str] = []
        description = None
        if candidate.single:
            raw_images = payload.get("image")
            if isinstance(raw_images, (str, dict)):
                raw_images = [raw_images]
            images = clean_images(raw_images) or clean_images(page.get("images"))
            description = clean_text(payload.get("description")) or clean_text(page.get("description"))

        rating = parse_rating(first_present(payload, self.MARKUP_RATING_PATHS))
        review_count = parse_count(first_present(payload, self.MARKUP_REVIEW_PATHS))
        return self._build(
            product_id, url, "markup",
            name=clean_text(first_present(payload, self.MARKUP_NAME_PATHS)),
            price=first_present(payload, self.MARKUP_PRICE_PATHS),
            currency=first_present(payload, self.MARKUP_CURRENCY_PATHS),
            main_image=clean_image(first_present(payload, self.MARKUP_IMAGE_PATHS)) or (images[0] if images else None),
            images=images,
            rating=rating if rating is not None else parse_rating(page.get("rating")),
            review_count=review_count if review_count is not None else parse_count(page.get("review_count")),
            availability=first_present(payload, self.MARKUP_AVAILABILITY_PATHS) or page.get("availability"),
            description=description,
            measurements=clean_text(page.get("measurements")),
            type=clean_text(page.get("type")),
            features=page.get("features"),
        )

    def from_dom(self, candidate: DomShape, page_url: Optional[str] = None) -> CanonicalProduct:
        data = candidate.fields
        product_id, url = self._identity(data.get("url") or page_url)
        images = clean_images(data.get("images"))

        return self._build(
            product_id, url, "dom",
            name=clean_text(data.get("name")),
            price=data.get("price"),
            currency=data.get("currency"),
            main_image=clean_image(data.get("image")) or (images[0] if images else None),
            images=images,
            rating=parse_rating(data.get("rating")),
            review_count=parse_count(data.get("review_count")),
            availability=data.get("availability"),
            description=clean_text(data.get("description")),
            measurements=clean_text(data.get("measurements")),
            type=clean_text(data.get("type")),
            features=data.get("features"),
        )

    def from_text(self, candidate: TextShape, page_url: Optional[str] = None) -> CanonicalProduct:
        data = candidate.fields
        product_id, url = self._identity(data.get("url") or page_url)
        return self._build(
            product_id, url, "text",
            name=clean_text(data.get("name")),
            price=data.get("price"),
            currency=data.get("currency"),
            rating=parse_rating(data.get("rating")),
            review_count=parse_count(data.get("review_count")),
            availability=data.get("availability"),
            measurements=clean_text(data.get("measurements")),
            type=clean_text(data.get("type")),
        )

    # -- shared helpers --------------------------------------------------------

    def _identity(self, raw_url: Any):
        url = to_abs(raw_url, self.context.base_url) if isinstance(raw_url, str) else None
        product_id = extract_product_id(url)
        if not product_id:
            raise IdentityError(f"No product id in URL: {raw_url!r}")
        return product_id, url

    def _build(self, product_id: str, url: str, extracted_by: str, **values) -> CanonicalProduct:
        price = parse_price(values.pop("price", None))
        currency = clean_text(values.pop("currency", None))
        if price is None:
            currency = None
        elif not currency:
            currency = self.context.default_currency
            if currency is None:
                # A price is never kept without its currency
                price = None

        features = values.pop("features", None)
        if features is not None:
            features = unique([clean_text(f) for f in features], MAX_FEATURES) or None

        main_image = values.pop("main_image", None)
        if main_image:
            main_image = to_abs(main_image, url)
        availability = clean_availability(values.pop("availability", None))

        try:
            return CanonicalProduct(
                id=product_id,
                source_url=url,
                category=self.context.category,
                price=price,
                currency=currency.upper() if currency else None,
                main_image=main_image,
                availability=availability,
                features=features,
                extracted_by=extracted_by,
                **values,
            )
        except (TypeError, ValueError, DataContractError) as e:
            raise NormalizationError(f"Failed to normalize product {product_id}: {e}") from e


def merge(listing: CanonicalProduct, detail: CanonicalProduct) -> CanonicalProduct:
    """
    Listing record is the base; detail values win wherever they are present.

    Availability only overrides when the detail page says something other than
    the unknown sentinel. Price and currency travel together.
    """
    updates: Dict[str, Any] = {}
    for f in fields(CanonicalProduct):
        if f.name in ("id", "category", "retrieved_at", "extracted_by", "price", "currency"):
            continue
        value = getattr(detail, f.name)
        if value is None or value == []:
            continue
        if f.name == "availability" and value == AVAILABILITY_UNKNOWN:
            continue
        updates[f.name] = value

    if detail.price is not None:
        updates["price"] = detail.price
        updates["currency"] = detail.currency

    return replace(listing, **updates)
