from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Literal, Mapping, Optional

from backend.errors import ValidationError
from backend.models import Cart, OrderItem, Product, ProductStatus, find_product
from utils.pricing import parse_price

LOW_STOCK_THRESHOLD = 10


@dataclass(frozen=True)
class CartLine:
    """A cart item joined with its product; price is 0 if the product is gone."""

    product_id: int
    quantity: int
    price: int
    product: Optional[Product] = None

    @property
    def title(self) -> str:
        return self.product.title if self.product else f"Product #{self.product_id}"


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of strings.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    # If no headers, take the first row as header and remove it from rows
    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = list(map(str, headers))
    rows = [[str(cell).replace("|", "\\|") for cell in row] for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {
        "l": ":---",
        "c": ":---:",
        "r": "---:",
    }

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(row) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])


def filter_products(
    products: Iterable[Product],
    category: str = "",
    query: str = "",
    approved_only: bool = True,
) -> List[Product]:
    """
    Catalog filter. Empty category or query means no restriction; the query is
    a case-insensitive substring of the title.
    """
    needle = (query or "").strip().lower()
    result = []
    for p in products:
        if approved_only and p.status != ProductStatus.APPROVED:
            continue
        if category and p.category != category:
            continue
        if needle and needle not in p.title.lower():
            continue
        result.append(p)
    return result


def similar_products(
    products: Iterable[Product], product: Product, limit: int = 4
) -> List[Product]:
    same = [
        p
        for p in products
        if p.category == product.category
        and p.id != product.id
        and p.status == ProductStatus.APPROVED
    ]
    return same[:limit]


def join_cart(cart: Optional[Cart], products: List[Product]) -> List[CartLine]:
    if not cart:
        return []
    lines = []
    for item in cart.items:
        prod = find_product(products, item.product_id)
        lines.append(
            CartLine(
                product_id=item.product_id,
                quantity=item.quantity,
                price=prod.price if prod else 0,
                product=prod,
            )
        )
    return lines


def cart_item_count(cart: Optional[Cart]) -> int:
    """Total units in the cart, as shown on the cart badge."""
    if not cart:
        return 0
    return sum(item.quantity for item in cart.items)


def order_item_title(item: OrderItem, products: List[Product]) -> str:
    prod = find_product(products, item.product_id)
    return prod.title if prod else f"Product #{item.product_id}"


def stock_hint(stock: int) -> str:
    if stock <= 0:
        return "Out of stock"
    if stock < LOW_STOCK_THRESHOLD:
        return f"Only {stock} left in stock"
    return "In stock"


def plural(count: int, word: str, many: Optional[str] = None) -> str:
    if count == 1:
        return f"{count} {word}"
    return f"{count} {many or word + 's'}"


def product_from_form(
    values: Mapping[str, str], product_id: int = 0
) -> Product:
    """
    Build a Product from raw product-form text.

    title, description, price and category are required; stock defaults to 0
    and status to approved. Raises ValidationError naming the offending field.
    """
    text = {k: (v or "").strip() for k, v in values.items()}
    for name in ("title", "description", "price", "category"):
        if not text.get(name):
            raise ValidationError(f"Invalid product: {name} is required", field=name)

    price = parse_price(text["price"])
    stock_raw = text.get("stock") or "0"
    try:
        stock = int(stock_raw)
    except ValueError:
        raise ValidationError(f"Invalid stock: {stock_raw!r}", field="stock")
    if stock < 0:
        raise ValidationError(f"Invalid stock: {stock_raw!r}", field="stock")

    try:
        status = ProductStatus(text.get("status") or ProductStatus.APPROVED.value)
    except ValueError:
        raise ValidationError(f"Invalid status: {text['status']!r}", field="status")

    return Product(
        id=product_id,
        title=text["title"],
        description=text["description"],
        price=price,
        stock=stock,
        category=text["category"],
        image=text.get("image", ""),
        status=status,
    )
