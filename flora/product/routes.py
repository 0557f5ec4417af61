from flask import request, url_for
from sqlalchemy import or_, desc, asc, func

from . import bp
from ..extensions import db
from ..model import Product
from ..services import pricing
from ..utils.api import ok, err
from ..utils.errors import NotFound
from ..utils.money import format_money, from_major_units

FACETS = ("category", "occasion", "colour")


# ---------- helpers ----------
def _ep(name: str) -> str:
    return f"{bp.name}.{name}"


def _parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_opt_cents(v):
    # prices come in as major units, e.g. ?min_price=45.99
    if v is None or str(v).strip() == "":
        return None
    try:
        return from_major_units(v)
    except ArithmeticError:
        return None


def _sort_products(query, sort):
    sort = (sort or "").strip()
    mapping = {
        "name": asc(Product.name), "-name": desc(Product.name),
        "price": asc(Product.price_cents), "-price": desc(Product.price_cents),
        "newest": desc(Product.created_at), "id": asc(Product.id),
    }
    col = mapping.get(sort, asc(Product.id))
    return query.order_by(col, asc(Product.id))


def _page_url(page, per_page):
    args = request.args.to_dict(flat=True)
    args["page"] = page
    args["per_page"] = per_page
    return url_for(_ep("list_products"), _external=True, **args)


def _facet_counts(query):
    out = {}
    for name in FACETS:
        col = getattr(Product, name)
        rows = (query.with_entities(col, func.count(Product.id))
                     .filter(col.isnot(None))
                     .group_by(col)
                     .order_by(col)
                     .all())
        out[name] = [{"value": value, "count": count} for value, count in rows]
    return out


def _with_display(p: Product) -> dict:
    data = p.as_api()
    data["price_display"] = format_money(p.price_cents)
    return data


# ---------- routes ----------
# GET /products
@bp.get("")
def list_products():
    """
    Query params:
      q                          -> substring match on name/description
      category, occasion, colour -> exact facet match
      min_price, max_price       -> major units
      in_stock                   -> bool
      sort                       -> name, -name, price, -price, newest
      page, per_page             -> default 1 / 12 (cap 100)
    """
    q = (request.args.get("q") or "").strip()
    min_price = _parse_opt_cents(request.args.get("min_price"))
    max_price = _parse_opt_cents(request.args.get("max_price"))
    in_stock = _parse_bool(request.args.get("in_stock")) if request.args.get("in_stock") is not None else None
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=12, type=int)
    per_page = max(1, min(per_page, 100))

    if min_price is not None and max_price is not None and min_price > max_price:
        return err("min_price must not exceed max_price", 422)

    query = Product.query.filter(Product.status.is_(True))

    if q:
        like = f"%{q}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if min_price is not None:
        query = query.filter(Product.price_cents >= min_price)
    if max_price is not None:
        query = query.filter(Product.price_cents <= max_price)
    if in_stock is True:
        query = query.filter(Product.in_stock.is_(True), Product.stock_count > 0)
    elif in_stock is False:
        query = query.filter(or_(Product.in_stock.is_(False), Product.stock_count <= 0))

    # facet counts ignore the facet filters themselves
    facets = _facet_counts(query)

    for name in FACETS:
        value = (request.args.get(name) or "").strip()
        if value:
            query = query.filter(getattr(Product, name) == value)

    pagination = _sort_products(query, request.args.get("sort")).paginate(
        page=page, per_page=per_page, error_out=False,
    )
    items = [_with_display(p) for p in pagination.items]

    links = {
        "first": _page_url(1, per_page),
        "last": _page_url(pagination.pages or 1, per_page),
        "prev": _page_url(pagination.prev_num, per_page) if pagination.has_prev else None,
        "next": _page_url(pagination.next_num, per_page) if pagination.has_next else None,
    }
    meta = {
        "current_page": pagination.page,
        "last_page": pagination.pages or 1,
        "per_page": per_page,
        "total": pagination.total,
    }
    return ok("Products fetched", {"items": items, "facets": facets, "links": links, "meta": meta})


# GET /products/subscription-options
@bp.get("/subscription-options")
def subscription_options():
    price = request.args.get("price_cents", type=int)
    options = []
    for opt in pricing.subscription_options():
        row = {
            "frequency": opt.frequency,
            "discount_percent": opt.discount_percent,
            "label": opt.label,
            "description": opt.description,
        }
        if price is not None:
            row["unit_price_cents"] = pricing.unit_price(price, pricing.RECURRING, opt.frequency)
            row["savings_cents"] = pricing.subscription_savings(price, opt.frequency)
        options.append(row)
    return ok("Subscription options", {"options": options})


# GET /products/<id>
@bp.get("/<int:pid>")
def get_product(pid):
    product = db.session.get(Product, pid)
    if not product or product.status is False:
        raise NotFound("product not found")
    return ok("Product fetched", _with_display(product))
