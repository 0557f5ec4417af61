# flora/cli.py
import os
import re

import click
from flask.cli import with_appcontext
import pandas as pd
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import Product, User
from .utils.money import from_major_units, to_major_units

PRODUCT_COLUMNS = ["Slug", "Name", "Description", "Price", "Image URL", "Category",
                   "Occasion", "Colour", "Stock", "Status"]
REQUIRED_COLUMNS = ["Name", "Price"]


def slugify(text):
    text = str(text).strip().lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def _read_table(path: str) -> pd.DataFrame:
    if path.lower().endswith((".xlsx", ".xls")):
        df = pd.read_excel(path)
    else:
        df = pd.read_csv(path)
    # Clean column names (remove extra spaces)
    df.columns = df.columns.str.strip()
    return df


def _cell(row, column, default=None):
    if column not in row.index:
        return default
    value = row[column]
    return default if pd.isna(value) else value


def _parse_bool(v, default=True):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def product_from_row(row, existing: Product | None = None) -> Product:
    name = str(_cell(row, "Name")).strip()
    stock = int(_cell(row, "Stock", 0))
    product = existing or Product()
    product.slug = str(_cell(row, "Slug") or slugify(name))
    product.name = name
    product.description = _cell(row, "Description")
    product.price_cents = from_major_units(_cell(row, "Price"))
    product.image_url = _cell(row, "Image URL")
    product.category = _cell(row, "Category")
    product.occasion = _cell(row, "Occasion")
    product.colour = _cell(row, "Colour")
    product.stock_count = stock
    product.in_stock = stock > 0
    product.status = _parse_bool(_cell(row, "Status"))
    return product


def import_products_from(path: str) -> tuple[int, int]:
    """Upsert products from a CSV or Excel file, matched on slug. Returns (created, updated)."""
    df = _read_table(path)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise click.ClickException(f"Missing required columns: {', '.join(missing)}")

    created = updated = 0
    for n, row in df.iterrows():
        if _cell(row, "Name") is None or _cell(row, "Price") is None:
            raise click.ClickException(f"row {n + 2}: Name and Price are required")
        slug = _cell(row, "Slug") or slugify(_cell(row, "Name"))
        existing = Product.query.filter_by(slug=str(slug)).first()
        db.session.add(product_from_row(row, existing))
        if existing:
            updated += 1
        else:
            created += 1
    db.session.commit()
    return created, updated


def export_products_to(path: str) -> int:
    products = Product.query.order_by(Product.id).all()
    df = pd.DataFrame([{
        "Slug": p.slug,
        "Name": p.name,
        "Description": p.description,
        "Price": float(to_major_units(p.price_cents)),
        "Image URL": p.image_url,
        "Category": p.category,
        "Occasion": p.occasion,
        "Colour": p.colour,
        "Stock": p.stock_count,
        "Status": bool(p.status),
    } for p in products], columns=PRODUCT_COLUMNS)

    if path.lower().endswith(".xlsx"):
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)
    return len(df)


@click.command("create-user")
@with_appcontext
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", default=None)
def create_user(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password))
    db.session.add(u); db.session.commit()
    click.echo(f"User created: {u.id} {u.email}")


@click.command("import-products")
@with_appcontext
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_products(path):
    created, updated = import_products_from(path)
    click.echo(f"{created} products created, {updated} updated from {os.path.basename(path)}")


@click.command("export-products")
@with_appcontext
@click.argument("path", type=click.Path(dir_okay=False))
def export_products(path):
    count = export_products_to(path)
    click.echo(f"{count} products exported to {path}")


def register_cli(app):
    app.cli.add_command(create_user)
    app.cli.add_command(import_products)
    app.cli.add_command(export_products)
