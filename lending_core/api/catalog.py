"""Static PayGo catalog served by the reference loan API"""

from decimal import Decimal
from typing import List, Optional

from lending_core.domain.models import PayGoCategory, PayGoProduct

CATEGORIES: List[PayGoCategory] = [
    PayGoCategory(id="solar", name="Solar", description="Home solar and backup power systems"),
    PayGoCategory(id="smartphones", name="Smartphones", description="Entry and mid-range smartphones"),
]

PRODUCTS: List[PayGoProduct] = [
    PayGoProduct(
        id="solar-3kva-405",
        name="3KVA SOLAR HYBRID Backup System (405W-PV)",
        category="solar",
        price=Decimal("1850.00"),
        description="Hybrid inverter backup for lights, TV and fridge",
        specifications="3KVA inverter, 2x 405W panels, 2.4kWh lithium battery",
        installation_fee=Decimal("150.00"),
    ),
    PayGoProduct(
        id="solar-3kva-500",
        name="3KVA SOLAR HYBRID Backup System (500W-PV)",
        category="solar",
        price=Decimal("2300.00"),
        description="Hybrid inverter backup with extra panel capacity",
        specifications="3KVA inverter, 2x 500W panels, 4.8kWh lithium battery",
        installation_fee=Decimal("150.00"),
    ),
    PayGoProduct(
        id="phone-a15",
        name="Galaxy A15 128GB",
        category="smartphones",
        price=Decimal("220.00"),
        description="6.5 inch display, dual SIM",
        specifications="128GB storage, 4GB RAM, 5000mAh battery",
    ),
    PayGoProduct(
        id="phone-redmi-13c",
        name="Redmi 13C 64GB",
        category="smartphones",
        price=Decimal("160.00"),
        description="Budget smartphone",
        specifications="64GB storage, 3GB RAM",
        is_available=False,
    ),
]


def get_category(category_id: str) -> Optional[PayGoCategory]:
    return next((c for c in CATEGORIES if c.id == category_id), None)


def get_products(category_id: str) -> List[PayGoProduct]:
    return [p for p in PRODUCTS if p.category == category_id]


def find_product(product_id: str) -> Optional[PayGoProduct]:
    return next((p for p in PRODUCTS if p.id == product_id), None)
