"""Pytest configuration: run the app with test settings."""
import os

# Must be set before masters.core.config is first imported.
os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402

FABRIC_HEADER = "fabric_code,fabric_name,fabric_type,color,gsm,uom,price,supplier,description,hex_code"


@pytest.fixture
def fabric_csv() -> str:
    """Two variants of one fabric, the smallest grouped import."""
    return (
        f"{FABRIC_HEADER}\n"
        "COTTON,Cotton Jersey,Knit,BLACK,180,KGS,343,Supplier A,,#000000\n"
        "COTTON,Cotton Jersey,Knit,WHITE,180,KGS,343,Supplier A,,#FFFFFF\n"
    )
