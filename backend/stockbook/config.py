import os
from decimal import Decimal
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

_TRUTHY = ('1', 'true', 'yes')


class Settings(BaseModel):
    base_dir: Path
    store: Literal['sqlite', 'json'] = 'sqlite'
    db_path: Path
    fallback_path: Path
    bills_dir: Path
    allow_negative_stock: bool = False
    tax_percent: Decimal = Field(Decimal('0'), ge=0, le=100)
    seller_name: str = 'KD COLLECTION'
    seller_address: str = 'D-33 Shyam Park extension Rajendra nagar Ghaziabad'
    seller_jurisdiction: str = 'Uttar Pradesh'


def load_settings(base_dir: Optional[Path] = None) -> Settings:
    """Read settings from the environment (and a .env file, if present)."""
    base = Path(base_dir or os.getenv('STOCKBOOK_BASE_DIR') or os.getcwd()).resolve()
    data_dir = base / 'data'
    values = {
        'base_dir': base,
        'store': os.getenv('STOCKBOOK_STORE', 'sqlite').strip().lower(),
        'db_path': os.getenv('STOCKBOOK_DB_PATH') or data_dir / 'inventory.db',
        'fallback_path': os.getenv('STOCKBOOK_FALLBACK_PATH') or data_dir / 'inventory.json',
        'bills_dir': os.getenv('STOCKBOOK_BILLS_DIR') or base / 'bills',
        'allow_negative_stock': os.getenv('ALLOW_NEGATIVE_STOCK', 'false').lower() in _TRUTHY,
        'tax_percent': os.getenv('INVOICE_TAX_PERCENT') or '0',
    }
    for key, env in (('seller_name', 'SELLER_NAME'),
                     ('seller_address', 'SELLER_ADDRESS'),
                     ('seller_jurisdiction', 'SELLER_JURISDICTION')):
        if os.getenv(env):
            values[key] = os.getenv(env)
    return Settings(**values)
