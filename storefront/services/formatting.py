from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union
import unicodedata

CENTS = Decimal('0.01')
NBSP = '\u00a0'

def format_price_brl(price: Union[Decimal, float, int]) -> str:
    """``1999.9`` -> ``R$ 1.999,90`` (non-breaking space, pt-BR grouping)."""
    amount = Decimal(str(price)).quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = '-' if amount < 0 else ''
    whole, cents = f"{abs(amount):.2f}".split('.')
    grouped = f"{int(whole):,}".replace(',', '.')
    return f"{sign}R${NBSP}{grouped},{cents}"

def price_label(price: Optional[Union[Decimal, float, int]]) -> str:
    return 'Sob consulta' if price is None else format_price_brl(price)

def item_type_label(item_type: str) -> str:
    return 'Serviço' if item_type == 'service' else 'Produto'

def collation_key(text: str):
    # pt-BR ordering: accents and case only break ties
    decomposed = unicodedata.normalize('NFKD', text)
    base = ''.join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return (base, text.casefold(), text)
