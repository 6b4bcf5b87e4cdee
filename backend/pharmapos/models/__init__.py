from .catalog import Batch
from .operators import Operator
from .carts import Cart, CartLine
from .shifts import Shift, ShiftEvent
from .sales import Sale, SaleLine
from .returns import Return, ReturnLine

__all__ = [
    'Batch',
    'Operator',
    'Cart', 'CartLine',
    'Shift', 'ShiftEvent',
    'Sale', 'SaleLine',
    'Return', 'ReturnLine',
]
