from .asset import Asset
from .custodian import Custodian
from .position import Position
from .transaction import Transaction, TRANSACTION_TYPES
from .price_history import PriceHistory
