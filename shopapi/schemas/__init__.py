from .user import User
from .points import PointsBalance, PointsTransactionEntry, PointsTransactionResult
from .order import OrderSchema
from .returns import ReturnSchema
