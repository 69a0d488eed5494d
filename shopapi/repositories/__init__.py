# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .points_repository import PointsRepository
from .order_points_repository import OrderPointsRepository
from .order_repository import OrderRepository
from .product_key_repository import ProductKeyRepository
from .return_repository import ReturnRepository
from .outbox_repository import OutboxRepository
