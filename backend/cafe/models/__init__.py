from .catalog import Category, Product
from .auth import User
from .customers import Customer
from .orders import Order, OrderDetail
from .rewards import RewardTransaction
from .reviews import Review

__all__ = [
    'Category', 'Product',
    'User', 'Customer',
    'Order', 'OrderDetail',
    'RewardTransaction',
    'Review',
]
