from .price_db import PriceDB

__all__ = ["PriceDB"]
