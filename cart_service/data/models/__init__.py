# import all models so SQLAlchemy registers them in Base.metadata

from cart_service.data.models.cart_line import CartLineModel

__all__ = ["CartLineModel"]
