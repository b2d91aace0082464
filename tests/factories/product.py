"""Product factories for tests."""

from uuid import uuid4

from polyfactory.factories.pydantic_factory import ModelFactory

from keystone.modules.products.schemas import ProductCreate


class ProductCreateFactory(ModelFactory[ProductCreate]):
    """Factory for product payloads."""

    __model__ = ProductCreate

    @classmethod
    def name(cls) -> str:
        return f"Product {uuid4().hex[:6]}"

    @classmethod
    def description(cls) -> str:
        return "A product used in tests"
