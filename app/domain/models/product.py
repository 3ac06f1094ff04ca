# app/domain/models/product.py
from pydantic import BaseModel, ConfigDict


class ProductStock(BaseModel):
    id: int
    description: str
    stock: int

    model_config = ConfigDict(from_attributes=True)
