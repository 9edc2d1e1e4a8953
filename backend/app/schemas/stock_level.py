from pydantic import BaseModel, ConfigDict, Field


class WarehouseStockRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    product_id: str = Field(serialization_alias="productId")
    quantity_available: int = Field(serialization_alias="quantityAvailable")
    # marqueur de synchro : NULL = jamais synchronisé
    last_arrived_restock_id: int | None = Field(default=None, serialization_alias="lastArrivedRestockId")
