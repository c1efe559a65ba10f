from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class ModelOut(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: int
    name: str
    api_identifier: str
    description: str | None
    provider: str
    provider_website: str | None
    cost_indicator: Decimal | None


class ModelListOut(BaseModel):
    success: bool = True
    data: list[ModelOut]
