from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from imagegen.db.session import get_db
from imagegen.schemas.catalog import ModelListOut, ModelOut
from imagegen.services.catalog.service import CatalogService


router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("", response_model=ModelListOut)
def list_active_models(db: Session = Depends(get_db)) -> ModelListOut:
    """Public: active models with provider metadata, ordered by provider name."""
    models = CatalogService(db).list_active()
    return ModelListOut(
        data=[
            ModelOut(
                model_id=model.id,
                name=model.model_name,
                api_identifier=model.api_identifier,
                description=model.description,
                provider=model.provider.name,
                provider_website=model.provider.website_url,
                cost_indicator=model.cost_per_request,
            )
            for model in models
        ]
    )
