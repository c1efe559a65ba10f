from decimal import ROUND_CEILING, Decimal

from sqlalchemy.orm import Session, joinedload

from imagegen.models.catalog import AiModel, AiProvider


def required_credits(cost_per_request: Decimal | int | float | None, num_outputs: int, default_cost: int) -> int:
    """
    Credits for num_outputs images at cost_per_request each, rounded up.
    A model without a price (NULL or 0) is charged default_cost per output.
    """
    cost = Decimal(str(cost_per_request)) if cost_per_request is not None else Decimal(0)
    if cost <= 0:
        cost = Decimal(default_cost)
    total = cost * num_outputs
    return int(total.to_integral_value(rounding=ROUND_CEILING))


class CatalogService:
    def __init__(self, db: Session):
        self.db = db

    def get_active_model(self, model_id: int) -> AiModel | None:
        return (
            self.db.query(AiModel)
            .filter(AiModel.id == model_id, AiModel.is_active.is_(True))
            .one_or_none()
        )

    def list_active(self) -> list[AiModel]:
        return (
            self.db.query(AiModel)
            .join(AiProvider, AiModel.provider_id == AiProvider.id)
            .options(joinedload(AiModel.provider))
            .filter(AiModel.is_active.is_(True))
            .order_by(AiProvider.name.asc(), AiModel.id.asc())
            .all()
        )

    def get_or_create_provider(self, name: str, website_url: str | None = None) -> AiProvider:
        provider = self.db.query(AiProvider).filter(AiProvider.name == name).one_or_none()
        if provider:
            return provider
        provider = AiProvider(name=name, website_url=website_url)
        self.db.add(provider)
        self.db.flush()
        return provider

    def seed_default_models(self) -> int:
        """Insert the default providers and models if missing. Returns number of models added."""
        defaults = [
            ("Google", "https://ai.google.dev/", "Gemini Pro Vision", "gemini-pro-vision", Decimal("1.0")),
            ("OpenAI", "https://openai.com/", "DALL-E 3", "dall-e-3", Decimal("4.0")),
            ("OpenAI", "https://openai.com/", "GPT-4 Turbo Vision", "gpt-4-turbo-vision", Decimal("2.0")),
        ]
        added = 0
        for provider_name, website, model_name, api_identifier, cost in defaults:
            provider = self.get_or_create_provider(provider_name, website)
            exists = self.db.query(AiModel).filter(AiModel.api_identifier == api_identifier).one_or_none()
            if exists:
                continue
            self.db.add(
                AiModel(
                    provider_id=provider.id,
                    model_name=model_name,
                    api_identifier=api_identifier,
                    is_active=True,
                    cost_per_request=cost,
                )
            )
            added += 1
        self.db.commit()
        return added
