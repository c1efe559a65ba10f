"""Tests for request pricing and the catalog lookup."""
from decimal import Decimal

import pytest

from imagegen.services.catalog.service import CatalogService, required_credits


@pytest.mark.parametrize(
    "cost, outputs, expected",
    [
        (Decimal("2"), 2, 4),
        (Decimal("4.0000"), 1, 4),
        (Decimal("1.5"), 3, 5),  # 4.5 rounds up
        (Decimal("0.3333"), 3, 1),  # 0.9999 rounds up
        (Decimal("0.2"), 4, 1),
    ],
)
def test_required_credits_rounds_up(cost, outputs, expected):
    assert required_credits(cost, outputs, default_cost=1) == expected


@pytest.mark.parametrize("cost", [None, Decimal("0"), 0])
def test_unpriced_model_uses_default_cost(cost):
    assert required_credits(cost, 3, default_cost=1) == 3
    assert required_credits(cost, 2, default_cost=5) == 10


class TestCatalogService:
    def test_get_active_model_skips_inactive(self, db, make_model):
        active = make_model()
        inactive = make_model(is_active=False)
        svc = CatalogService(db)
        assert svc.get_active_model(active.id).id == active.id
        assert svc.get_active_model(inactive.id) is None
        assert svc.get_active_model(999_999) is None

    def test_list_active_ordered_by_provider_name(self, db, make_model):
        make_model(provider="OpenAI", name="DALL-E 3")
        make_model(provider="Google", name="Gemini Pro Vision")
        make_model(provider="Anthropic", name="Hidden", is_active=False)

        models = CatalogService(db).list_active()

        assert [m.provider.name for m in models] == ["Google", "OpenAI"]

    def test_seed_default_models_is_idempotent(self, db):
        svc = CatalogService(db)
        assert svc.seed_default_models() == 3
        assert svc.seed_default_models() == 0
        identifiers = {m.api_identifier for m in svc.list_active()}
        assert identifiers == {"gemini-pro-vision", "dall-e-3", "gpt-4-turbo-vision"}
