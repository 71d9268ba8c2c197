"""Model catalog endpoint."""

from fastapi import APIRouter

from falproxy.api.dependencies import SettingsDep
from falproxy.models.messages import ModelInfo, ModelList


router = APIRouter()


@router.get("/models", response_model=ModelList)
async def list_models(settings: SettingsDep) -> ModelList:
    """
    List the advertised models in Anthropic list format.

    The catalog is static configuration; the backend accepts any model name
    it knows, advertised or not.
    """
    data = [
        ModelInfo(id=card.id, display_name=card.display_name, created_at=card.created_at)
        for card in settings.catalog.models
    ]
    return ModelList(
        data=data,
        has_more=False,
        first_id=data[0].id if data else None,
        last_id=data[-1].id if data else None,
    )
