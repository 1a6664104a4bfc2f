from __future__ import annotations

from typing import Any, Type, TypeVar

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

ModelT = TypeVar("ModelT", bound=BaseModel)

# Aceita tanto snake_case quanto camelCase vindos do frontend.
CamelModelConfig = ConfigDict(populate_by_name=True, alias_generator=to_camel, str_strip_whitespace=True)


class CamelModel(BaseModel):
    model_config = CamelModelConfig


def validate_or_400(model: Type[ModelT], data: Any, detail: str = "Dados incompletos") -> ModelT:
    """Valida o corpo manualmente para responder 400 (em vez de 422) com os campos inválidos."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) or "body" for error in exc.errors()})
        messages = [error["msg"] for error in exc.errors()]
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": detail, "fields": fields, "messages": messages},
        ) from exc
