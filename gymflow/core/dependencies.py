from fastapi import Header

from gymflow.core.exceptions import ValidationError


async def get_current_org_id(
    x_organization_id: str = Header(..., alias="X-Organization-ID"),
) -> int:
    """
    Dependency для организации текущего запроса.

    Аутентификация выполняется на шлюзе; сюда приходит уже проверенный
    идентификатор организации.
    """
    try:
        org_id = int(x_organization_id)
    except ValueError:
        raise ValidationError(
            "X-Organization-ID header must be an integer",
            {"value": x_organization_id},
        )

    if org_id <= 0:
        raise ValidationError(
            "X-Organization-ID header must be positive", {"value": org_id}
        )

    return org_id
