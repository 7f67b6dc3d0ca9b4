import math

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Meta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


def build_meta(total: int, page: int, limit: int) -> Meta:
    return Meta(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit) if limit else 0)


def paginate(query, page: int, limit: int):
    """Apply offset/limit to a query and return (items, meta)."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, build_meta(total, page, limit)


def dump(value):
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, list):
        return [dump(v) for v in value]
    if isinstance(value, dict):
        return {k: dump(v) for k, v in value.items()}
    return value


def envelope(message: str, data=None, meta: Meta | None = None) -> dict:
    body = {"message": message, "data": dump(data)}
    if meta is not None:
        body["meta"] = dump(meta)
    return body
