from pydantic import BaseModel, ConfigDict


MONTH_KEY_REGEX = r"^\d{4}-\d{2}$"


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
