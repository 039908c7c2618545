from typing import Literal

from pydantic import BaseModel


class MemoryActionModel(BaseModel):
    # Left as a plain string so unknown actions get the 400 body, not a 422.
    action: str = ""


class MemoryClearResponseModel(BaseModel):
    success: Literal[True] = True
    message: str = "All memories cleared"


class MemoryCountResponseModel(BaseModel):
    count: int
