from typing import Optional
from pydantic import BaseModel, ConfigDict


class Principal(BaseModel):
    """Authenticated identity, resolved once per connection or request."""
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    provider: Optional[str] = None

    model_config = ConfigDict(frozen=True)
