"""Generation parameter models consumed by the downstream LLM call."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class GenerationContext(BaseModel):
    """Parameters for a generation call.

    The same shape serves as the caller's base context and as the effective
    context produced after preferences are applied. Unknown caller fields are
    carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt_addition: Optional[str] = None
    response_format: Optional[str] = None
