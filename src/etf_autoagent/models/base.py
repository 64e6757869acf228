import time

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ModelBase(BaseModel):
    """
    Base class for all etf-autoagent wire models.

    Attributes are snake_case in Python and camelCase on the wire;
    either spelling is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


ActionId = str
PlanId = str
WalletAddress = str
