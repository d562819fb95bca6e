"""Customer value objects attached to orders.

An order always holds exactly one of these:

- ``Guest``: anonymous shopper, id ``0``.
- ``RegisteredCustomer``: a stored customer account.

Both carry a ``kind`` tag so a persisted order snapshot can be validated
back into the right class (``CustomerEntity`` is the tagged union).
Instances are immutable (``frozen=True``); replace the order's customer
instead of editing it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field

if TYPE_CHECKING:
    from modules.customers.models import Customer


GUEST_ID = 0


class Guest(BaseModel):
    """Anonymous customer used until a real one is assigned."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["guest"] = "guest"
    id: Literal[0] = GUEST_ID
    name: str = "Guest"
    country: str = ""
    state: str = ""
    postcode: str = ""


class RegisteredCustomer(BaseModel):
    """A customer with a stored account.

    ``id`` is ``None`` until the customer has been saved.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["registered"] = "registered"
    id: Optional[int] = None
    name: str
    email: EmailStr
    login: str = ""
    country: str = ""
    state: str = ""
    postcode: str = ""

    @classmethod
    def from_model(cls, customer: Customer) -> RegisteredCustomer:
        return cls(
            id=customer.id,
            name=customer.name,
            email=customer.email,
            login=customer.login,
            country=customer.country,
            state=customer.state,
            postcode=customer.postcode,
        )


CustomerEntity = Annotated[
    Union[Guest, RegisteredCustomer],
    Field(discriminator="kind"),
]
