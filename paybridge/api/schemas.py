"""Request/response schemas for the merchant proxy endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads exchanged in camelCase with the proxy."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ClientToken(CamelModel):
    """Browser-safe client token returned by the auth endpoint."""

    access_token: str = Field(min_length=1)
    expires_in: int | None = None
    scope: str | None = None
    token_type: str | None = None


class CartItem(CamelModel):
    sku: str = Field(min_length=1)
    quantity: int = Field(ge=1, le=10)


class OrderCreateRequest(CamelModel):
    """Order creation payload; omitted fields fall back to proxy defaults."""

    cart: list[CartItem] | None = None
    currency_code: str | None = Field(default=None, min_length=3, max_length=3)
    return_url: str | None = None
    cancel_url: str | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OrderRef(CamelModel):
    """Reference handed to `session.start` as the order promise result."""

    order_id: str = Field(min_length=1)

    def to_sdk(self) -> dict[str, str]:
        return {"orderId": self.order_id}


class LinkDescription(CamelModel):
    href: str
    rel: str
    method: str | None = None


class OrderResult(CamelModel):
    """Order state returned by get/capture; `raw` keeps the full body."""

    id: str
    status: str | None = None
    links: list[LinkDescription] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "OrderResult":
        return cls.model_validate({**data, "raw": data})

    def link(self, rel: str) -> str | None:
        for link in self.links:
            if link.rel == rel:
                return link.href
        return None


class SetupToken(CamelModel):
    id: str = Field(min_length=1)
    status: str | None = None


class PaymentTokenResult(CamelModel):
    """Outcome of exchanging a setup token; the token itself stays server side."""

    status: str
    description: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "SUCCESS"
