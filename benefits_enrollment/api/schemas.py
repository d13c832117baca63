"""
Request/response models for the enrollment API.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, IPvAnyAddress

from benefits_enrollment.contracts.interfaces import Address, Person, QuoteOffer, QuoteRequest, Role


class AddressIn(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class PersonIn(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: date
    relationship: str = Field(default="employee", description="employee, spouse or child")
    address: Optional[AddressIn] = None

    def to_person(self) -> Person:
        return Person(
            first_name=self.first_name,
            last_name=self.last_name,
            date_of_birth=self.date_of_birth,
            relationship=self.relationship,
            address=Address(**self.address.model_dump()) if self.address else None,
        )


class QuoteRequestIn(BaseModel):
    zip_code: str
    effective_date: date
    people: List[PersonIn] = Field(default_factory=list)
    # Plain strings so unknown coverage types surface as invalid_request (400)
    coverage_types: List[str] = Field(default_factory=list)

    def to_request(self) -> QuoteRequest:
        return QuoteRequest(
            zip_code=self.zip_code,
            effective_date=self.effective_date,
            people=[p.to_person() for p in self.people],
            coverage_types=list(self.coverage_types),
        )


class QuoteOfferOut(BaseModel):
    carrier_id: str
    plan_label: str
    coverage_type: str
    metal_tier: Optional[str] = None
    monthly_premium: int
    deductible: int
    out_of_pocket_max: int
    network: str
    rating_area: int

    @classmethod
    def from_offer(cls, offer: QuoteOffer) -> "QuoteOfferOut":
        return cls(
            carrier_id=offer.carrier_id,
            plan_label=offer.plan_label,
            coverage_type=offer.coverage_type.value,
            metal_tier=offer.metal_tier.value if offer.metal_tier else None,
            monthly_premium=offer.monthly_premium,
            deductible=offer.deductible,
            out_of_pocket_max=offer.out_of_pocket_max,
            network=offer.network,
            rating_area=offer.rating_area,
        )


class QuoteResponse(BaseModel):
    zip_code: str
    rating_area: int
    offers: List[QuoteOfferOut]


class CompanyCreateRequest(BaseModel):
    name: str
    zip_code: str = ""


class SignatureRequest(BaseModel):
    """Signature payload. An empty signature is rejected by the workflow, not here."""

    signature: str = ""


class DocumentOverrideRequest(BaseModel):
    company_id: str
    reason: str = ""


class RoleUpdateRequest(BaseModel):
    role: Role


class IPBlockRequest(BaseModel):
    ip_address: IPvAnyAddress
    reason: str = ""
    ttl_seconds: Optional[int] = Field(default=None, gt=0, description="Defaults to one hour")

