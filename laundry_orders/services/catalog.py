from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ServiceInfo:
    id: str
    name: str
    description: str
    base_price: float
    type: str
    is_active: bool = True
    allowed_payment_methods: List[str] = field(default_factory=list)
    pricing: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "basePrice": self.base_price,
            "type": self.type,
            "config": {
                "allowedPaymentMethods": list(self.allowed_payment_methods),
                "pricing": dict(self.pricing),
                "options": dict(self.options),
            },
        }


@dataclass
class VendorInfo:
    id: str
    name: str
    description: str
    services: List[str]
    royalty_rate: float
    payment_methods: List[str]
    contact: Dict[str, str]
    operating_hours: Dict[str, Dict[str, str]] = field(default_factory=dict)
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "services": list(self.services),
            "royaltyRate": self.royalty_rate,
            "paymentMethods": list(self.payment_methods),
            "contactInfo": dict(self.contact),
            "config": {"operatingHours": {day: dict(h) for day, h in self.operating_hours.items()}},
        }


@dataclass
class Catalog:
    services: Dict[str, ServiceInfo]
    vendors: Dict[str, VendorInfo]

    def active_services(self) -> List[ServiceInfo]:
        return [s for s in self.services.values() if s.is_active]

    def active_vendors(self, service_id: Optional[str] = None) -> List[VendorInfo]:
        vendors = [v for v in self.vendors.values() if v.is_active]
        if service_id:
            vendors = [v for v in vendors if service_id in v.services]
        return vendors


WEEKDAY_HOURS = {"open": "08:00", "close": "20:00"}


def default_catalog(royalty_rate: float = 0.10) -> Catalog:
    laundry = ServiceInfo(
        id="laundry",
        name="Laundry Service",
        description="Professional laundry service with wash, dry, and fold options",
        base_price=28.00,
        type="laundry",
        allowed_payment_methods=["stripe", "cash"],
        pricing={"base": 28.00, "perPound": 2.50, "minimumWeight": 5, "rushService": 10.00},
        options={
            "serviceTypes": [
                {"id": "wash-and-fold", "name": "Wash & Fold", "basePrice": 28.00,
                 "description": "Regular laundry service with washing, drying, and folding"},
                {"id": "dry-clean", "name": "Dry Clean", "basePrice": 25.00,
                 "description": "Professional dry cleaning service for delicate items"},
                {"id": "iron-only", "name": "Iron Only", "basePrice": 12.00,
                 "description": "Professional ironing service for your clothes"},
            ],
            "addons": [
                {"id": "rush", "name": "Rush Service", "description": "Same day service", "price": 10.00},
                {"id": "eco", "name": "Eco-Friendly", "description": "Using environmentally friendly detergents",
                 "price": 5.00},
            ],
        },
    )
    angie = VendorInfo(
        id="angie",
        name="Angie's Laundry",
        description="Professional laundry service for the campus",
        services=["laundry"],
        royalty_rate=royalty_rate,
        payment_methods=["stripe"],
        contact={"email": "angie@yourchore.com", "address": "123 Campus Drive"},
        operating_hours={
            day: dict(WEEKDAY_HOURS)
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
        },
    )
    return Catalog(services={laundry.id: laundry}, vendors={angie.id: angie})
