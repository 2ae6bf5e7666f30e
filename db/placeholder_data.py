from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import date


def _det_uuid(*parts: str) -> uuid.UUID:
    h = hashlib.sha256("||".join(parts).encode("utf-8")).hexdigest()
    return uuid.UUID(h[:32])


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    name: str
    email: str
    # Plaintext; hashed right before insert.
    password: str


@dataclass(frozen=True)
class Customer:
    id: uuid.UUID
    name: str
    email: str
    image_url: str


@dataclass(frozen=True)
class Invoice:
    customer_id: uuid.UUID
    amount: int  # cents
    status: str
    date: date

    @property
    def id(self) -> uuid.UUID:
        # Content-derived so re-seeding hits ON CONFLICT (id) instead of inserting a copy.
        return _det_uuid("invoice", str(self.customer_id), str(self.amount), self.status, self.date.isoformat())


@dataclass(frozen=True)
class Revenue:
    month: str
    revenue: int


USERS: tuple[User, ...] = (
    User(
        id=uuid.UUID("410544b2-4001-4271-9855-fec4b6a6442a"),
        name="User",
        email="user@nextmail.com",
        password="123456",
    ),
)

CUSTOMERS: tuple[Customer, ...] = (
    Customer(
        id=uuid.UUID("d6e15727-9fe1-4961-8c5b-ea44a9bd81aa"),
        name="Evil Rabbit",
        email="evil@rabbit.com",
        image_url="/customers/evil-rabbit.png",
    ),
    Customer(
        id=uuid.UUID("3958dc9e-712f-4377-85e9-fec4b6a6442a"),
        name="Delba de Oliveira",
        email="delba@oliveira.com",
        image_url="/customers/delba-de-oliveira.png",
    ),
    Customer(
        id=uuid.UUID("3958dc9e-742f-4377-85e9-fec4b6a6442a"),
        name="Lee Robinson",
        email="lee@robinson.com",
        image_url="/customers/lee-robinson.png",
    ),
    Customer(
        id=uuid.UUID("76d65c26-f784-44a2-ac19-586678f7c2f2"),
        name="Michael Novotny",
        email="michael@novotny.com",
        image_url="/customers/michael-novotny.png",
    ),
    Customer(
        id=uuid.UUID("cc27c14a-0acf-4f4a-a6c9-d45682c144b9"),
        name="Amy Burns",
        email="amy@burns.com",
        image_url="/customers/amy-burns.png",
    ),
    Customer(
        id=uuid.UUID("13d07535-c59e-4157-a011-f8d2ef4e0cbb"),
        name="Balazs Orban",
        email="balazs@orban.com",
        image_url="/customers/balazs-orban.png",
    ),
)

_C = CUSTOMERS

INVOICES: tuple[Invoice, ...] = (
    Invoice(customer_id=_C[0].id, amount=15795, status="pending", date=date(2022, 12, 6)),
    Invoice(customer_id=_C[1].id, amount=20348, status="pending", date=date(2022, 11, 14)),
    Invoice(customer_id=_C[4].id, amount=3040, status="paid", date=date(2022, 10, 29)),
    Invoice(customer_id=_C[3].id, amount=44800, status="paid", date=date(2023, 9, 10)),
    Invoice(customer_id=_C[5].id, amount=34577, status="pending", date=date(2023, 8, 5)),
    Invoice(customer_id=_C[2].id, amount=54246, status="pending", date=date(2023, 7, 16)),
    Invoice(customer_id=_C[0].id, amount=666, status="pending", date=date(2023, 6, 27)),
    Invoice(customer_id=_C[3].id, amount=32545, status="paid", date=date(2023, 6, 9)),
    Invoice(customer_id=_C[4].id, amount=1250, status="paid", date=date(2023, 6, 17)),
    Invoice(customer_id=_C[5].id, amount=8546, status="paid", date=date(2023, 6, 7)),
    Invoice(customer_id=_C[1].id, amount=500, status="paid", date=date(2023, 8, 19)),
    Invoice(customer_id=_C[5].id, amount=8945, status="paid", date=date(2023, 6, 3)),
    Invoice(customer_id=_C[2].id, amount=1000, status="paid", date=date(2022, 6, 5)),
)

REVENUE: tuple[Revenue, ...] = (
    Revenue(month="Jan", revenue=2000),
    Revenue(month="Feb", revenue=1800),
    Revenue(month="Mar", revenue=2200),
    Revenue(month="Apr", revenue=2500),
    Revenue(month="May", revenue=2300),
    Revenue(month="Jun", revenue=3200),
    Revenue(month="Jul", revenue=3500),
    Revenue(month="Aug", revenue=3700),
    Revenue(month="Sep", revenue=2500),
    Revenue(month="Oct", revenue=2800),
    Revenue(month="Nov", revenue=3000),
    Revenue(month="Dec", revenue=4800),
)
