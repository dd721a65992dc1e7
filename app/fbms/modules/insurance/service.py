from __future__ import annotations

from datetime import date, timedelta

from app.fbms.crud import TableService
from app.fbms.modules.insurance.models import InsurancePolicy, PremiumPayment
from app.fbms.store import Filter

EXPIRING_WITHIN_DAYS = 30

policies: TableService[InsurancePolicy] = TableService(InsurancePolicy, label="insurance policies", singular="insurance policy")
premiums: TableService[PremiumPayment] = TableService(
    PremiumPayment, label="premium payments", singular="premium payment", order_by="paid_date"
)


def policies_by_type(policy_type: str) -> list[InsurancePolicy]:
    return policies.list(Filter("type", "eq", policy_type))


def policies_for_member(member_id: str) -> list[InsurancePolicy]:
    return policies.list(Filter("family_member_id", "eq", member_id))


def expiring_policies(days: int = EXPIRING_WITHIN_DAYS, *, today: date | None = None) -> list[InsurancePolicy]:
    """Active policies whose renewal date falls within the next ``days`` days."""
    today = today or date.today()
    return policies.select(
        "fetch expiring policies",
        filters=[
            Filter("status", "eq", "active"),
            Filter("renewal_date", "gte", today),
            Filter("renewal_date", "lte", today + timedelta(days=days)),
        ],
        order_by="renewal_date",
        descending=False,
    )


def expired_policies(*, today: date | None = None) -> list[InsurancePolicy]:
    today = today or date.today()
    return policies.select(
        "fetch expired policies",
        filters=[Filter("renewal_date", "lt", today)],
        order_by="renewal_date",
        descending=False,
    )


def premiums_for_policy(policy_id: str) -> list[PremiumPayment]:
    return premiums.list(Filter("policy_id", "eq", policy_id))


def policy_choices() -> list[tuple[str, str]]:
    return [(p.id, f"{p.policy_number} ({p.provider})") for p in policies.list()]
