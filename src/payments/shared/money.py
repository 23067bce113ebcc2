"""Money value object for monetary amounts with currency."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float, String

from payments.domain import payments

VALID_CURRENCIES = frozenset(
    {
        "COP",
        "USD",
        "EUR",
        "MXN",
        "BRL",
        "CLP",
        "PEN",
        "ARS",
    }
)


@payments.value_object
class Money:
    """Immutable monetary amount with currency. Amounts are never negative."""

    amount: Float(required=True, min_value=0.0)
    currency: String(max_length=3, default="COP")

    @invariant.post
    def currency_must_be_supported(self):
        if self.currency not in VALID_CURRENCIES:
            raise ValidationError({"currency": [f"Unsupported currency: {self.currency}"]})

    @classmethod
    def zero(cls, currency: str = "COP") -> "Money":
        return cls(amount=0.0, currency=currency)

    def add(self, other: "Money") -> "Money":
        if other.currency != self.currency:
            raise ValidationError(
                {"currency": [f"Cannot add {other.currency} to {self.currency}"]},
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def multiply(self, factor: float) -> "Money":
        if factor < 0:
            raise ValidationError({"amount": ["Cannot multiply money by a negative factor"]})
        return Money(amount=self.amount * factor, currency=self.currency)
