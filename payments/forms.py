import re
from decimal import Decimal

from django import forms
from django.utils import timezone

from .errors import PaymentValidationError
from .utils import strip_whitespace

ORDER_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class CheckoutForm(forms.Form):
    """Top-level fields of a storefront payment submission."""

    orderId = forms.CharField(max_length=64, required=False)
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    email = forms.EmailField()
    phone = forms.CharField(max_length=32)
    userId = forms.CharField(max_length=64, required=False)

    def clean_orderId(self):
        oid = self.cleaned_data.get("orderId", "")
        if oid and not ORDER_ID_RE.match(oid):
            raise forms.ValidationError("orderId may only contain letters, digits, '-' and '_' (max 64)")
        return oid


class CardForm(forms.Form):
    cardNumber = forms.CharField()
    expiryMonth = forms.CharField(max_length=2)
    expiryYear = forms.CharField(max_length=4)
    cvv = forms.CharField(max_length=4)
    nameOnCard = forms.CharField(max_length=128, required=False)

    def clean_cardNumber(self):
        number = strip_whitespace(self.cleaned_data["cardNumber"])
        if not re.fullmatch(r"\d{15,16}", number):
            raise forms.ValidationError("Invalid card number")
        return number

    def clean_expiryMonth(self):
        month = self.cleaned_data["expiryMonth"]
        if not month.isdigit() or not 1 <= int(month) <= 12:
            raise forms.ValidationError("Invalid expiry month")
        return month.zfill(2)

    def clean_expiryYear(self):
        year = self.cleaned_data["expiryYear"]
        if not re.fullmatch(r"\d{2}|\d{4}", year):
            raise forms.ValidationError("Invalid expiry year")
        return year if len(year) == 4 else f"20{year}"

    def clean_cvv(self):
        cvv = self.cleaned_data["cvv"]
        if not re.fullmatch(r"\d{3,4}", cvv):
            raise forms.ValidationError("Invalid CVV")
        return cvv

    def clean(self):
        cleaned = super().clean()
        month, year = cleaned.get("expiryMonth"), cleaned.get("expiryYear")
        if month and year:
            now = timezone.now()
            if (int(year), int(month)) < (now.year, now.month):
                raise forms.ValidationError("Card has expired")
        return cleaned


class AddressForm(forms.Form):
    address = forms.CharField(max_length=255)
    city = forms.CharField(max_length=128)
    state = forms.CharField(max_length=64)
    zipCode = forms.CharField(max_length=16)


class ShippingAddressForm(AddressForm):
    """Shipping goes to a US street address, so state and ZIP are checked."""

    def clean_state(self):
        state = self.cleaned_data["state"].upper()
        if not re.fullmatch(r"[A-Z]{2}", state):
            raise forms.ValidationError("Valid shipping state is required (e.g., AZ)")
        return state

    def clean_zipCode(self):
        zip_code = self.cleaned_data["zipCode"]
        if not re.fullmatch(r"\d{5}(-\d{4})?", zip_code):
            raise forms.ValidationError("Valid shipping ZIP code is required")
        return zip_code


class LineItemForm(forms.Form):
    id = forms.CharField(max_length=64)
    name = forms.CharField(max_length=255, required=False)
    quantity = forms.IntegerField(min_value=1)
    price = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0)


def _first_error(label: str, form: forms.Form) -> str:
    field, msgs = next(iter(form.errors.items()))
    if field == "__all__":
        return f"{label}: {msgs[0]}"
    return f"{label}: {field} - {msgs[0]}"


def _check(label: str, form: forms.Form, key: str):
    if form.is_valid():
        return form.cleaned_data
    raise PaymentValidationError(_first_error(label, form), {key: form.errors.get_json_data()})


def validate_submission(data) -> dict:
    """Validate a raw payment submission and return its cleaned parts.

    Billing is always required. Shipping is required unless the order is
    delivered to a dealer (``fflDealerInfo`` present); a shipping address that
    is supplied anyway is still validated.
    """
    if not isinstance(data, dict):
        raise PaymentValidationError("Missing request body")

    checkout = _check("Invalid order", CheckoutForm(data), "order")
    card = _check("Invalid payment information", CardForm(data), "card")

    billing_raw = data.get("billingAddress")
    if not isinstance(billing_raw, dict):
        raise PaymentValidationError("Invalid billing address", {"billingAddress": "required"})
    billing = _check("Invalid billing address", AddressForm(billing_raw), "billingAddress")

    dealer = data.get("fflDealerInfo") or None
    if dealer is not None and not isinstance(dealer, dict):
        raise PaymentValidationError("Invalid dealer information", {"fflDealerInfo": "must be an object"})

    shipping_raw = data.get("shippingAddress") or None
    shipping = None
    if shipping_raw is None:
        if dealer is None:
            raise PaymentValidationError(
                "Shipping address is required unless shipping to a dealer",
                {"shippingAddress": "required"},
            )
    elif not isinstance(shipping_raw, dict):
        raise PaymentValidationError("Invalid shipping address", {"shippingAddress": "must be an object"})
    else:
        shipping = _check("Invalid shipping address", ShippingAddressForm(shipping_raw), "shippingAddress")

    items_raw = data.get("items")
    if not isinstance(items_raw, list) or not items_raw:
        raise PaymentValidationError("Order must contain at least one item", {"items": "required"})
    items = []
    for idx, raw in enumerate(items_raw):
        if not isinstance(raw, dict):
            raise PaymentValidationError(f"Invalid item #{idx + 1}", {"items": {idx: "must be an object"}})
        item = _check(f"Invalid item #{idx + 1}", LineItemForm(raw), f"items[{idx}]")
        options = raw.get("options") or {}
        items.append({**item, "options": options if isinstance(options, dict) else {}})

    return {
        "order_id": checkout["orderId"] or None,
        "amount": checkout["amount"],
        "email": checkout["email"],
        "phone": checkout["phone"],
        "user_id": checkout["userId"] or None,
        "card": card,
        "billing": billing,
        "shipping": shipping,
        "items": items,
        "ffl_dealer_info": dealer,
    }
