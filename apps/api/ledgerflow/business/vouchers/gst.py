from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")
_ZERO = Decimal("0")

_STATE_CODES = {
    "01": "jammu and kashmir",
    "02": "himachal pradesh",
    "03": "punjab",
    "04": "chandigarh",
    "05": "uttarakhand",
    "06": "haryana",
    "07": "delhi",
    "08": "rajasthan",
    "09": "uttar pradesh",
    "10": "bihar",
    "11": "sikkim",
    "12": "arunachal pradesh",
    "13": "nagaland",
    "14": "manipur",
    "15": "mizoram",
    "16": "tripura",
    "17": "meghalaya",
    "18": "assam",
    "19": "west bengal",
    "20": "jharkhand",
    "21": "odisha",
    "22": "chhattisgarh",
    "23": "madhya pradesh",
    "24": "gujarat",
    "26": "dadra and nagar haveli and daman and diu",
    "27": "maharashtra",
    "29": "karnataka",
    "30": "goa",
    "31": "lakshadweep",
    "32": "kerala",
    "33": "tamil nadu",
    "34": "puducherry",
    "35": "andaman and nicobar islands",
    "36": "telangana",
    "37": "andhra pradesh",
    "38": "ladakh",
}


def q2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def normalize_state(value: str | None) -> str | None:
    """Canonical state name from a name or a two digit GST state code."""
    if value is None:
        return None
    cleaned = " ".join(value.strip().lower().split())
    if not cleaned:
        return None
    code = cleaned.split("-")[0].strip()
    if code.isdigit():
        return _STATE_CODES.get(code.zfill(2), code.zfill(2))
    return cleaned.replace("&", "and")


def is_intra_state(place_of_supply: str | None, company_state: str | None) -> bool:
    """Intra-state when both states are known and equal; unknown defaults to intra-state."""
    supply = normalize_state(place_of_supply)
    company = normalize_state(company_state)
    if supply is None or company is None:
        return True
    return supply == company


@dataclass(slots=True)
class LineTax:
    taxable: Decimal
    cgst: Decimal = _ZERO
    sgst: Decimal = _ZERO
    igst: Decimal = _ZERO
    cess: Decimal = _ZERO
    exact_total: Decimal = _ZERO

    @property
    def tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(slots=True)
class InvoiceTotals:
    lines: list[LineTax] = field(default_factory=list)
    subtotal: Decimal = _ZERO
    cgst: Decimal = _ZERO
    sgst: Decimal = _ZERO
    igst: Decimal = _ZERO
    cess: Decimal = _ZERO
    round_off: Decimal = _ZERO
    total: Decimal = _ZERO

    @property
    def components_total(self) -> Decimal:
        return self.subtotal + self.cgst + self.sgst + self.igst + self.cess


def compute_line_tax(
    quantity: Decimal,
    rate: Decimal,
    *,
    gst_rate: Decimal,
    intra_state: bool,
    discount_percent: Decimal = _ZERO,
    cess_amount: Decimal = _ZERO,
) -> LineTax:
    gross = Decimal(quantity) * Decimal(rate)
    exact_taxable = gross - gross * Decimal(discount_percent) / 100
    exact_tax = exact_taxable * Decimal(gst_rate) / 100
    taxable = q2(exact_taxable)
    tax = q2(taxable * Decimal(gst_rate) / 100)
    line = LineTax(taxable=taxable, cess=q2(cess_amount))
    if intra_state:
        line.cgst = q2(tax / 2)
        line.sgst = tax - line.cgst
    else:
        line.igst = tax
    line.exact_total = exact_taxable + exact_tax + Decimal(cess_amount)
    return line


def compute_invoice_totals(lines: list[LineTax], *, round_to_rupee: bool = False) -> InvoiceTotals:
    """Header totals; the difference between the total and its rounded parts is the round off."""
    totals = InvoiceTotals(lines=list(lines))
    for line in lines:
        totals.subtotal += line.taxable
        totals.cgst += line.cgst
        totals.sgst += line.sgst
        totals.igst += line.igst
        totals.cess += line.cess

    exact_total = sum((line.exact_total for line in lines), _ZERO)
    if round_to_rupee:
        totals.total = exact_total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    else:
        totals.total = q2(exact_total)
    totals.round_off = totals.total - totals.components_total
    return totals
