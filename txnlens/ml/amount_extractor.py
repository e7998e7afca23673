"""
Amount / Direction Extractor

Deterministic parsing of Vietnamese transaction notes:
- monetary amount ("50k", "4tr8", "1 triệu 2", "750.000đ", ...)
- direction (IN for income, OUT for spending)
- a cleaned note and the transaction date

Amount extraction cascades through strategies: a scored extractor that ranks
candidate amounts by context first, then the plain regex parser. No strategy
failure escapes ``AmountExtractor``; it is logged and treated as "no amount".
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, List, Optional, Tuple

from txnlens.ml.tokenizer import tokenize

logger = logging.getLogger(__name__)

IN = "IN"
OUT = "OUT"

# Unit must not run into another letter ("50 mua" is not 50 million)
_NOT_LETTER = r"(?![^\W\d_])"

MONEY_PATTERN = re.compile(
    r"\d+(?:[.,]\d{3})*\s*"
    r"(?:k|nghìn|ngàn|ngan|ng|tr|triệu|trieu|m|tỷ|ty|b|đồng|dong|đ|d|vnd|vnđ)"
    + _NOT_LETTER
    + r"(?:\s*\d{1,3})?(?!\d)",
    re.IGNORECASE,
)

_FORMATTED = re.compile(r"(\d{1,3}(?:[.,]\d{3})+)(?:\s*(?:đồng|dong|đ|d|vnd|vnđ))?", re.IGNORECASE)
_TR_DIGITS = re.compile(r"(\d+)tr(\d+)(?!\d|k)", re.IGNORECASE)
_SPACED_TRIEU = re.compile(r"(\d+)\s+(?:triệu|trieu|m)\s+(\d+)(?!\d)", re.IGNORECASE)
_TR_DIGITS_K = re.compile(r"(\d+)tr(\d+)k", re.IGNORECASE)
_K_DIGITS = re.compile(r"(\d+)k(\d+)", re.IGNORECASE)
_WITH_UNIT = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*"
    r"([kdđ]|nghìn|ngàn|ngan|ng|tr|triệu|trieu|m|tỷ|ty|b|dong|đồng|vnd|vnđ)"
    + _NOT_LETTER,
    re.IGNORECASE,
)
_PLAIN_NUMBER = re.compile(r"^(\d+(?:[.,]\d+)?)$")

INCOME_KEYWORDS = {"nhận", "thu", "lương", "thưởng", "được", "kiếm"}
EXPENSE_KEYWORDS = {"mua", "chi", "trả", "nạp", "mất", "tiêu"}


def _fraction_thousands(digits: str) -> int:
    """Digits trailing a million unit: "8" -> 800, "87" -> 870, "873" -> 873 (thousands)."""
    return int(digits[:3].ljust(3, "0"))


def _unit_factor(unit: str) -> int:
    unit = unit.lower()
    if unit == "k" or unit.startswith("ng"):
        return 1_000
    if unit.startswith("tr") or unit == "m":
        return 1_000_000
    if unit.startswith("tỷ") or unit.startswith("ty") or unit == "b":
        return 1_000_000_000
    return 1


def parse_amount_vn(text: str) -> Optional[int]:
    """
    Parse a Vietnamese money amount from free text.

    Returns the amount in VND or None when nothing amount-like is found.
    """
    if not text or not isinstance(text, str):
        return None
    cleaned = text.lower().strip()

    # Thousand separators first so "750.000" is not read as 750 with a unit
    m = _FORMATTED.search(cleaned)
    if m:
        n = int(re.sub(r"[.,]", "", m.group(1)))
        if n >= 1000:
            return n

    # "5tr873" / "4tr8"
    m = _TR_DIGITS.search(cleaned)
    if m:
        return int(m.group(1)) * 1_000_000 + _fraction_thousands(m.group(2)) * 1_000

    # "1 triệu 2"
    m = _SPACED_TRIEU.search(cleaned)
    if m:
        return int(m.group(1)) * 1_000_000 + _fraction_thousands(m.group(2)) * 1_000

    # "4tr8k"
    m = _TR_DIGITS_K.search(cleaned)
    if m:
        return int(m.group(1)) * 1_000_000 + _fraction_thousands(m.group(2)) * 1_000

    # "847k948"
    m = _K_DIGITS.search(cleaned)
    if m:
        return int(m.group(1)) * 1_000 + int(m.group(2))

    # "50k", "2tr", "1.5tr", "45 nghìn", "750000đ"
    m = _WITH_UNIT.search(cleaned)
    if m:
        try:
            n = float(m.group(1).replace(",", "."))
        except ValueError:
            return None
        return int(round(n * _unit_factor(m.group(2))))

    # Bare number only when it is the whole input
    m = _PLAIN_NUMBER.match(cleaned)
    if m:
        return int(re.sub(r"[.,]", "", m.group(1)))

    return None


def parse_transaction_text(text: str) -> Tuple[Optional[int], str]:
    """
    Split a note into (amount, cleaned note).

    Example: "Tiền điện tháng 7 450k" -> (450000, "Tiền điện")
    """
    amount = None
    match = MONEY_PATTERN.search(text or "")
    if match:
        amount = parse_amount_vn(match.group(0))

    note = MONEY_PATTERN.sub(" ", text or "")
    note = re.sub(r"tháng\s*\d+", " ", note, flags=re.IGNORECASE)
    note = re.sub(r"ngày\s*\d+", " ", note, flags=re.IGNORECASE)
    note = re.sub(r"\d+/\d+(?:/\d+)?", " ", note)
    note = re.sub(r"\b\d+[.,]?\d*\b", " ", note)
    note = re.sub(r"\s+(tháng|ngày|năm)\s+", " ", note, flags=re.IGNORECASE)
    note = re.sub(r"\s+", " ", note).strip()
    return amount, note


def detect_direction(text: str) -> str:
    tokens = set(tokenize(text))
    has_income = bool(tokens & INCOME_KEYWORDS)
    has_expense = bool(tokens & EXPENSE_KEYWORDS)
    if has_income and not has_expense:
        return IN
    return OUT


def parse_date_from_text(text: str, today: Optional[date] = None) -> date:
    """Resolve dd/mm[/yyyy] or Vietnamese relative dates; defaults to today."""
    today = today or date.today()
    lower = (text or "").lower()

    m = re.search(r"(\d{1,2})[/\-](\d{1,2})(?:[/\-](\d{4}))?", lower)
    if m:
        year = int(m.group(3)) if m.group(3) else today.year
        try:
            return date(year, int(m.group(2)), int(m.group(1)))
        except ValueError:
            pass

    if "hôm qua" in lower:
        return today - timedelta(days=1)
    if "hôm kia" in lower:
        return today - timedelta(days=2)
    if "tuần trước" in lower:
        return today - timedelta(days=7)

    m = re.search(r"(\d+)\s*ngày\s*trước", lower)
    if m:
        return today - timedelta(days=int(m.group(1)))

    return today


# -----------------------------------------------------------------------------
# Scored extraction
# -----------------------------------------------------------------------------

_TRANSACTION_VERBS = re.compile(r"(chi|trả|mua|bán|nạp|rút|chuyển|gửi|nhận|thanh toán|thu)", re.IGNORECASE)
_MONEY_UNIT = re.compile(r"(k|tr|triệu|nghìn|ngàn|đ|d|dong|đồng)", re.IGNORECASE)
_CONTEXT_RANGES = [
    (re.compile(r"(ăn|uống|cafe|cà phê|trà|phở|cơm)", re.IGNORECASE), 10_000, 500_000),
    (re.compile(r"(điện|nước|internet|wifi|phí)", re.IGNORECASE), 100_000, 5_000_000),
    (re.compile(r"(xe|taxi|grab|xăng)", re.IGNORECASE), 10_000, 200_000),
]


@dataclass
class ScoredAmount:
    amount: Optional[int]
    confidence: float
    candidates: List[int] = field(default_factory=list)


class ScoredAmountExtractor:
    """Ranks every amount candidate in the text by plausibility."""

    def candidates(self, text: str) -> List[int]:
        found: List[int] = []
        for match in MONEY_PATTERN.finditer(text):
            value = parse_amount_vn(match.group(0))
            if value is not None and value not in found:
                found.append(value)
        whole = parse_amount_vn(text)
        if whole is not None and whole not in found:
            found.append(whole)
        return found

    def score(self, amount: int, text: str) -> int:
        score = 0
        if 1_000 <= amount <= 100_000_000:
            score += 50
        if _MONEY_UNIT.search(text):
            score += 30
        if _TRANSACTION_VERBS.search(text):
            score += 20
        if 10_000 <= amount <= 1_000_000:
            score += 15
        elif 1_000_000 <= amount <= 10_000_000:
            score += 10
        for pattern, low, high in _CONTEXT_RANGES:
            if pattern.search(text) and low <= amount <= high:
                score += 15
        return score

    def extract(self, text: str) -> ScoredAmount:
        if not text or not text.strip():
            return ScoredAmount(amount=None, confidence=0.0)
        cands = self.candidates(text)
        if not cands:
            return ScoredAmount(amount=None, confidence=0.0)
        # max() keeps the first candidate on equal scores
        best = max(cands, key=lambda a: self.score(a, text))
        confidence = min(self.score(best, text) / 100.0, 1.0)
        return ScoredAmount(amount=best, confidence=confidence, candidates=cands)


@dataclass
class ExtractionResult:
    amount: Optional[int]
    io: str
    note: str
    date: date
    confidence: float


class AmountExtractor:
    """Cascade of amount strategies; never raises to the caller."""

    def __init__(self, scored: Optional[ScoredAmountExtractor] = None):
        self.scored = scored or ScoredAmountExtractor()
        self._strategies: List[Tuple[str, Callable[[str], Tuple[Optional[int], float]]]] = [
            ("scored", self._scored_amount),
            ("regex", self._regex_amount),
        ]

    def _scored_amount(self, text: str) -> Tuple[Optional[int], float]:
        res = self.scored.extract(text)
        return res.amount, res.confidence

    @staticmethod
    def _regex_amount(text: str) -> Tuple[Optional[int], float]:
        amount = parse_amount_vn(text)
        return amount, (0.5 if amount is not None else 0.0)

    def extract_amount_with_confidence(self, text: str) -> Tuple[Optional[int], float]:
        for name, strategy in self._strategies:
            try:
                amount, confidence = strategy(text)
            except Exception as e:
                logger.warning("Amount strategy %s failed for %r: %s", name, text, e)
                continue
            if amount is not None:
                return amount, confidence
        return None, 0.0

    def extract_amount(self, text: str) -> Optional[int]:
        return self.extract_amount_with_confidence(text)[0]

    def extract(self, text: str, today: Optional[date] = None) -> ExtractionResult:
        amount, confidence = self.extract_amount_with_confidence(text)
        try:
            _, note = parse_transaction_text(text)
            io = detect_direction(text)
            when = parse_date_from_text(text, today=today)
        except Exception as e:
            logger.warning("Note/direction parsing failed for %r: %s", text, e)
            note, io, when = (text or "").strip(), OUT, today or date.today()
        return ExtractionResult(
            amount=amount,
            io=io,
            note=note or (text or "").strip(),
            date=when,
            confidence=confidence,
        )
