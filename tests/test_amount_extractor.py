import unittest
from datetime import date
from unittest import mock

from txnlens.ml.amount_extractor import (
    IN,
    OUT,
    AmountExtractor,
    ScoredAmountExtractor,
    detect_direction,
    parse_amount_vn,
    parse_date_from_text,
    parse_transaction_text,
)


class TestParseAmount(unittest.TestCase):
    def test_supported_forms(self):
        cases = {
            "750.000": 750_000,
            "1,500,000": 1_500_000,
            "5tr873": 5_873_000,
            "4tr8": 4_800_000,
            "1 triệu 2": 1_200_000,
            "4tr8k": 4_800_000,
            "847k948": 847_948,
            "50k": 50_000,
            "2tr": 2_000_000,
            "1.5tr": 1_500_000,
            "45 nghìn": 45_000,
            "750000đ": 750_000,
            "2 tỷ": 2_000_000_000,
            "120000": 120_000,
        }
        for text, expected in cases.items():
            self.assertEqual(parse_amount_vn(text), expected, text)

    def test_amount_inside_sentence(self):
        self.assertEqual(parse_amount_vn("ăn trưa 50k"), 50_000)
        self.assertEqual(parse_amount_vn("tiền điện tháng 7 450k"), 450_000)

    def test_no_amount(self):
        self.assertIsNone(parse_amount_vn("ăn trưa"))
        self.assertIsNone(parse_amount_vn(""))
        self.assertIsNone(parse_amount_vn(None))

    def test_unit_must_end_the_word(self):
        self.assertIsNone(parse_amount_vn("50 mua"))


class TestDirectionAndNote(unittest.TestCase):
    def test_income_keywords(self):
        self.assertEqual(detect_direction("nhận lương 15tr"), IN)
        self.assertEqual(detect_direction("thu tiền nhà"), IN)

    def test_expense_wins_over_income(self):
        self.assertEqual(detect_direction("ăn trưa 50k"), OUT)
        self.assertEqual(detect_direction("mua quà được giảm giá"), OUT)

    def test_keywords_match_whole_words(self):
        # "thuốc" contains "thu" but is not the income keyword
        self.assertEqual(detect_direction("mua thuốc 100k"), OUT)
        self.assertEqual(detect_direction("thuốc 100k"), OUT)

    def test_note_strips_amount_and_month(self):
        amount, note = parse_transaction_text("Tiền điện tháng 7 450k")
        self.assertEqual(amount, 450_000)
        self.assertEqual(note, "Tiền điện")


class TestParseDate(unittest.TestCase):
    def setUp(self):
        self.today = date(2026, 3, 15)

    def test_explicit_dates(self):
        self.assertEqual(parse_date_from_text("ăn trưa 12/10", self.today), date(2026, 10, 12))
        self.assertEqual(parse_date_from_text("5-1-2025 cafe", self.today), date(2025, 1, 5))

    def test_invalid_date_falls_back_to_today(self):
        self.assertEqual(parse_date_from_text("31/02 tiền nhà", self.today), self.today)

    def test_relative_dates(self):
        self.assertEqual(parse_date_from_text("hôm qua ăn phở", self.today), date(2026, 3, 14))
        self.assertEqual(parse_date_from_text("hôm kia đổ xăng", self.today), date(2026, 3, 13))
        self.assertEqual(parse_date_from_text("tuần trước xem phim", self.today), date(2026, 3, 8))
        self.assertEqual(parse_date_from_text("3 ngày trước mua sách", self.today), date(2026, 3, 12))
        self.assertEqual(parse_date_from_text("ăn trưa", self.today), self.today)


class TestAmountExtractor(unittest.TestCase):
    def test_scored_extractor_prefers_plausible_amount(self):
        res = ScoredAmountExtractor().extract("ăn trưa 50k")
        self.assertEqual(res.amount, 50_000)
        self.assertGreater(res.confidence, 0.5)
        self.assertLessEqual(res.confidence, 1.0)

    def test_scored_extractor_without_amount(self):
        res = ScoredAmountExtractor().extract("ăn trưa")
        self.assertIsNone(res.amount)
        self.assertEqual(res.confidence, 0.0)

    def test_failing_strategy_cascades_to_regex(self):
        scored = ScoredAmountExtractor()
        with mock.patch.object(scored, "extract", side_effect=RuntimeError("boom")):
            extractor = AmountExtractor(scored=scored)
            self.assertEqual(extractor.extract_amount("50k"), 50_000)

    def test_extract_never_raises(self):
        extractor = AmountExtractor()
        res = extractor.extract("nhận lương 15tr", today=date(2026, 1, 1))
        self.assertEqual(res.amount, 15_000_000)
        self.assertEqual(res.io, IN)
        self.assertEqual(res.note, "nhận lương")
        self.assertEqual(res.date, date(2026, 1, 1))

        empty = extractor.extract("")
        self.assertIsNone(empty.amount)
        self.assertEqual(empty.io, OUT)


if __name__ == '__main__':
    unittest.main()
