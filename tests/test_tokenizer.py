import unittest

from txnlens.ml.tokenizer import OOV_ID, PAD_ID, Vocabulary, normalize, text_to_sequence, tokenize


class TestNormalize(unittest.TestCase):
    def test_lowercases_and_strips_punctuation(self):
        self.assertEqual(normalize("Ăn Trưa, 50K!!"), "ăn trưa 50k")
        self.assertEqual(normalize("  cà   phê\t\nsáng "), "cà phê sáng")

    def test_idempotent(self):
        for text in ["Tiền điện T7: 450.000đ", "GRAB -> nhà", "", "!!!"]:
            once = normalize(text)
            self.assertEqual(normalize(once), once)

    def test_non_string_input(self):
        self.assertEqual(normalize(None), "")
        self.assertEqual(normalize(123), "123")


class TestSequences(unittest.TestCase):
    def setUp(self):
        self.word_index = {"ăn": 2, "trưa": 3}

    def test_empty_text_is_all_padding(self):
        self.assertEqual(tokenize(""), [])
        self.assertEqual(text_to_sequence("", self.word_index, 16), [PAD_ID] * 16)

    def test_unknown_tokens_map_to_oov(self):
        seq = text_to_sequence("ăn trưa 50k", self.word_index, 5)
        self.assertEqual(seq, [2, 3, OOV_ID, PAD_ID, PAD_ID])

    def test_truncates_to_max_len(self):
        seq = text_to_sequence("ăn " * 20, self.word_index, 16)
        self.assertEqual(len(seq), 16)
        self.assertTrue(all(i == 2 for i in seq))


class TestVocabulary(unittest.TestCase):
    def test_ids_by_frequency_then_alphabetical(self):
        vocab = Vocabulary.build(["b a", "a c", "d"])
        self.assertEqual(vocab.word_index["a"], 2)
        self.assertEqual(vocab.word_index["b"], 3)
        self.assertEqual(vocab.word_index["c"], 4)
        self.assertEqual(vocab.word_index["d"], 5)
        self.assertEqual(vocab.size, 6)

    def test_min_frequency_and_max_words(self):
        vocab = Vocabulary.build(["a a b", "a c c"], min_frequency=2)
        self.assertIn("a", vocab)
        self.assertIn("c", vocab)
        self.assertNotIn("b", vocab)
        self.assertEqual(len(Vocabulary.build(["a b c d"], max_words=2)), 2)

    def test_hash_ignores_insertion_order(self):
        v1 = Vocabulary({"a": 2, "b": 3})
        v2 = Vocabulary({"b": 3, "a": 2})
        self.assertEqual(v1.hash(), v2.hash())
        self.assertNotEqual(v1.hash(), Vocabulary({"a": 3, "b": 2}).hash())

    def test_dict_round_trip(self):
        vocab = Vocabulary.build(["ăn trưa", "nhận lương"])
        restored = Vocabulary.from_dict(vocab.to_dict())
        self.assertEqual(restored.hash(), vocab.hash())
        self.assertEqual(restored.encode("ăn trưa", 4), vocab.encode("ăn trưa", 4))


if __name__ == '__main__':
    unittest.main()
