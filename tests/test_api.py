import tempfile
import unittest
from unittest import mock

import mongomock
from fastapi.testclient import TestClient

from txnlens.core.config import settings
from txnlens.core.jwt_handler import create_access_token
from txnlens.main import app


class TestApi(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

        patches = [
            mock.patch("txnlens.main.connect", return_value=mongomock.MongoClient()),
            mock.patch.object(settings, "DATA_DIR", self.tmp.name),
            mock.patch.object(settings, "WARMUP_ON_STARTUP", False),
            mock.patch.object(settings, "GROQ_API_KEY", None),
            mock.patch.object(settings, "HUGGINGFACE_API_KEY", None),
            mock.patch.object(settings, "LLM_API_KEY", None),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

        self.client = TestClient(app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)
        self.headers = {"Authorization": f"Bearer {create_access_token('user-1')}"}

    def test_health_is_public(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_token_required(self):
        self.assertEqual(self.client.post("/classify", json={"text": "ăn trưa 50k"}).status_code, 401)
        resp = self.client.post("/classify", json={"text": "ăn trưa 50k"},
                                headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(resp.status_code, 401)

    def test_classify_and_correct(self):
        resp = self.client.post("/classify", json={"text": "cafe 30k"}, headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["amount"], 30000)
        self.assertEqual(data["source"], "extractor")
        self.assertTrue(data["sample_id"].startswith("ml_"))

        app.state.db["categories"].insert_one({"_id": "cat_food", "name": "Ăn uống", "type": "OUT"})
        resp = self.client.post("/corrections", headers=self.headers,
                                json={"sample_id": data["sample_id"], "category_id": "cat_food"})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["data"]["accepted"])

        pairs = self.client.get("/training-log/confusion-pairs", headers=self.headers).json()["data"]
        self.assertEqual(pairs, [{"predicted_category_id": None, "chosen_category_id": "cat_food", "count": 1}])

        latency = self.client.get("/monitoring/latency", headers=self.headers).json()["data"]
        self.assertEqual(latency["classify"]["count"], 1)

    def test_blank_text_is_rejected(self):
        resp = self.client.post("/classify", json={"text": "   "}, headers=self.headers)
        self.assertEqual(resp.status_code, 422)

    def test_correction_errors(self):
        resp = self.client.post("/corrections", headers=self.headers,
                                json={"sample_id": "ml_missing", "category_id": "cat_food"})
        self.assertEqual(resp.status_code, 404)

        sample_id = self.client.post("/classify", json={"text": "cafe 30k"},
                                     headers=self.headers).json()["data"]["sample_id"]
        resp = self.client.post("/corrections", headers=self.headers,
                                json={"sample_id": sample_id, "category_id": "cat_nope"})
        self.assertEqual(resp.status_code, 422)

    def test_model_status(self):
        resp = self.client.get("/model/status", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertFalse(data["is_ready"])
        self.assertFalse(data["is_training"])
        self.assertIn("files", data["model_info"])


if __name__ == '__main__':
    unittest.main()
