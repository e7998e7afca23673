from pymongo import MongoClient

from txnlens.core.config import Settings


def connect(settings: Settings) -> MongoClient:
    return MongoClient(settings.MONGO_URI)
