import asyncio
import json
import logging
from contextlib import asynccontextmanager

import httpx
import pytest
from fastapi.testclient import TestClient

from mongo_double import AsyncMongoClientDouble
from server.api.api_app import build_app, wire_services
from shared.clients.db.mongo.DBClientMongo import DBClientMongo
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.storage.local.StorageClientLocal import StorageClientLocal
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.services.CounterService import CounterService
from shared.services.ProductService import ProductService

API_KEY = "test-api-key"
OWNER = "user-a"
OTHER_OWNER = "user-b"
DESCRIPTION = "A red apple on a rustic wooden table, soft morning light."


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("ROOT_DIR", str(tmp_path))
    monkeypatch.setenv("APP_API_KEY", API_KEY)
    monkeypatch.setenv("DB_ENGINE", "mongo")
    monkeypatch.setenv("DB_MONGO_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("DB_MONGO_DATABASE", "AutoStockTest")
    monkeypatch.setenv("LLM_ENGINE", "openai")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("STORAGE_ENGINE", "local")
    monkeypatch.setenv("STORAGE_LOCAL_DIRECTORY", "uploads")
    monkeypatch.setenv("STORAGE_LOCAL_PUBLIC_URL", "/files")
    return tmp_path


@pytest.fixture
def helper_config(env) -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("autostock.tests")))


@pytest.fixture
def db_client(helper_config) -> DBClientMongo:
    client = DBClientMongo(helper_config=helper_config, client=AsyncMongoClientDouble())
    asyncio.run(client.boot())
    return client


@pytest.fixture
def counter_service(helper_config, db_client) -> CounterService:
    return CounterService(helper_config=helper_config, db_client=db_client)


@pytest.fixture
def product_service(helper_config, db_client, counter_service) -> ProductService:
    return ProductService(helper_config=helper_config, db_client=db_client, counter_service=counter_service)


@pytest.fixture
def llm_backend():
    """Scripted chat completions backend; set "status" to make it fail."""
    state = {"status": 200, "content": DESCRIPTION, "requests": []}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.content:
            state["requests"].append(json.loads(request.content))
        if state["status"] != 200:
            return httpx.Response(state["status"], json={"error": {"message": "backend says no"}})
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": state["content"]}}]})

    state["transport"] = httpx.MockTransport(handler)
    return state


@pytest.fixture
def llm_client(helper_config, llm_backend) -> LLMClientOpenai:
    client = LLMClientOpenai(helper_config=helper_config)
    asyncio.run(client.boot(transport=llm_backend["transport"]))
    return client


@pytest.fixture
def storage_client(helper_config) -> StorageClientLocal:
    client = StorageClientLocal(helper_config=helper_config)
    asyncio.run(client.boot())
    return client


@pytest.fixture
def api_client(helper_config, db_client, llm_client, storage_client):
    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, helper_config, db_client, llm_client, storage_client)
        yield

    app = build_app(lifespan=test_lifespan)
    with TestClient(app) as client:
        client.headers.update({"X-API-Key": API_KEY, "X-User-Id": OWNER})
        yield client
