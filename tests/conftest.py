from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.augmentation import Augmenter
from app.core.dispatcher import AdapterSet, Dispatcher
from app.core.pipeline import ChatPipeline
from app.core.registry import ModelRegistry
from app.main import create_app

from fakes import CountingRuleBased, FakeAdapter


@pytest.fixture()
def registry() -> ModelRegistry:
    return ModelRegistry.from_config()


@pytest.fixture()
def adapters(registry: ModelRegistry) -> AdapterSet:
    return AdapterSet(
        cloud=FakeAdapter(text="cloud reply"),
        daemon=FakeAdapter(text="daemon reply"),
        on_device=FakeAdapter(text="on-device reply"),
        rule_based=CountingRuleBased(registry),
    )


@pytest.fixture()
def dispatcher(registry: ModelRegistry, adapters: AdapterSet) -> Dispatcher:
    return Dispatcher(registry, adapters)


@pytest.fixture()
def pipeline(registry: ModelRegistry, dispatcher: Dispatcher) -> ChatPipeline:
    return ChatPipeline(Augmenter(registry), dispatcher)


@pytest.fixture()
def client(pipeline: ChatPipeline) -> TestClient:
    return TestClient(create_app(pipeline))
