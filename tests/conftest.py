"""Shared test fixtures for pytest.

Provides vote and provider factories, scripted fake adapters and temporary
databases used across multiple test files.
"""

import asyncio
from typing import Callable, List, Optional

import pytest

from hydravote.config import Settings
from hydravote.database.db import Database
from hydravote.engine.models import ModelVote
from hydravote.providers.models import (
    AdapterResult,
    Capability,
    ParsedAnalysis,
    ProviderConfig,
    RawPayload,
)


class FakeAdapter:
    """Scripted provider adapter.

    Records every call and either returns a canned analysis, raises, returns
    no response, or sleeps past its deadline.
    """

    def __init__(
        self,
        analysis: Optional[ParsedAnalysis] = None,
        confidence: Optional[float] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        hang: bool = False,
    ):
        self.analysis = analysis
        self.confidence = confidence
        self.delay = delay
        self.error = error
        self.hang = hang
        self.calls: List[dict] = []
        self.finished = False

    async def analyze(self, images: List[bytes], prompt: str) -> AdapterResult:
        self.calls.append({"images": list(images), "prompt": prompt})
        if self.hang:
            await asyncio.sleep(3600)
        if self.delay:
            await asyncio.sleep(self.delay)
        self.finished = True
        if self.error is not None:
            raise self.error
        if self.analysis is None:
            return AdapterResult(latency_ms=int(self.delay * 1000))

        confidence = self.confidence
        if confidence is None:
            confidence = self.analysis.confidence if self.analysis.confidence is not None else 0.8
        return AdapterResult(
            response=self.analysis,
            confidence=confidence,
            latency_ms=int(self.delay * 1000),
            raw=RawPayload(source="fake", data={"item": self.analysis.item_name}),
        )


@pytest.fixture
def fake_adapter():
    """The FakeAdapter class."""
    return FakeAdapter


@pytest.fixture
def make_vote() -> Callable[..., ModelVote]:
    """Factory for ModelVote with sensible defaults."""

    def _make(
        provider_id: str = "p1",
        value: float = 100.0,
        decision: str = "BUY",
        confidence: float = 0.8,
        weight: Optional[float] = None,
        stage: Capability = Capability.VISION,
        item_name: str = "Vintage Camera",
        category: Optional[str] = None,
    ) -> ModelVote:
        return ModelVote(
            provider_id=provider_id,
            provider_name=provider_id.title(),
            item_name=item_name,
            estimated_value=value,
            decision=decision,
            confidence=confidence,
            latency_ms=500,
            weight=confidence if weight is None else weight,
            stage=stage,
            category=category,
        )

    return _make


@pytest.fixture
def make_config() -> Callable[..., ProviderConfig]:
    """Factory for ProviderConfig with sensible defaults."""

    def _make(
        provider_id: str,
        capability: Capability = Capability.VISION,
        base_weight: float = 1.0,
        specialty: Optional[str] = None,
        timeout_seconds: float = 5.0,
        active: bool = True,
    ) -> ProviderConfig:
        return ProviderConfig(
            id=provider_id,
            name=provider_id.title(),
            base_weight=base_weight,
            capability=capability,
            specialty=specialty,
            active=active,
            kind="openai",
            model="test-model",
            api_key_setting="openai_api_key",
            timeout_seconds=timeout_seconds,
        )

    return _make


@pytest.fixture
def analysis() -> Callable[..., ParsedAnalysis]:
    """Factory for ParsedAnalysis."""

    def _make(
        item_name: str = "Canon AE-1 Camera",
        value: float = 120.0,
        decision: str = "BUY",
        reasoning: str = "Clean body with working shutter",
        confidence: Optional[float] = 0.8,
        category: Optional[str] = "electronics",
    ) -> ParsedAnalysis:
        return ParsedAnalysis(
            item_name=item_name,
            estimated_value=value,
            decision=decision,
            reasoning=reasoning,
            confidence=confidence,
            category=category,
        )

    return _make


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment, with dummy API keys."""
    return Settings(
        _env_file=None,
        openai_api_key="test-openai",
        anthropic_api_key="test-anthropic",
        google_api_key="test-google",
        xai_api_key="test-xai",
        perplexity_api_key="test-perplexity",
        database_path=str(tmp_path / "hydravote.db"),
        log_file=str(tmp_path / "hydravote.log"),
        provider_max_retries=0,
    )


@pytest.fixture
def db(tmp_path):
    """Temporary database with schema applied."""
    database = Database(str(tmp_path / "test.db"))
    database.initialize_schema()
    yield database
    database.close()
