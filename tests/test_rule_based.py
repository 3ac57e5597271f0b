from __future__ import annotations

import pytest

from app.core.registry import ModelRegistry
from app.core.types import ChatMessage, GenerationOptions
from app.collaborators.analyzer import KeywordAnalyzer
from app.providers.knowledge import CLOSING_LINE, EMPTY_PROMPT_REPLY, MESH_HEADS, mesh_feature_vector
from app.providers.rule_based import RuleBasedAdapter


@pytest.fixture()
def registry() -> ModelRegistry:
    return ModelRegistry.from_config()


@pytest.fixture()
def adapter(registry: ModelRegistry) -> RuleBasedAdapter:
    return RuleBasedAdapter(registry)


async def _reply(adapter, registry, messages, model_id="local/instruct") -> str:
    result = await adapter.generate_once(messages, registry.lookup(model_id), GenerationOptions())
    assert isinstance(result.text, str)
    assert result.text.strip()
    return result.text


@pytest.mark.asyncio
@pytest.mark.parametrize("model_id", ["local/instruct", "local/assistant-10m", "local/aakarsh"])
@pytest.mark.parametrize(
    "messages",
    [
        [],
        [ChatMessage(role="user", content="")],
        [ChatMessage(role="user", content="   \n\t ")],
        [ChatMessage(role="user", content="\x00\x01\x02 ��� }{][")],
        [ChatMessage(role="user", content="🤖" * 500)],
        [ChatMessage(role="user", content=12345)],
        [ChatMessage(role="assistant", content="only an assistant turn")],
        [ChatMessage(role="user", content="word " * 5000)],
    ],
)
async def test_never_raises_for_garbage_input(adapter, registry, messages, model_id):
    await _reply(adapter, registry, messages, model_id)


@pytest.mark.asyncio
async def test_empty_prompt_gets_greeting(adapter, registry):
    text = await _reply(adapter, registry, [ChatMessage(role="user", content="  ")])

    assert text == EMPTY_PROMPT_REPLY


@pytest.mark.asyncio
async def test_topic_playbook_matches(adapter, registry):
    text = await _reply(
        adapter, registry, [ChatMessage(role="user", content="Our deploy keeps breaking")]
    )

    assert "Rollback" in text
    assert text.endswith(CLOSING_LINE)


@pytest.mark.asyncio
async def test_chat_keywords_match_whole_words_only(adapter, registry):
    text = await _reply(adapter, registry, [ChatMessage(role="user", content="this is fine")])

    # "this" must not trigger the "hi" greeting
    assert not text.startswith("Hey there")


@pytest.mark.asyncio
async def test_help_lists_capabilities(adapter, registry):
    text = await _reply(adapter, registry, [ChatMessage(role="user", content="What can you do?")])

    assert "**DevOps**" in text


@pytest.mark.asyncio
async def test_llm_question_lists_offline_models(adapter, registry):
    text = await _reply(
        adapter, registry, [ChatMessage(role="user", content="Which LLM options do I have?")]
    )

    assert "Offline choices already wired in" in text
    assert "Mistral 7B (Ollama)" in text
    assert "GPT-4o" not in text


@pytest.mark.asyncio
async def test_earlier_topics_are_mentioned(adapter, registry):
    messages = [
        ChatMessage(role="user", content="first question"),
        ChatMessage(role="assistant", content="answer"),
        ChatMessage(role="user", content="second question"),
        ChatMessage(role="user", content="third question"),
        ChatMessage(role="user", content="fourth question"),
        ChatMessage(role="user", content="latest question"),
    ]

    text = await _reply(adapter, registry, messages)

    assert 'Earlier you also mentioned "second question", "third question", and "fourth question".' in text
    assert "first question" not in text.split("Earlier you also mentioned")[1]


@pytest.mark.asyncio
async def test_scoring_head_reports_routing(adapter, registry):
    text = await _reply(
        adapter,
        registry,
        [ChatMessage(role="user", content="Please plan the Kubernetes migration for March 3, 2025.")],
        model_id="local/assistant-10m",
    )

    assert text.startswith("Local Assistant (10M)")
    assert "Routing:" in text


@pytest.mark.asyncio
async def test_non_rule_based_descriptor_uses_default(adapter, registry):
    result = await adapter.generate_once(
        [ChatMessage(role="user", content="hi")],
        registry.lookup("gpt-4o"),
        GenerationOptions(),
    )

    assert result.resolved_model_id == registry.default.id


@pytest.mark.asyncio
async def test_stream_concatenates_to_full_reply(adapter, registry):
    messages = [ChatMessage(role="user", content="How should I monitor this service?")]
    descriptor = registry.lookup("local/instruct")

    whole = (await adapter.generate_once(messages, descriptor, GenerationOptions())).text
    fragments = [f async for f in adapter.generate_stream(messages, descriptor, GenerationOptions())]

    assert "".join(fragments) == whole


@pytest.mark.asyncio
async def test_mesh_model_reports_routing_and_product_sheet(adapter, registry):
    text = await _reply(
        adapter,
        registry,
        [ChatMessage(role="user", content="Can you review our Kubernetes deploy plan before Friday?")],
        model_id="local/aakarsh",
    )

    assert text.startswith("AAKARSH")
    assert "Mesh routing:" in text
    label = text.split("Mesh routing: ", 1)[1].split(" ", 1)[0]
    assert label in {"architect", "analyst+", "mentor+", "stability"}
    assert "Production sheet, AAKARSH v1.0.0:" in text
    assert "Intent detected: question" in text


@pytest.mark.asyncio
async def test_mesh_model_empty_prompt_greets_with_sheet(adapter, registry):
    result = await adapter.generate_once(
        [ChatMessage(role="user", content="")],
        registry.lookup("local/aakarsh"),
        GenerationOptions(),
    )

    assert result.resolved_model_id == "local/aakarsh"
    assert result.text.startswith("AAKARSH is primed")
    assert "Tone read: neutral." in result.text


def test_mesh_features_use_part_of_speech_counts():
    analysis = KeywordAnalyzer().analyze("Deploy the scalable service and monitor failing jobs urgently now")
    features = mesh_feature_vector("Deploy the scalable service and monitor failing jobs urgently now", analysis)

    assert len(features) == len(MESH_HEADS[0].weights) == 10
    assert features[2] == 1.0
    assert all(0.0 <= value <= 1.0 for value in features)
    assert features[7] > 0 and features[8] > 0 and features[9] > 0


@pytest.mark.asyncio
async def test_scoring_head_appends_product_sheet(adapter, registry):
    text = await _reply(
        adapter,
        registry,
        [ChatMessage(role="user", content="Please plan the migration")],
        model_id="local/assistant-10m",
    )

    assert "Production sheet, Local Assistant (10M) v1.0.0:" in text
