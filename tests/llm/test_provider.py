"""Tests for LLM provider protocol conformance."""

from autodidact.improve.codegen import CodeGenerator, LLMCodeGenerator
from autodidact.improve.deployer import REQUIRED_MARKERS
from autodidact.llm.anthropic import AnthropicLLMClient
from autodidact.llm.ollama import OllamaLLMClient
from autodidact.llm.provider import LLMProvider
from tests.conftest import FakeLLM


def test_backends_conform_to_protocol():
    for client in (FakeLLM(), OllamaLLMClient(), AnthropicLLMClient()):
        assert isinstance(client, LLMProvider)


def test_llm_code_generator_conforms_to_protocol():
    assert isinstance(LLMCodeGenerator(FakeLLM(), REQUIRED_MARKERS), CodeGenerator)
