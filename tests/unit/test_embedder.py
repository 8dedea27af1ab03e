"""Unit tests for the embedding generator and its backends."""

from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from lexindex.adapters.embedding.base import EmbeddingBackend
from lexindex.adapters.embedding.ollama import OllamaEmbeddingBackend
from lexindex.adapters.embedding.openai import OpenAIEmbeddingBackend
from lexindex.core.config import load_settings
from lexindex.core.errors import EmbeddingBackendError
from lexindex.services.embed_service import EmbeddingGenerator, build_backend
from tests.conftest import DIM, FakeEmbeddingBackend, fake_vector


class ScriptedBackend(EmbeddingBackend):
    """Returns a fixed response regardless of input."""

    name = "scripted"

    def __init__(self, response) -> None:
        self.response = response

    def embed_batch(self, texts: list[str]):
        return self.response


# ── EmbeddingGenerator ──────────────────────────────────────────────────


def test_preserves_order_and_length(backend: FakeEmbeddingBackend) -> None:
    texts = ["alpha", "beta", "gamma"]
    vecs = EmbeddingGenerator(backend).embed(texts)
    assert vecs == [fake_vector(t) for t in texts]
    assert all(len(v) == DIM for v in vecs)


def test_empty_input_makes_no_backend_call(backend: FakeEmbeddingBackend) -> None:
    assert EmbeddingGenerator(backend).embed([]) == []
    assert backend.calls == []


def test_inputs_are_truncated(backend: FakeEmbeddingBackend) -> None:
    gen = EmbeddingGenerator(backend, max_input_chars=10)
    gen.embed(["x" * 25, "short"])
    assert backend.calls == [["x" * 10, "short"]]


def test_large_inputs_are_split_into_backend_batches(backend: FakeEmbeddingBackend) -> None:
    texts = [f"text {i}" for i in range(7)]
    vecs = EmbeddingGenerator(backend, max_batch_size=3).embed(texts)
    assert [len(c) for c in backend.calls] == [3, 3, 1]
    assert vecs == [fake_vector(t) for t in texts]


@pytest.mark.parametrize(
    "response",
    [
        [[0.1] * DIM],  # short
        [],  # empty
        None,  # not a list
        [[0.1] * DIM, []],  # empty vector
        [[0.1] * DIM, ["a", "b"]],  # non-numeric
        [[0.1] * DIM, [True, False]],  # bools are not numbers here
        [[0.1] * DIM, [float("nan")] * DIM],
    ],
)
def test_bad_backend_responses_raise(response) -> None:
    gen = EmbeddingGenerator(ScriptedBackend(response))
    with pytest.raises(EmbeddingBackendError):
        gen.embed(["one", "two"])


def test_embed_one_uses_query_path(backend: FakeEmbeddingBackend) -> None:
    vec = EmbeddingGenerator(backend, max_input_chars=4).embed_one("tenancy law")
    assert backend.query_calls == ["tena"]
    assert vec == fake_vector("tena")


def test_embed_one_rejects_empty_vector() -> None:
    with pytest.raises(EmbeddingBackendError):
        EmbeddingGenerator(ScriptedBackend([])).embed_one("q")


# ── Ollama backend ──────────────────────────────────────────────────────


def _ollama(handler) -> OllamaEmbeddingBackend:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OllamaEmbeddingBackend("http://ollama.test/", "nomic-embed-text", client=client)


def test_ollama_batch_endpoint() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append((request.url.path, body))
        return httpx.Response(200, json={"embeddings": [[float(i)] * 3 for i, _ in enumerate(body["input"])]})

    vecs = _ollama(handler).embed_batch(["a", "b"])
    assert vecs == [[0.0] * 3, [1.0] * 3]
    assert seen == [("/api/embed", {"model": "nomic-embed-text", "input": ["a", "b"]})]


def test_ollama_falls_back_to_legacy_endpoint() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/embed":
            return httpx.Response(404)
        prompt = json.loads(request.content)["prompt"]
        return httpx.Response(200, json={"embedding": [float(len(prompt))] * 3})

    assert _ollama(handler).embed_batch(["ab", "abcd"]) == [[2.0] * 3, [4.0] * 3]


def test_ollama_server_error_raises() -> None:
    backend = _ollama(lambda request: httpx.Response(500, text="model not loaded"))
    with pytest.raises(EmbeddingBackendError) as exc:
        backend.embed_batch(["a"])
    assert "500" in str(exc.value)


def test_ollama_connection_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EmbeddingBackendError):
        _ollama(handler).embed_batch(["a"])


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>proxy login</html>"),
        httpx.Response(200, json=[[0.1]]),
        httpx.Response(200, json="ok"),
    ],
)
def test_ollama_non_object_body_raises(response: httpx.Response) -> None:
    """A 200 with a body that is not a JSON object is a backend error."""
    with pytest.raises(EmbeddingBackendError):
        _ollama(lambda request: response).embed_batch(["a"])


def test_ollama_legacy_non_object_body_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/embed":
            return httpx.Response(404)
        return httpx.Response(200, json=[0.1, 0.2])

    with pytest.raises(EmbeddingBackendError):
        _ollama(handler).embed_batch(["a"])


def test_ollama_missing_embeddings_field_raises() -> None:
    with pytest.raises(EmbeddingBackendError):
        _ollama(lambda request: httpx.Response(200, json={"model": "x"})).embed_batch(["a"])


# ── OpenAI backend ──────────────────────────────────────────────────────


class _FakeEmbeddings:
    def __init__(self, data) -> None:
        self.data = data
        self.calls = []

    def create(self, *, model: str, input: list[str]):
        self.calls.append((model, input))
        return SimpleNamespace(data=self.data)


def test_openai_results_are_ordered_by_index() -> None:
    embeddings = _FakeEmbeddings(
        [
            SimpleNamespace(index=1, embedding=[2.0, 2.0]),
            SimpleNamespace(index=0, embedding=[1.0, 1.0]),
        ]
    )
    backend = OpenAIEmbeddingBackend(None, "text-embedding-3-small", client=SimpleNamespace(embeddings=embeddings))
    assert backend.embed_batch(["first", "second"]) == [[1.0, 1.0], [2.0, 2.0]]
    assert embeddings.calls == [("text-embedding-3-small", ["first", "second"])]


def test_openai_requires_key_without_client() -> None:
    with pytest.raises(RuntimeError):
        OpenAIEmbeddingBackend(None, "text-embedding-3-small")


# ── Backend selection ───────────────────────────────────────────────────


def test_default_backend_is_ollama() -> None:
    assert isinstance(build_backend(load_settings(EMBED_BACKEND="ollama")), OllamaEmbeddingBackend)


@pytest.mark.parametrize("name", ["openai", "openrouter", "OpenAI"])
def test_openai_backend_selection(name: str) -> None:
    backend = build_backend(load_settings(EMBED_BACKEND=name, OPENAI_API_KEY="sk-test"))
    assert isinstance(backend, OpenAIEmbeddingBackend)


def test_generator_from_settings() -> None:
    gen = EmbeddingGenerator.from_settings(load_settings(EMBED_BACKEND="ollama", EMBED_MAX_CHARS=123, EMBED_MAX_BATCH=7))
    assert gen.max_input_chars == 123
    assert gen.max_batch_size == 7
