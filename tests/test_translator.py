"""Tests for structure-preserving translation."""

import copy
import json

import pytest

from reeldocs.models.schemas import ArticleSnapshot, GeneratedSection, SegmentData
from reeldocs.services.ai_clients import ChatUsage
from reeldocs.services.captions import parse_vtt, segments_to_vtt
from reeldocs.services.translator import TranslationError, Translator, iter_translatable_nodes
from reeldocs.utils.content_tree import sections_to_document

from conftest import SEGMENTS, FakeTextClient

SECTIONS = [
    GeneratedSection(
        heading="Install the CLI",
        content=(
            "Run [video:01:15] `npm install` and open [the docs](https://docs.test/start).\n\n"
            "```bash\nnpm install reeldocs\n```\n\n"
            "- **Fast** setup\n- Works offline\n\n"
            "| Flag | Meaning |\n|---|---|\n| `-v` | verbose output |\n\n"
            "![Terminal](https://cdn.test/term.png)"
        ),
        timestamp_ref="01:10",
    ),
    GeneratedSection(heading="Next steps", content="Read 42 > 7 ... then continue."),
]


def _assert_same_structure(original, translated, path="doc"):
    """Everything except natural-language text must be identical."""
    assert type(original) is type(translated), path
    if isinstance(original, list):
        assert len(original) == len(translated), path
        for index, (a, b) in enumerate(zip(original, translated)):
            _assert_same_structure(a, b, f"{path}[{index}]")
        return
    if not isinstance(original, dict):
        assert original == translated, path
        return

    assert original.keys() == translated.keys(), path
    for key in original:
        if key == "text" and original.get("type") == "text":
            continue
        _assert_same_structure(original[key], translated[key], f"{path}.{key}")


def _walk(node):
    yield node
    for child in node.get("content") or []:
        yield from _walk(child)


@pytest.fixture
def translator(settings, text_client) -> Translator:
    return Translator(text_client, settings)


async def test_document_translation_preserves_structure(translator):
    document = sections_to_document(SECTIONS)
    original = copy.deepcopy(document)

    translated = await translator.translate_document(document, "de")

    assert document == original
    _assert_same_structure(original, translated)

    before = list(_walk(original))
    after = list(_walk(translated))
    for old, new in zip(before, after):
        if old["type"] == "timestampLink":
            assert new["attrs"]["seconds"] == old["attrs"]["seconds"]
        if old["type"] == "codeBlock":
            assert new == old
        if old["type"] == "text" and any(m["type"] == "code" for m in old.get("marks", [])):
            assert new["text"] == old["text"]


async def test_document_translation_translates_prose_only(translator):
    document = sections_to_document(SECTIONS)

    translated = await translator.translate_document(document, "de")

    texts = {
        node["text"]
        for node in _walk(translated)
        if node["type"] == "text"
    }
    assert "[de] Install the CLI" in texts
    assert "[de] the docs" in texts
    assert " [de] and open " in texts
    assert "npm install" in texts
    assert "npm install reeldocs" in texts
    assert "[de] Read 42 > 7 ... then continue." in texts


def test_translatable_nodes_skip_code_and_symbols():
    document = {"type": "doc", "content": [
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Hello"},
            {"type": "text", "text": "x = 1", "marks": [{"type": "code"}]},
            {"type": "text", "text": " -> "},
            {"type": "timestampLink", "attrs": {"seconds": 5}},
        ]},
        {"type": "codeBlock", "attrs": {"language": "py"}, "content": [{"type": "text", "text": "print()"}]},
    ]}

    assert [node["text"] for node in iter_translatable_nodes(document)] == ["Hello"]


async def test_autolink_url_is_not_translated(translator):
    document = sections_to_document([
        GeneratedSection(heading="Docs", content="Docs at <https://example.com/guide>."),
    ])

    translated = await translator.translate_document(document, "de")

    paragraph = translated["content"][1]
    assert [node["text"] for node in paragraph["content"]] == [
        "[de] Docs at ",
        "https://example.com/guide",
        ".",
    ]
    assert [node["text"] for node in iter_translatable_nodes(document)] == ["Docs", "Docs at "]


async def test_texts_are_sent_in_batches(settings):
    settings.translation_batch_size = 2
    client = FakeTextClient()
    translator = Translator(client, settings)

    result = await translator.translate_texts(["a", "b", "c", "d", "e"], "fr")

    assert result == ["[fr] a", "[fr] b", "[fr] c", "[fr] d", "[fr] e"]
    assert client.translation_calls == ["fr", "fr", "fr"]


async def test_edge_whitespace_is_kept(translator):
    assert await translator.translate_texts(["  padded\n"], "de") == ["  [de] padded\n"]


class _WrongCountClient(FakeTextClient):
    async def generate(self, prompt, model=None, num_predict=None, json_mode=False):
        return json.dumps(["only one"]), ChatUsage()


async def test_wrong_translation_count_raises(settings):
    translator = Translator(_WrongCountClient(), settings)

    with pytest.raises(TranslationError):
        await translator.translate_texts(["one", "two"], "de")


async def test_translate_captions_keeps_timings(translator):
    vtt = segments_to_vtt([SegmentData.model_validate(s) for s in SEGMENTS])

    translated = await translator.translate_captions(vtt, "de")

    original_cues = parse_vtt(vtt)
    translated_cues = parse_vtt(translated)
    assert [(c.start, c.end) for c in translated_cues] == [(c.start, c.end) for c in original_cues]
    assert translated_cues[0].text == "[de] Welcome to the demo."


async def test_translate_article(translator):
    article = ArticleSnapshot(
        id="a1",
        project_id="p1",
        video_id="v1",
        chapter_id="c1",
        title="Installation",
        slug="installation",
        content_json=sections_to_document(SECTIONS[:1]),
        content_text="Install the CLI\nRun npm install.",
        position=0,
    )

    translated = await translator.translate_article(article, "es")

    assert translated.title == "[es] Installation"
    assert translated.content_text == "[es] Install the CLI\nRun npm install."
    _assert_same_structure(article.content_json, translated.content_json)


async def test_translate_article_wraps_client_errors(settings):
    translator = Translator(FakeTextClient(fail_on={"es": "Install"}), settings)
    article = ArticleSnapshot(
        id="a1",
        project_id="p1",
        video_id="v1",
        title="Installation",
        slug="installation",
        content_json=sections_to_document(SECTIONS[:1]),
        content_text="Install the CLI",
    )

    with pytest.raises(TranslationError):
        await translator.translate_article(article, "es")
