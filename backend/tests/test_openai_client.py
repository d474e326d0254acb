import asyncio
from types import SimpleNamespace

from fisio.services import openai_client
from fisio.services.openai_client import build_summary_prompt, generate_progress_summary


def _fake_client(content):
    completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    create = lambda **kwargs: completion
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def test_prompt_marks_missing_values():
    prompt = build_summary_prompt({"dolorInicial": 6, "dolorFinal": 3, "comentarioPaciente": ""})
    assert "6/10 - 3/10" in prompt
    assert "Comentarios Adicionales: N/D" in prompt


def test_summary_parses_fenced_json(monkeypatch):
    content = '```json\n{"resumen": "Bien.", "puntosClave": ["a", "b"], "sugerencia": "Seguir."}\n```'
    monkeypatch.setattr(openai_client, "_get_client", lambda: _fake_client(content))
    summary = asyncio.run(generate_progress_summary({"dolorInicial": 5}))
    assert summary.resumen == "Bien."
    assert summary.puntos_clave == ["a", "b"]


def test_summary_falls_back_on_garbage(monkeypatch):
    monkeypatch.setattr(openai_client, "_get_client", lambda: _fake_client("no es json"))
    summary = asyncio.run(generate_progress_summary({}))
    assert summary.resumen == openai_client.FALLBACK_SUMMARY["resumen"]
