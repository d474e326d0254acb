from __future__ import annotations
import os, asyncio, json, logging
from typing import Any, Dict, Optional
from openai import OpenAI, APIConnectionError, RateLimitError, OpenAIError
from pydantic import ValidationError

from fisio.config import PROGRESS_SUMMARY_SYSTEM_PROMPT
from fisio.schemas import ProgressSummary

logger = logging.getLogger(__name__)

MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
TIMEOUT = float(os.getenv("OPENAI_TIMEOUT_S", "15"))

_client: Optional[OpenAI] = None

def _get_client() -> OpenAI:
    # OPENAI_API_KEY 는 env 에서 자동 로딩. 요약 기능을 쓰지 않으면 키가 없어도 된다
    global _client
    if _client is None:
        _client = OpenAI()
    return _client

FALLBACK_SUMMARY = {
    "resumen": "No se pudo generar el resumen automático de este reporte.",
    "puntosClave": [],
    "sugerencia": "Revisar manualmente el auto-reporte del paciente.",
}

def _value(avance: Dict[str, Any], key: str) -> str:
    v = avance.get(key)
    return "N/D" if v is None or v == "" else str(v)

def build_summary_prompt(avance: Dict[str, Any]) -> str:
    """auto-reporte (camelCase 직렬화된 Avance) 를 프롬프트 본문으로 변환"""
    return (
        "Analiza el siguiente auto-reporte de un paciente y genera un resumen claro y conciso para el terapeuta.\n\n"
        "Datos del auto-reporte:\n"
        f"- Dolor (Inicial/Final): {_value(avance, 'dolorInicial')}/10 - {_value(avance, 'dolorFinal')}/10\n"
        f"- Ubicación del Dolor: {_value(avance, 'ubicacionDolor')}\n"
        f"- Días de Ejercicio (Semana): {_value(avance, 'diasEjercicio')}/7\n"
        f"- Ejercicios Realizados: {_value(avance, 'ejerciciosRealizados')}\n"
        f"- Dificultades: {_value(avance, 'ejerciciosDificiles')}\n"
        f"- Movilidad Percibida: {_value(avance, 'movilidadPercibida')}\n"
        f"- Fatiga: {_value(avance, 'fatiga')}/10\n"
        f"- Limitaciones Funcionales: {_value(avance, 'limitacionesFuncionales')}\n"
        f"- Estado de Ánimo: {_value(avance, 'estadoAnimo')}\n"
        f"- Motivación: {_value(avance, 'motivacion')}/10\n"
        f"- Comentarios Adicionales: {_value(avance, 'comentarioPaciente')}\n\n"
        "Tu tarea es:\n"
        "1. resumen: 2-3 frases sobre el estado general del paciente, destacando cambios "
        "significativos en dolor, adherencia y funcionalidad.\n"
        "2. puntosClave: de 3 a 5 puntos clave o banderas rojas para el terapeuta "
        "(aumento repentino del dolor, baja adherencia, ánimo muy bajo, comentarios que requieran atención).\n"
        "3. sugerencia: una sugerencia concreta para la próxima sesión.\n\n"
        "Salida: solo un objeto JSON con las claves \"resumen\", \"puntosClave\" (lista de strings) y \"sugerencia\"."
    )

def _extract_json(raw_json_text: str) -> str:
    raw_json_text = raw_json_text.strip()
    if raw_json_text.startswith("```json"):
        raw_json_text = raw_json_text[7:].strip()
    if raw_json_text.endswith("```"):
        raw_json_text = raw_json_text[:-3].strip()
    json_start = raw_json_text.find('{')
    json_end = raw_json_text.rfind('}')
    if json_start != -1 and json_end != -1 and json_end > json_start:
        raw_json_text = raw_json_text[json_start:json_end + 1]
    return raw_json_text

async def generate_progress_summary(avance: Dict[str, Any]) -> ProgressSummary:
    """
    환자 auto-reporte 하나를 {resumen, puntosClave, sugerencia} 로 요약한다.
    응답 파싱 실패 시 기본 요약을 반환하고, API 오류는 RuntimeError 로 올린다.
    재시도/백오프 없음.
    """
    messages = [
        {"role": "system", "content": PROGRESS_SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": build_summary_prompt(avance)},
    ]

    try:
        def _call():
            return _get_client().chat.completions.create(
                model=MODEL,
                messages=messages,
                response_format={"type": "json_object"},
                timeout=TIMEOUT,
            )
        resp = await asyncio.to_thread(_call)
        raw_json_text = resp.choices[0].message.content
        if not raw_json_text:
            raise json.JSONDecodeError("OpenAI returned empty content", "", 0)
        return ProgressSummary.model_validate(json.loads(_extract_json(raw_json_text)))

    except (json.JSONDecodeError, IndexError, AttributeError, ValidationError) as e:
        logger.warning("OpenAI summary parse error (falling back to default): %s", e)
        return ProgressSummary.model_validate(FALLBACK_SUMMARY)
    except (RateLimitError, APIConnectionError, OpenAIError) as e:
        raise RuntimeError(f"OpenAI error: {e}")
