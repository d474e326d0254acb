# backend/fisio/config.py
import os
from dotenv import load_dotenv

load_dotenv()

# 필수 설정: 없으면 DB/인증 서비스가 비활성화된다 (프로세스는 계속 동작)
REQUIRED_SETTINGS = ("ASYNC_DATABASE_URL", "SECRET_KEY")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]


def missing_settings() -> list[str]:
    return [name for name in REQUIRED_SETTINGS if not os.getenv(name)]


PROGRESS_SUMMARY_SYSTEM_PROMPT = """
Eres un asistente experto en fisioterapia. Analizas auto-reportes de pacientes
y generas un resumen claro y conciso para el terapeuta.
Reglas:
- Responde en español.
- No emitas diagnósticos médicos; describe lo que el paciente reporta.
- Señala cambios significativos en dolor, adherencia y funcionalidad.
- Devuelve únicamente un objeto JSON con las claves "resumen", "puntosClave" y "sugerencia".
"""

# 비밀번호 재설정 링크 (프런트엔드의 재설정 화면)
PASSWORD_RESET_URL = os.getenv("PASSWORD_RESET_URL", "http://localhost:3000/restablecer")
